"""Output formatting utilities for CLI commands."""

import click


def success(message: str) -> None:
    """Print a success message in green."""
    click.secho(f"✓ {message}", fg="green")


def error(message: str) -> None:
    """Print an error message in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def warning(message: str) -> None:
    """Print a warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def info(message: str) -> None:
    """Print an info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def section(title: str) -> None:
    """Print a section divider."""
    click.secho(f"\n{'=' * 60}", fg="white", dim=True)
    click.secho(title, fg="white", bold=True)
    click.secho("=" * 60, fg="white", dim=True)


def mask_secret(value: str | None, visible: int = 4) -> str:
    """Show only the first characters of a credential."""
    if not value:
        return "(not set)"
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "*" * (len(value) - visible)


def format_duration(seconds: float) -> str:
    """Format a duration as milliseconds below one second, else seconds."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    return f"{seconds:.2f}s"
