"""CLI utilities for running async operations and formatting output."""

from file_replicator.cli.utils.async_runner import coro
from file_replicator.cli.utils.formatters import (
    error,
    format_duration,
    info,
    mask_secret,
    section,
    success,
    warning,
)

__all__ = [
    "coro",
    "error",
    "info",
    "success",
    "warning",
    "section",
    "mask_secret",
    "format_duration",
]
