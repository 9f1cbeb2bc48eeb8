"""Main CLI entry point for file-replicator commands."""

import click

from file_replicator.cli.commands import classify, replicate, samples, storage
from file_replicator.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="file-replicator")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL for this invocation.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """File Replicator CLI - replicate local files to several object stores.

    Every file is classified by content, stored as <category>/<file name>,
    and uploaded concurrently to a SigV4-signed HTTP endpoint, AWS S3 and an
    S3-compatible server (MinIO). Logs go to stderr; summaries to stdout.

    \b
    Commands:
      replicate       Upload files to every configured backend
      classify        Show category and storage key of files
      storage         Inspect configuration, download objects, sign requests
      create-samples  Write sample text files

    \b
    Quick Start:
      file-replicator create-samples samples/
      file-replicator replicate samples/*.txt
      file-replicator storage download text/file1.txt out.txt --backend minio
    """
    ctx.ensure_object(dict)
    if log_level:
        level = log_level.upper()
        setup_logging(force=True, log_level=level, console_level=level, file_level=level)


cli.add_command(replicate.replicate)
cli.add_command(classify.classify)
cli.add_command(storage.storage)
cli.add_command(samples.create_samples)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
