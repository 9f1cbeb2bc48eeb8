"""Create sample files for trying out replication."""

from pathlib import Path

import click

from file_replicator.cli.utils import info, success, warning

SAMPLE_FILES: dict[str, str] = {
    "file1.txt": "This is a sample text file for testing S3 uploads.",
    "file2.txt": "Another sample text file with different content.",
    "file3.txt": "A third sample text file for concurrent upload testing.",
}


@click.command(name="create-samples")
@click.argument(
    "directory",
    default=".",
    type=click.Path(file_okay=False, path_type=Path),
)
@click.option("--force", is_flag=True, help="Overwrite existing files.")
def create_samples(directory: Path, force: bool) -> None:
    """Write three small text files to DIRECTORY (default: current directory).

    \b
    Example:
      file-replicator create-samples samples/
      file-replicator replicate samples/*.txt
    """
    directory.mkdir(parents=True, exist_ok=True)

    created = 0
    for name, content in SAMPLE_FILES.items():
        target = directory / name
        if target.exists() and not force:
            warning(f"{target} exists, skipping (use --force to overwrite)")
            continue
        target.write_text(content + "\n", encoding="utf-8")
        success(f"Created {target}")
        created += 1

    info(f"{created} sample file(s) written to {directory}")
