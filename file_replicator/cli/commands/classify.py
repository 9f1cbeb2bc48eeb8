"""Show how files would be classified without uploading them."""

import sys
from pathlib import Path

import click

from file_replicator.cli.utils import error
from file_replicator.infra.classification import SignatureClassifier, build_storage_key


@click.command(name="classify")
@click.argument("paths", nargs=-1, required=True, type=click.Path(path_type=Path))
def classify(paths: tuple[Path, ...]) -> None:
    """Print the category and storage key of each file.

    \b
    Example:
      file-replicator classify report.pdf notes.txt
    """
    classifier = SignatureClassifier()
    failures = 0

    for path in paths:
        try:
            data = path.read_bytes()
        except OSError as e:
            error(f"{path}: {e.strerror or e}")
            failures += 1
            continue

        category = classifier.classify(data)
        click.echo(f"{path}\t{category}\t{build_storage_key(category, path)}")

    if failures:
        sys.exit(1)
