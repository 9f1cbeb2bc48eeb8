"""CLI command modules."""

from file_replicator.cli.commands import classify, replicate, samples, storage

__all__ = [
    "classify",
    "replicate",
    "samples",
    "storage",
]
