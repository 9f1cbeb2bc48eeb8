"""Content-based file classification.

A file's category becomes the first segment of its storage key, so files
land under ``documents/``, ``images/``, ``archives/``, ``text/`` or
``misc/`` in every bucket.
"""

from __future__ import annotations

from pathlib import PurePath
from typing import Protocol

from file_replicator.infra.storage.exceptions import ClassificationError

# Leading bytes and the category they identify, checked in order.
SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"%PDF", "documents"),
    (b"\xff\xd8\xff", "images"),  # JPEG
    (b"\x89PNG", "images"),
    (b"GIF8", "images"),
    (b"PK\x03\x04", "archives"),  # ZIP
)

TEXT_CATEGORY = "text"
FALLBACK_CATEGORY = "misc"

TEXT_SAMPLE_SIZE = 1024
TEXT_PRINTABLE_RATIO = 0.8
_TEXT_CONTROL_BYTES = frozenset(b"\n\r\t")


class FileClassifier(Protocol):
    """Anything that maps file content to a storage category."""

    def classify(self, data: bytes) -> str:
        """Return the category (key prefix) for ``data``."""
        ...


def _is_printable(byte: int) -> bool:
    return 32 <= byte <= 126 or byte in _TEXT_CONTROL_BYTES


def looks_like_text(data: bytes) -> bool:
    """True if empty, or more than 80% of the first 1024 bytes are printable ASCII."""
    if not data:
        return True
    sample = data[:TEXT_SAMPLE_SIZE]
    printable = sum(1 for byte in sample if _is_printable(byte))
    return printable / len(sample) > TEXT_PRINTABLE_RATIO


class SignatureClassifier:
    """Classify by magic number, then by a printable-ASCII heuristic.

    Example:
        >>> SignatureClassifier().classify(b"%PDF-1.7 ...")
        'documents'
        >>> SignatureClassifier().classify(b"hello")
        'text'
    """

    def __init__(self, signatures: tuple[tuple[bytes, str], ...] = SIGNATURES) -> None:
        self.signatures = signatures

    def classify(self, data: bytes) -> str:
        for magic, category in self.signatures:
            if data.startswith(magic):
                return category
        if looks_like_text(data):
            return TEXT_CATEGORY
        return FALLBACK_CATEGORY


def build_storage_key(category: str, path: str | PurePath) -> str:
    """Return ``<category>/<file name>``.

    Raises:
        ClassificationError: If the category or the file name is empty.
    """
    name = PurePath(path).name
    if not category or "/" in category:
        raise ClassificationError(str(path), f"invalid category {category!r}")
    if not name:
        raise ClassificationError(str(path), "path has no file name")
    return f"{category}/{name}"
