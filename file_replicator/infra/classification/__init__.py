"""File classification into storage categories."""

from .classifier import (
    FALLBACK_CATEGORY,
    TEXT_CATEGORY,
    FileClassifier,
    SignatureClassifier,
    build_storage_key,
    looks_like_text,
)

__all__ = [
    "FALLBACK_CATEGORY",
    "TEXT_CATEGORY",
    "FileClassifier",
    "SignatureClassifier",
    "build_storage_key",
    "looks_like_text",
]
