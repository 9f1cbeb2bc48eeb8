"""Storage infrastructure for replicating files to S3-compatible object stores.

This package provides:
- SigV4 request signing for raw HTTP uploads (``signing``)
- Protocol-based upload backends: signed HTTP, AWS SDK, MinIO (``backends``)
- The storage error taxonomy (``exceptions``)
- The concurrent multi-backend orchestrator (``replication`` subpackage,
  imported explicitly)

Quick Start:
    from file_replicator.core.settings import get_settings
    from file_replicator.infra.storage.replication import ReplicationOrchestrator

    async with ReplicationOrchestrator.from_settings(get_settings()) as orchestrator:
        report = await orchestrator.run(["report.pdf"])
"""

from __future__ import annotations

from .backends import (
    StorageBackend,
    StorageBackendType,
    UploadResult,
    create_storage_backend,
    create_storage_backends,
)
from .exceptions import (
    ClassificationError,
    FileReadError,
    InvalidKeyMaterialError,
    InvalidTimestampError,
    ReplicationFailedError,
    SigningError,
    StorageDownloadError,
    StorageError,
    StorageFileNotFoundError,
    StorageHttpError,
    StorageNotConfiguredError,
    StoragePermissionError,
    StorageQuotaExceededError,
    StorageTimeoutError,
    StorageUploadError,
    StorageValidationError,
    map_boto_error,
)
from .signing import EMPTY_SHA256, RequestSigner, hash_payload, sign

__all__ = [
    "EMPTY_SHA256",
    "ClassificationError",
    "FileReadError",
    "InvalidKeyMaterialError",
    "InvalidTimestampError",
    "ReplicationFailedError",
    "RequestSigner",
    "SigningError",
    "StorageBackend",
    "StorageBackendType",
    "StorageDownloadError",
    "StorageError",
    "StorageFileNotFoundError",
    "StorageHttpError",
    "StorageNotConfiguredError",
    "StoragePermissionError",
    "StorageQuotaExceededError",
    "StorageTimeoutError",
    "StorageUploadError",
    "StorageValidationError",
    "UploadResult",
    "create_storage_backend",
    "create_storage_backends",
    "hash_payload",
    "map_boto_error",
    "sign",
]
