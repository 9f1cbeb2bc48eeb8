"""Storage backend protocol and normalized data structures.

This module defines:
- Protocol interface that every upload backend implements
- Normalized upload result shared by all backends
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

# ============================================================================
# Normalized Data Structures
# ============================================================================


@dataclass(frozen=True)
class UploadResult:
    """Result of an upload operation.

    Attributes:
        key: Object key where file was uploaded
        bucket: Bucket name
        etag: Entity tag of uploaded object
        size_bytes: Size of uploaded object in bytes
        checksum_sha256: SHA256 checksum (when available)
        status_code: HTTP status of the final response (when available)
        version_id: Version ID (for versioned buckets)
    """

    key: str
    bucket: str
    etag: str | None
    size_bytes: int
    checksum_sha256: str | None
    status_code: int | None = None
    version_id: str | None = None


# ============================================================================
# Storage Backend Protocol
# ============================================================================


class StorageBackend(Protocol):
    """Protocol interface for upload backends.

    The signed HTTP backend and the SDK backends (AWS, MinIO) implement this
    protocol. Uses structural typing (Protocol) rather than inheritance, so
    the orchestrator and tests can substitute any object with these methods.

    Example:
        class HttpSignedBackend:
            @property
            def backend_name(self) -> str:
                return "http"

            async def upload_object(self, key: str, data: bytes, ...) -> UploadResult:
                ...
    """

    # ========================================================================
    # Properties
    # ========================================================================

    @property
    def backend_name(self) -> str:
        """Name of the backend (e.g., 'http', 'aws', 'minio')."""
        ...

    @property
    def is_ready(self) -> bool:
        """Check if backend is initialized and ready for operations."""
        ...

    # ========================================================================
    # Lifecycle Management
    # ========================================================================

    async def startup(self) -> None:
        """Initialize backend (create clients, connection pools, etc.)."""
        ...

    async def shutdown(self) -> None:
        """Gracefully shutdown backend (close connections, cleanup resources)."""
        ...

    async def health_check(self) -> bool:
        """Check backend health and connectivity.

        Returns:
            True if healthy, False otherwise
        """
        ...

    # ========================================================================
    # Core Object Operations
    # ========================================================================

    async def upload_object(
        self,
        key: str,
        data: bytes,
        bucket: str | None = None,
        content_type: str | None = None,
        checksum_sha256: str | None = None,
    ) -> UploadResult:
        """Upload an object to storage.

        Args:
            key: Object key/path
            data: Complete object body
            bucket: Target bucket (uses default if None)
            content_type: MIME type
            checksum_sha256: Lowercase hex SHA-256 of ``data`` when already known

        Returns:
            UploadResult with upload information

        Raises:
            StorageError: If upload fails
        """
        ...

    async def download_object(
        self,
        key: str,
        bucket: str | None = None,
    ) -> bytes:
        """Download an object from storage.

        Raises:
            StorageFileNotFoundError: If object doesn't exist
            StorageError: If download fails
        """
        ...

    async def delete_object(
        self,
        key: str,
        bucket: str | None = None,
    ) -> bool:
        """Delete an object from storage.

        Returns:
            True if deleted successfully
        """
        ...

    async def object_exists(
        self,
        key: str,
        bucket: str | None = None,
    ) -> bool:
        """Check if an object exists in storage."""
        ...
