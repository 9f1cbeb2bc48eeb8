"""Backend factory for creating storage backends dynamically."""

from __future__ import annotations

from typing import TYPE_CHECKING

from file_replicator.core.settings.replication import SigningMode, StorageBackendType
from file_replicator.infra.storage.exceptions import StorageNotConfiguredError

if TYPE_CHECKING:
    from file_replicator.core.settings import ReplicatorSettings

    from .protocol import StorageBackend


def create_storage_backend(
    backend_type: StorageBackendType | str,
    settings: ReplicatorSettings,
) -> StorageBackend:
    """Factory function to create one storage backend.

    Args:
        backend_type: Which backend to build
        settings: Aggregated replicator settings

    Returns:
        Backend implementing StorageBackend protocol (not yet started)

    Raises:
        StorageNotConfiguredError: If backend type unsupported or settings invalid

    Example:
        backend = create_storage_backend("minio", get_settings())
        await backend.startup()
        result = await backend.upload_object("text/file.txt", data)
        await backend.shutdown()
    """
    try:
        backend_type = StorageBackendType(backend_type)
    except ValueError:
        msg = (
            f"Unsupported storage backend: {backend_type}. "
            f"Supported backends: {', '.join([t.value for t in StorageBackendType])}"
        )
        raise StorageNotConfiguredError(msg) from None

    match backend_type:
        case StorageBackendType.HTTP:
            from .http.backend import HttpSignedBackend

            return HttpSignedBackend(
                settings.aws,
                signing_mode=SigningMode(settings.replication.signing_mode),
            )

        case StorageBackendType.AWS:
            from .s3.backend import S3Backend

            return S3Backend(settings.aws)

        case StorageBackendType.MINIO:
            from .s3.backend import MinioBackend

            return MinioBackend(settings.minio)


def create_storage_backends(settings: ReplicatorSettings) -> list[StorageBackend]:
    """Create every backend enabled in ``settings.replication.backends``, in order."""
    return [create_storage_backend(name, settings) for name in settings.replication.backends]
