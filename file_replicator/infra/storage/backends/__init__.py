"""Storage backends package.

Provides protocol-based abstraction over the upload backends.
"""

from file_replicator.core.settings.replication import StorageBackendType

from .factory import create_storage_backend, create_storage_backends
from .protocol import StorageBackend, UploadResult

__all__ = [
    "StorageBackend",
    "StorageBackendType",
    "UploadResult",
    "create_storage_backend",
    "create_storage_backends",
]
