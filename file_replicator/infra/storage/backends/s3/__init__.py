"""S3-compatible storage backends.

Supports AWS S3, MinIO, LocalStack, and other S3-compatible services.
"""

from .backend import MinioBackend, S3Backend

__all__ = ["MinioBackend", "S3Backend"]
