"""S3-compatible storage backend implementation.

Implements the StorageBackend protocol for AWS S3 and for S3-compatible
servers such as MinIO using aioboto3.
"""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING, Any

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from file_replicator.infra.storage.exceptions import (
    StorageDownloadError,
    StorageError,
    StorageNotConfiguredError,
    StorageUploadError,
    map_boto_error,
)

from ..protocol import UploadResult

if TYPE_CHECKING:
    from file_replicator.core.settings.storage import ObjectStoreSettings

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3Backend:
    """AWS S3 backend.

    Uses static credentials when both are configured and otherwise the
    default botocore credential chain (environment, shared config,
    instance profile).

    Attributes:
        settings: Object store connection settings
        backend_name: Name identifier for this backend ("aws")
        is_ready: Whether backend is initialized

    Example:
        backend = S3Backend(get_aws_settings())
        await backend.startup()
        result = await backend.upload_object("text/file.txt", b"data")
        await backend.shutdown()
    """

    name = "aws"

    def __init__(
        self,
        settings: ObjectStoreSettings,
        session: aioboto3.Session | None = None,
    ) -> None:
        """Initialize S3 backend.

        Args:
            settings: Connection settings for the target
            session: aioboto3 session to create the client from
        """
        self.settings = settings
        self._session = session or aioboto3.Session()
        self._client: Any = None
        self._client_context: Any = None

    @property
    def backend_name(self) -> str:
        """Backend name identifier."""
        return self.name

    @property
    def is_ready(self) -> bool:
        """Check if backend is initialized and ready."""
        return self._client is not None

    # ========================================================================
    # Lifecycle Management
    # ========================================================================

    def _boto_config(self) -> Config:
        """Create botocore config with retry and connection pooling."""
        return Config(
            retries={
                "max_attempts": self.settings.max_retries,
                "mode": self.settings.retry_mode,
            },
            connect_timeout=self.settings.timeout,
            read_timeout=self.settings.timeout,
            max_pool_connections=self.settings.max_pool_connections,
        )

    async def startup(self) -> None:
        """Initialize S3 client and connection pool."""
        if self._client is not None:
            logger.debug("%s backend already initialized", self.backend_name)
            return

        logger.info(
            "Initializing %s backend",
            self.backend_name,
            extra={
                "backend": self.backend_name,
                "bucket": self.settings.bucket,
                "endpoint": self.settings.endpoint,
                "region": self.settings.region,
            },
        )

        try:
            self._client_context = self._session.client(
                "s3",
                **self.settings.get_boto3_config(),
                config=self._boto_config(),
            )
            self._client = await self._client_context.__aenter__()
        except Exception as e:
            self._client_context = None
            logger.exception(
                "Failed to initialize %s backend", self.backend_name, extra={"error": str(e)}
            )
            raise StorageError(
                f"Failed to initialize {self.backend_name} backend: {e}",
                code="STORAGE_INITIALIZATION_ERROR",
                metadata={"backend": self.backend_name},
            ) from e

        logger.info("%s backend initialized successfully", self.backend_name)

    async def shutdown(self) -> None:
        """Shutdown S3 client gracefully."""
        if self._client_context is None:
            logger.debug("%s backend not initialized, nothing to shutdown", self.backend_name)
            return

        try:
            await self._client_context.__aexit__(None, None, None)
        except Exception as e:
            logger.warning("Error closing %s client: %s", self.backend_name, e)
        finally:
            self._client = None
            self._client_context = None

        logger.info("%s backend shutdown complete", self.backend_name)

    async def health_check(self) -> bool:
        """Check connectivity and credentials with a HEAD on the bucket.

        Returns:
            True if healthy, False otherwise
        """
        if self._client is None:
            return False

        try:
            await self._client.head_bucket(Bucket=self.settings.bucket)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                "%s health check failed",
                self.backend_name,
                extra={"error": str(e), "bucket": self.settings.bucket},
            )
            return False

    def _ensure_client(self) -> Any:
        """Ensure client is initialized.

        Raises:
            StorageNotConfiguredError: If client not initialized
        """
        if self._client is None:
            msg = f"{self.backend_name} backend not initialized. Call startup() first."
            raise StorageNotConfiguredError(msg, metadata={"backend": self.backend_name})
        return self._client

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
        """Upload an object with a single PutObject call.

        Args:
            key: Object key
            data: Complete object body
            bucket: Target bucket (uses default if None)
            content_type: MIME type
            checksum_sha256: Hex SHA-256 of ``data`` when already computed

        Returns:
            UploadResult with upload information

        Raises:
            StorageUploadError: If upload fails
        """
        client = self._ensure_client()
        bucket = bucket or self.settings.bucket
        checksum_sha256 = checksum_sha256 or hashlib.sha256(data).hexdigest()

        extra_args: dict[str, Any] = {}
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            response = await client.put_object(
                Bucket=bucket,
                Key=key,
                Body=data,
                **extra_args,
            )
        except ClientError as e:
            logger.warning(
                "Failed to upload object to %s",
                self.backend_name,
                extra={"key": key, "bucket": bucket, "error": str(e)},
            )
            raise map_boto_error(e, operation="upload", key=key) from e
        except BotoCoreError as e:
            logger.warning(
                "Transport error during %s upload",
                self.backend_name,
                extra={"key": key, "bucket": bucket, "error": str(e)},
            )
            raise StorageUploadError(
                f"Failed to upload {key}: {e}",
                metadata={"key": key, "bucket": bucket, "backend": self.backend_name},
            ) from e

        logger.info(
            "Object uploaded to %s",
            self.backend_name,
            extra={"key": key, "bucket": bucket, "size_bytes": len(data)},
        )

        return UploadResult(
            key=key,
            bucket=bucket,
            etag=response.get("ETag", "").strip('"') or None,
            size_bytes=len(data),
            checksum_sha256=checksum_sha256,
            status_code=response.get("ResponseMetadata", {}).get("HTTPStatusCode"),
            version_id=response.get("VersionId"),
        )

    async def download_object(
        self,
        key: str,
        bucket: str | None = None,
    ) -> bytes:
        """Download an object.

        Raises:
            StorageFileNotFoundError: If object doesn't exist
            StorageDownloadError: If download fails
        """
        client = self._ensure_client()
        bucket = bucket or self.settings.bucket

        try:
            response = await client.get_object(Bucket=bucket, Key=key)
            file_data_raw = await response["Body"].read()
            file_data = file_data_raw if isinstance(file_data_raw, bytes) else bytes(file_data_raw)
        except ClientError as e:
            raise map_boto_error(e, operation="download", key=key) from e
        except BotoCoreError as e:
            raise StorageDownloadError(
                f"Failed to download {key}: {e}",
                metadata={"key": key, "bucket": bucket, "backend": self.backend_name},
            ) from e

        logger.info(
            "Object downloaded from %s",
            self.backend_name,
            extra={"key": key, "bucket": bucket, "size_bytes": len(file_data)},
        )
        return file_data

    async def delete_object(
        self,
        key: str,
        bucket: str | None = None,
    ) -> bool:
        """Delete an object.

        Raises:
            StorageError: If deletion fails
        """
        client = self._ensure_client()
        bucket = bucket or self.settings.bucket

        try:
            await client.delete_object(Bucket=bucket, Key=key)
        except ClientError as e:
            raise map_boto_error(e, operation="delete", key=key) from e
        except BotoCoreError as e:
            raise StorageError(
                f"Failed to delete {key}: {e}",
                code="STORAGE_DELETE_ERROR",
                metadata={"key": key, "bucket": bucket, "backend": self.backend_name},
            ) from e

        logger.info("Object deleted from %s", self.backend_name, extra={"key": key, "bucket": bucket})
        return True

    async def object_exists(
        self,
        key: str,
        bucket: str | None = None,
    ) -> bool:
        """Check if an object exists."""
        client = self._ensure_client()
        bucket = bucket or self.settings.bucket

        try:
            await client.head_object(Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in _MISSING_KEY_CODES:
                return False
            raise map_boto_error(e, operation="object_exists", key=key) from e


class MinioBackend(S3Backend):
    """S3-compatible backend for MinIO and similar servers.

    Same operations as ``S3Backend`` against a custom endpoint, with
    path-style addressing since such servers rarely resolve bucket
    subdomains.
    """

    name = "minio"

    def __init__(
        self,
        settings: ObjectStoreSettings,
        session: aioboto3.Session | None = None,
    ) -> None:
        if not settings.endpoint:
            raise StorageNotConfiguredError(
                "MinIO backend requires an endpoint. Set S3_ENDPOINT.",
                metadata={"backend": self.name},
            )
        super().__init__(settings, session=session)

    def _boto_config(self) -> Config:
        return super()._boto_config().merge(Config(s3={"addressing_style": "path"}))
