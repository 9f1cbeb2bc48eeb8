"""Raw HTTP storage backend authenticated with hand-built SigV4 headers.

Talks to ``https://<bucket>.s3.amazonaws.com/<key>`` directly through a
pooled ``httpx.AsyncClient``; no SDK is involved. Each operation is a
single request and is never retried here; retry policy belongs to the
caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

from file_replicator.core.settings.replication import SigningMode
from file_replicator.infra.storage.exceptions import (
    InvalidKeyMaterialError,
    StorageDownloadError,
    StorageFileNotFoundError,
    StorageHttpError,
    StorageNotConfiguredError,
)
from file_replicator.infra.storage.signing import EMPTY_SHA256, RequestSigner, hash_payload

from ..protocol import UploadResult

if TYPE_CHECKING:
    from file_replicator.core.settings.storage import AwsStorageSettings

logger = logging.getLogger(__name__)

# Response bodies are S3 XML errors; keep enough to show the error code.
_MAX_CAUSE_LENGTH = 512


class HttpSignedBackend:
    """Storage backend issuing signed ``PUT``/``GET`` requests over httpx.

    Credentials come from ``AWS_ACCESS_KEY`` / ``AWS_SECRET_KEY``. Without
    them every request fails with ``InvalidKeyMaterialError``; the other
    backends are unaffected.

    Example:
        backend = HttpSignedBackend(get_aws_settings())
        await backend.startup()
        result = await backend.upload_object("text/hello.txt", b"hello")
        await backend.shutdown()
    """

    name = "http"

    def __init__(
        self,
        settings: AwsStorageSettings,
        signing_mode: SigningMode = SigningMode.CANONICAL,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize HTTP backend.

        Args:
            settings: AWS settings (credentials, bucket, region, endpoint template)
            signing_mode: How the string-to-sign is built
            transport: httpx transport override (tests use ``httpx.MockTransport``)
            clock: Source of the request time used for ``x-amz-date``
        """
        self.settings = settings
        self.signing_mode = signing_mode
        self._transport = transport
        self._clock = clock
        self._client: httpx.AsyncClient | None = None
        self._signer: RequestSigner | None = None

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

    async def startup(self) -> None:
        """Create the pooled HTTP client."""
        if self._client is not None:
            logger.debug("HTTP backend already initialized")
            return

        if not self.settings.has_static_credentials:
            logger.warning(
                "HTTP backend has no credentials; uploads will fail",
                extra={"backend": self.name, "bucket": self.settings.bucket},
            )

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(float(self.settings.timeout)),
            limits=httpx.Limits(
                max_keepalive_connections=self.settings.max_pool_connections,
                max_connections=self.settings.max_pool_connections,
            ),
            verify=self.settings.verify_ssl,
            transport=self._transport,
        )

        logger.info(
            "HTTP backend initialized",
            extra={
                "backend": self.name,
                "base_url": self.settings.http_base_url(),
                "signing_mode": str(self.signing_mode),
            },
        )

    async def shutdown(self) -> None:
        """Close the HTTP client and release connections."""
        if self._client is None:
            logger.debug("HTTP backend not initialized, nothing to shutdown")
            return

        try:
            await self._client.aclose()
        finally:
            self._client = None

        logger.info("HTTP backend shutdown complete")

    async def health_check(self) -> bool:
        """Signed ``HEAD`` on the bucket.

        Returns:
            True if the bucket answered with a 2xx status
        """
        if self._client is None:
            return False

        try:
            response = await self._request("HEAD", self.settings.http_base_url() + "/")
        except (InvalidKeyMaterialError, StorageHttpError) as e:
            logger.warning(
                "HTTP health check failed",
                extra={"error": str(e), "bucket": self.settings.bucket},
            )
            return False
        return response.is_success

    # ========================================================================
    # Helpers
    # ========================================================================

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "HTTP backend not initialized. Call startup() first."
            raise StorageNotConfiguredError(msg, metadata={"backend": self.name})
        return self._client

    def _get_signer(self) -> RequestSigner:
        """Build the signer on first use.

        Raises:
            InvalidKeyMaterialError: If static credentials are not configured
        """
        if self._signer is None:
            if self.settings.access_key is None or self.settings.secret_key is None:
                raise InvalidKeyMaterialError(
                    "HTTP backend requires AWS_ACCESS_KEY and AWS_SECRET_KEY",
                    metadata={"backend": self.name},
                )
            self._signer = RequestSigner(
                access_key=self.settings.access_key.get_secret_value(),
                secret_key=self.settings.secret_key.get_secret_value(),
                region=self.settings.region,
                mode=self.signing_mode,
                clock=self._clock,
            )
        return self._signer

    def object_url(self, key: str, bucket: str | None = None) -> str:
        """Return the absolute URL of an object."""
        return f"{self.settings.http_base_url(bucket)}/{quote(key.lstrip('/'), safe='/-_.~')}"

    async def _request(
        self,
        method: str,
        url: str,
        content: bytes | None = None,
        payload_sha256: str = EMPTY_SHA256,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Sign and send one request.

        Raises:
            InvalidKeyMaterialError: Missing or unusable credentials
            StorageHttpError: Transport failure (status is None)
        """
        client = self._ensure_client()
        request_headers = self._get_signer().sign_request(method, url, payload_sha256)
        if headers:
            request_headers.update(headers)

        try:
            return await client.request(method, url, content=content, headers=request_headers)
        except httpx.HTTPError as e:
            raise StorageHttpError(
                status=None,
                cause=str(e) or type(e).__name__,
                metadata={"backend": self.name, "method": method, "url": url},
            ) from e

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
        """Upload an object with one signed ``PUT``.

        Args:
            key: Object key
            data: Complete object body
            bucket: Target bucket (uses default if None)
            content_type: MIME type
            checksum_sha256: Hex SHA-256 of ``data``; computed when None

        Returns:
            UploadResult with upload information

        Raises:
            InvalidKeyMaterialError: Credentials missing
            StorageHttpError: Transport failure or non-2xx response
        """
        bucket = bucket or self.settings.bucket
        digest = checksum_sha256 or hash_payload(data)
        url = self.object_url(key, bucket)

        headers = {"Content-Length": str(len(data))}
        if content_type:
            headers["Content-Type"] = content_type

        response = await self._request("PUT", url, content=data, payload_sha256=digest, headers=headers)

        if not response.is_success:
            logger.warning(
                "HTTP upload rejected",
                extra={"key": key, "bucket": bucket, "status_code": response.status_code},
            )
            raise StorageHttpError(
                status=response.status_code,
                cause=response.text[:_MAX_CAUSE_LENGTH],
                metadata={"backend": self.name, "key": key, "bucket": bucket},
            )

        logger.info(
            "Object uploaded over HTTP",
            extra={"key": key, "bucket": bucket, "size_bytes": len(data)},
        )

        return UploadResult(
            key=key,
            bucket=bucket,
            etag=response.headers.get("ETag", "").strip('"') or None,
            size_bytes=len(data),
            checksum_sha256=digest,
            status_code=response.status_code,
            version_id=response.headers.get("x-amz-version-id"),
        )

    async def download_object(
        self,
        key: str,
        bucket: str | None = None,
    ) -> bytes:
        """Download an object with one signed ``GET``.

        Raises:
            StorageFileNotFoundError: On 404
            StorageDownloadError: On any other non-2xx response
        """
        bucket = bucket or self.settings.bucket
        response = await self._request("GET", self.object_url(key, bucket))

        if response.status_code == 404:
            raise StorageFileNotFoundError(
                f"Object not found: {key}",
                metadata={"backend": self.name, "key": key, "bucket": bucket},
            )
        if not response.is_success:
            raise StorageDownloadError(
                f"Download failed with HTTP {response.status_code}: "
                f"{response.text[:_MAX_CAUSE_LENGTH]}",
                metadata={
                    "backend": self.name,
                    "key": key,
                    "bucket": bucket,
                    "http_status": response.status_code,
                },
            )

        logger.info(
            "Object downloaded over HTTP",
            extra={"key": key, "bucket": bucket, "size_bytes": len(response.content)},
        )
        return response.content

    async def delete_object(
        self,
        key: str,
        bucket: str | None = None,
    ) -> bool:
        """Delete an object with one signed ``DELETE``."""
        bucket = bucket or self.settings.bucket
        response = await self._request("DELETE", self.object_url(key, bucket))
        if not response.is_success:
            raise StorageHttpError(
                status=response.status_code,
                cause=response.text[:_MAX_CAUSE_LENGTH],
                metadata={"backend": self.name, "key": key, "bucket": bucket},
            )
        logger.info("Object deleted over HTTP", extra={"key": key, "bucket": bucket})
        return True

    async def object_exists(
        self,
        key: str,
        bucket: str | None = None,
    ) -> bool:
        """Signed ``HEAD`` on the object."""
        bucket = bucket or self.settings.bucket
        response = await self._request("HEAD", self.object_url(key, bucket))
        if response.status_code == 404:
            return False
        if not response.is_success:
            raise StorageHttpError(
                status=response.status_code,
                cause=response.reason_phrase,
                metadata={"backend": self.name, "key": key, "bucket": bucket},
            )
        return True
