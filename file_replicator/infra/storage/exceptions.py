"""Storage and replication exceptions.

Every failure the replicator can record is a ``StorageError`` carrying a
stable ``code`` plus metadata, so a ``BackendResult`` or log record can
describe it without keeping the exception object around.

Example:
    ```python
    from file_replicator.infra.storage.exceptions import (
        StorageUploadError,
        map_boto_error,
    )

    try:
        await client.put_object(Bucket=bucket, Key=key, Body=data)
    except ClientError as e:
        raise map_boto_error(e, operation="upload", key=key) from e
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from file_replicator.core.exceptions import AppException

if TYPE_CHECKING:
    from botocore.exceptions import ClientError


class StorageError(AppException):
    """Base exception for all storage-related errors.

    Attributes:
        code: Error code identifier for programmatic error handling.
        message: Human-readable error message.
        status_code: HTTP-style status code for the error.
        extra: Additional context (backend, bucket, key, ...).
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 500,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Initialize storage error.

        Args:
            message: Human-readable error message.
            code: Error code for programmatic handling.
            status_code: HTTP-style status code (default: 500).
            metadata: Additional error context.
        """
        self.code = code
        self.message = message
        super().__init__(
            status_code=status_code,
            detail=message,
            type=code.lower().replace("_", "-"),
            extra=metadata or {},
        )


class StorageNotConfiguredError(StorageError):
    """Exception raised when a backend is missing configuration or was never started."""

    def __init__(
        self,
        message: str = "Storage is not configured or enabled",
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_NOT_CONFIGURED",
            status_code=503,
            metadata=metadata,
        )


class StorageFileNotFoundError(StorageError):
    """Exception raised when a requested object does not exist in storage."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_NOT_FOUND",
            status_code=404,
            metadata=metadata,
        )


class StorageUploadError(StorageError):
    """Exception raised when an upload to a backend fails.

    Covers transport errors, authentication failures and server errors.
    The orchestrator records it per backend; it never aborts sibling uploads.
    """

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
        code: str = "STORAGE_UPLOAD_ERROR",
        status_code: int = 500,
    ) -> None:
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            metadata=metadata,
        )


class StorageHttpError(StorageUploadError):
    """Exception raised by the signed HTTP backend.

    Attributes:
        status: Response status code, or None when no response was received.
        cause: Transport error text or response body excerpt.

    Example:
        ```python
        raise StorageHttpError(
            status=403,
            cause="<Error><Code>SignatureDoesNotMatch</Code>...",
            metadata={"key": key, "bucket": bucket},
        )
        ```
    """

    def __init__(
        self,
        status: int | None,
        cause: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.status = status
        self.cause = cause
        summary = f"HTTP {status}" if status is not None else "HTTP transport error"
        super().__init__(
            message=f"{summary}: {cause}" if cause else summary,
            metadata={**(metadata or {}), "http_status": status},
            code="STORAGE_HTTP_ERROR",
            status_code=status if status is not None and status >= 400 else 502,
        )


class StorageDownloadError(StorageError):
    """Exception raised when a download from a backend fails."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_DOWNLOAD_ERROR",
            status_code=500,
            metadata=metadata,
        )


class StoragePermissionError(StorageError):
    """Exception raised when credentials are rejected or lack access."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_PERMISSION_DENIED",
            status_code=403,
            metadata=metadata,
        )


class StorageQuotaExceededError(StorageError):
    """Exception raised when storage quota limits are exceeded."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_QUOTA_EXCEEDED",
            status_code=507,
            metadata=metadata,
        )


class StorageValidationError(StorageError):
    """Exception raised when the backend rejects a request as malformed."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_VALIDATION_ERROR",
            status_code=400,
            metadata=metadata,
        )


class StorageTimeoutError(StorageError):
    """Exception raised when a storage operation exceeds its time limit."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_TIMEOUT",
            status_code=504,
            metadata=metadata,
        )


# ============================================================================
# Request signing
# ============================================================================


class SigningError(StorageError):
    """Exception raised when SigV4 inputs are malformed.

    Fatal for the signed HTTP backend only; other backends are unaffected.
    """

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
        code: str = "STORAGE_SIGNING_ERROR",
    ) -> None:
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            metadata=metadata,
        )


class InvalidKeyMaterialError(SigningError):
    """Exception raised when the access key or secret cannot be used for signing."""

    def __init__(
        self,
        message: str = "Signing credentials are missing or unusable",
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            metadata=metadata,
            code="STORAGE_INVALID_KEY_MATERIAL",
        )


class InvalidTimestampError(SigningError):
    """Exception raised when a timestamp is not a valid ``YYYYMMDDTHHMMSSZ`` value."""

    def __init__(
        self,
        timestamp: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.timestamp = timestamp
        super().__init__(
            message=f"Invalid request timestamp {timestamp!r}; expected YYYYMMDDTHHMMSSZ",
            metadata={**(metadata or {}), "timestamp": timestamp},
            code="STORAGE_INVALID_TIMESTAMP",
        )


# ============================================================================
# Replication
# ============================================================================


class FileReadError(StorageError):
    """Exception raised when a local file cannot be read. No upload is attempted."""

    def __init__(
        self,
        path: str,
        reason: str,
    ) -> None:
        self.path = path
        super().__init__(
            message=f"Cannot read {path}: {reason}",
            code="REPLICATION_READ_ERROR",
            status_code=400,
            metadata={"path": path},
        )


class ClassificationError(StorageError):
    """Exception raised when the classifier cannot produce a storage key."""

    def __init__(
        self,
        path: str,
        reason: str,
    ) -> None:
        self.path = path
        super().__init__(
            message=f"Cannot classify {path}: {reason}",
            code="REPLICATION_CLASSIFICATION_ERROR",
            status_code=422,
            metadata={"path": path},
        )


class ReplicationFailedError(StorageError):
    """Exception raised when at least one file failed on every backend.

    Attributes:
        paths: Files whose replication failed entirely.
    """

    def __init__(self, paths: list[str]) -> None:
        self.paths = paths
        super().__init__(
            message=f"{len(paths)} file(s) failed on every backend: {', '.join(paths)}",
            code="REPLICATION_FAILED",
            status_code=502,
            metadata={"paths": paths},
        )


def map_boto_error(
    error: ClientError,
    operation: str,
    key: str | None = None,
) -> StorageError:
    """Map a botocore ClientError to a domain-specific StorageError.

    Args:
        error: The botocore ClientError exception to map.
        operation: The storage operation being performed (e.g., "upload", "download").
        key: Optional object key being operated on.

    Returns:
        StorageError: Appropriate domain-specific storage exception.

    Error Code Mappings:
        - NoSuchKey, NoSuchBucket, 404 -> StorageFileNotFoundError (404)
        - AccessDenied, InvalidAccessKeyId, SignatureDoesNotMatch, ... -> StoragePermissionError (403)
        - RequestTimeout, RequestTimeTooSkewed, SlowDown -> StorageTimeoutError (504)
        - QuotaExceeded, TooManyBuckets -> StorageQuotaExceededError (507)
        - InvalidRequest, InvalidArgument, MalformedXML, ... -> StorageValidationError (400)
        - Others during upload -> StorageUploadError, during download -> StorageDownloadError
    """
    error_code = error.response.get("Error", {}).get("Code", "Unknown")
    error_message = error.response.get("Error", {}).get("Message", str(error))

    metadata: dict[str, Any] = {
        "operation": operation,
        "aws_error_code": error_code,
        "aws_error_message": error_message,
        "request_id": error.response.get("ResponseMetadata", {}).get("RequestId"),
    }

    if key:
        metadata["key"] = key

    if "BucketName" in error.response.get("Error", {}):
        metadata["bucket"] = error.response["Error"]["BucketName"]  # type: ignore[typeddict-item]

    message = f"{operation.capitalize()} failed: {error_message}"

    if error_code in {"NoSuchKey", "NoSuchBucket", "404", "NotFound"}:
        return StorageFileNotFoundError(message=message, metadata=metadata)

    if error_code in {
        "AccessDenied",
        "ExpiredToken",
        "InvalidAccessKeyId",
        "SignatureDoesNotMatch",
        "InvalidToken",
        "TokenRefreshRequired",
        "403",
    }:
        return StoragePermissionError(message=message, metadata=metadata)

    if error_code in {"RequestTimeout", "RequestTimeTooSkewed", "SlowDown"}:
        return StorageTimeoutError(
            message=f"{operation.capitalize()} timed out: {error_message}",
            metadata=metadata,
        )

    if error_code in {"QuotaExceeded", "TooManyBuckets", "AccountProblem"}:
        return StorageQuotaExceededError(message=message, metadata=metadata)

    if error_code in {
        "InvalidRequest",
        "InvalidArgument",
        "MalformedXML",
        "InvalidBucketName",
        "InvalidObjectState",
        "KeyTooLongError",
        "MetadataTooLarge",
    }:
        return StorageValidationError(message=message, metadata=metadata)

    if operation == "upload":
        return StorageUploadError(message=message, metadata=metadata)
    if operation == "download":
        return StorageDownloadError(message=message, metadata=metadata)

    return StorageError(
        message=message,
        code="STORAGE_ERROR",
        status_code=500,
        metadata=metadata,
    )
