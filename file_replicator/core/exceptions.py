"""Custom exception classes for the application."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    All custom exceptions should inherit from this class. The fields mirror
    RFC 7807 problem details so errors render the same way in CLI summaries,
    JSON reports and log records.

    Attributes:
        status_code: HTTP-style status code for the error.
        detail: Human-readable error message.
        type: Error type identifier.
        title: Short, human-readable summary of the problem type.
        instance: Reference that identifies the specific occurrence of the problem.
        extra: Additional context-specific information about the error.

    Example:
        raise AppException(
            status_code=404,
            detail="Object not found",
            type="object-not-found",
            extra={"key": "text/hello.txt", "backend": "minio"},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            status_code: HTTP-style status code.
            detail: Human-readable error message.
            type: Error type identifier.
            title: Short summary of the problem type.
            instance: Reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title for a status code.

        Args:
            status_code: HTTP-style status code.

        Returns:
            Human-readable title for the status code.
        """
        titles = {
            400: "Bad Request",
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not Found",
            409: "Conflict",
            422: "Unprocessable Entity",
            429: "Too Many Requests",
            500: "Internal Server Error",
            502: "Bad Gateway",
            503: "Service Unavailable",
            504: "Gateway Timeout",
            507: "Insufficient Storage",
        }
        return titles.get(status_code, "Error")

    def to_dict(self) -> dict[str, Any]:
        """Render the exception as a problem-details dictionary."""
        data: dict[str, Any] = {
            "type": self.type,
            "title": self.title,
            "status": self.status_code,
            "detail": self.detail,
        }
        if self.instance:
            data["instance"] = self.instance
        if self.extra:
            data.update(self.extra)
        return data


class ConfigurationError(AppException):
    """Exception raised when settings are missing or inconsistent.

    Example:
        raise ConfigurationError(
            detail="Unknown backend 'gcs'",
            extra={"allowed": ["http", "aws", "minio"]},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "configuration-error",
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            extra: Additional context about the error.
        """
        super().__init__(
            status_code=500,
            detail=detail,
            type=type,
            title="Configuration Error",
            extra=extra,
        )
