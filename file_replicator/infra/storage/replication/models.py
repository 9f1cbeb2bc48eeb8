"""Replication data model.

Records produced while replicating files: the per-file upload task, one
result per backend, the aggregated per-file outcome and the run report.
All are frozen; results are built once and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from file_replicator.infra.storage.exceptions import ReplicationFailedError, StorageError


class FileState(StrEnum):
    """Lifecycle of one file inside a run."""

    PENDING = "pending"
    CLASSIFYING = "classifying"
    UPLOADING = "uploading"
    COMPLETED = "completed"


class OutcomeStatus(StrEnum):
    """Aggregated result of one file across every backend."""

    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadTask:
    """A classified file ready for upload.

    ``content`` is shared read-only by every backend upload.
    """

    path: Path
    content: bytes = field(repr=False)
    key: str
    content_sha256: str
    backends: tuple[str, ...]

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class BackendResult:
    """Outcome of one backend upload for one file.

    Attributes:
        backend: Backend name
        success: Whether the upload was accepted
        error: Human-readable failure detail
        error_code: ``StorageError.code`` of the failure, when known
        status_code: HTTP status of the last response, when known
        attempts: Upload attempts made (0 when the file never reached upload)
        duration_seconds: Wall time spent on this backend
    """

    backend: str
    success: bool
    error: str | None = None
    error_code: str | None = None
    status_code: int | None = None
    attempts: int = 0
    duration_seconds: float = 0.0

    @classmethod
    def failed(
        cls,
        backend: str,
        error: BaseException,
        attempts: int = 0,
        duration_seconds: float = 0.0,
    ) -> BackendResult:
        """Build a failed result from the exception that caused it."""
        status_code: int | None = None
        error_code: str | None = None
        if isinstance(error, StorageError):
            error_code = error.code
            status_code = getattr(error, "status", None) or error.extra.get("http_status")
        return cls(
            backend=backend,
            success=False,
            error=str(error) or type(error).__name__,
            error_code=error_code,
            status_code=status_code,
            attempts=attempts,
            duration_seconds=duration_seconds,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "backend": self.backend,
            "success": self.success,
            "error": self.error,
            "error_code": self.error_code,
            "status_code": self.status_code,
            "attempts": self.attempts,
            "duration_seconds": round(self.duration_seconds, 6),
        }


@dataclass(frozen=True)
class FileOutcome:
    """Aggregated outcome of one file.

    Always carries exactly one ``BackendResult`` per configured backend,
    even when the file could not be read or classified.
    """

    path: str
    key: str | None
    results: tuple[BackendResult, ...]
    state: FileState = FileState.COMPLETED
    error: str | None = None

    @property
    def status(self) -> OutcomeStatus:
        if self.error is not None or not any(r.success for r in self.results):
            return OutcomeStatus.FAILED
        if all(r.success for r in self.results):
            return OutcomeStatus.SUCCEEDED
        return OutcomeStatus.PARTIAL

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED

    @property
    def succeeded_backends(self) -> tuple[str, ...]:
        return tuple(r.backend for r in self.results if r.success)

    @property
    def failed_backends(self) -> tuple[str, ...]:
        return tuple(r.backend for r in self.results if not r.success)

    def result_for(self, backend: str) -> BackendResult | None:
        return next((r for r in self.results if r.backend == backend), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "key": self.key,
            "state": str(self.state),
            "status": str(self.status),
            "error": self.error,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True)
class ReplicationReport:
    """Outcomes of a whole run, in input order."""

    outcomes: tuple[FileOutcome, ...]
    duration_seconds: float = 0.0

    @property
    def failed_files(self) -> tuple[str, ...]:
        return tuple(o.path for o in self.outcomes if o.failed)

    @property
    def exit_code(self) -> int:
        """1 when any file failed on every backend, else 0."""
        return 1 if self.failed_files else 0

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    def raise_for_failures(self) -> None:
        """Raise ReplicationFailedError if any file failed entirely."""
        if self.failed_files:
            raise ReplicationFailedError(list(self.failed_files))

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": len(self.outcomes),
            "succeeded": self.count(OutcomeStatus.SUCCEEDED),
            "partial": self.count(OutcomeStatus.PARTIAL),
            "failed": self.count(OutcomeStatus.FAILED),
            "exit_code": self.exit_code,
            "duration_seconds": round(self.duration_seconds, 6),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
