"""Concurrent replication of local files to several storage backends."""

from .models import (
    BackendResult,
    FileOutcome,
    FileState,
    OutcomeStatus,
    ReplicationReport,
    UploadTask,
)
from .orchestrator import ReplicationOrchestrator, is_retryable_upload_error

__all__ = [
    "BackendResult",
    "FileOutcome",
    "FileState",
    "OutcomeStatus",
    "ReplicationOrchestrator",
    "ReplicationReport",
    "UploadTask",
    "is_retryable_upload_error",
]
