"""Multi-backend replication orchestrator.

Each file goes through ``PENDING -> CLASSIFYING -> UPLOADING -> COMPLETED``:
its bytes are read and classified once, then one upload task per backend
runs concurrently. Every backend task turns its own failure into a
``BackendResult``, so one backend failing never cancels the others, and a
file only completes after every backend has reported.

Example:
    ```python
    async with ReplicationOrchestrator.from_settings(get_settings()) as orchestrator:
        report = await orchestrator.run(["a.pdf", "b.txt"])
    sys.exit(report.exit_code)
    ```
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Sequence
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Self

from file_replicator.core.exceptions import ConfigurationError
from file_replicator.infra.classification import FileClassifier, SignatureClassifier, build_storage_key
from file_replicator.infra.logging import log_context
from file_replicator.infra.storage.backends.factory import create_storage_backends
from file_replicator.infra.storage.exceptions import (
    ClassificationError,
    FileReadError,
    SigningError,
    StorageError,
    StorageHttpError,
    StorageNotConfiguredError,
    StoragePermissionError,
    StorageValidationError,
)
from file_replicator.infra.storage.signing import hash_payload
from file_replicator.utils.retry import RetryError, retry

from .models import BackendResult, FileOutcome, FileState, ReplicationReport, UploadTask

if TYPE_CHECKING:
    from file_replicator.core.settings import ReplicatorSettings
    from file_replicator.infra.storage.backends.protocol import StorageBackend, UploadResult

logger = logging.getLogger(__name__)

_NON_RETRYABLE = (SigningError, StorageNotConfiguredError, StoragePermissionError, StorageValidationError)
_RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


def is_retryable_upload_error(error: Exception) -> bool:
    """Whether another attempt at the same upload could succeed.

    Signing, configuration, permission and validation errors are final, as
    are 4xx HTTP responses other than 408 and 429.
    """
    if isinstance(error, _NON_RETRYABLE):
        return False
    if isinstance(error, StorageHttpError) and error.status is not None:
        return error.status >= 500 or error.status in _RETRYABLE_CLIENT_STATUSES
    return isinstance(error, StorageError)


class ReplicationOrchestrator:
    """Replicates local files to every configured backend.

    Args:
        backends: Upload backends; names must be unique.
        classifier: Maps content to a category (key prefix).
        max_concurrent_files: Files processed at the same time.
        backend_retries: Extra attempts per backend after a retryable failure.
        retry_initial_delay: First backoff delay in seconds.
        retry_max_delay: Upper bound of a single backoff delay.

    Raises:
        ConfigurationError: No backends, duplicate names, or invalid bounds.
    """

    def __init__(
        self,
        backends: Sequence[StorageBackend],
        classifier: FileClassifier | None = None,
        *,
        max_concurrent_files: int = 4,
        backend_retries: int = 0,
        retry_initial_delay: float = 0.5,
        retry_max_delay: float = 10.0,
    ) -> None:
        if not backends:
            raise ConfigurationError("At least one storage backend is required")

        names = [backend.backend_name for backend in backends]
        if len(set(names)) != len(names):
            raise ConfigurationError("Backend names must be unique", extra={"backends": names})
        if max_concurrent_files < 1:
            raise ConfigurationError("max_concurrent_files must be at least 1")
        if backend_retries < 0:
            raise ConfigurationError("backend_retries must not be negative")

        self._backends = tuple(backends)
        self.classifier = classifier or SignatureClassifier()
        self.max_concurrent_files = max_concurrent_files
        self.backend_retries = backend_retries
        self.retry_initial_delay = retry_initial_delay
        self.retry_max_delay = retry_max_delay

    @classmethod
    def from_settings(
        cls,
        settings: ReplicatorSettings,
        backends: Sequence[StorageBackend] | None = None,
        classifier: FileClassifier | None = None,
    ) -> ReplicationOrchestrator:
        """Build an orchestrator (and, unless given, its backends) from settings."""
        replication = settings.replication
        return cls(
            backends if backends is not None else create_storage_backends(settings),
            classifier,
            max_concurrent_files=replication.max_concurrent_files,
            backend_retries=replication.backend_retries,
            retry_initial_delay=replication.retry_initial_delay,
            retry_max_delay=replication.retry_max_delay,
        )

    @property
    def backends(self) -> tuple[StorageBackend, ...]:
        return self._backends

    @property
    def backend_names(self) -> tuple[str, ...]:
        return tuple(backend.backend_name for backend in self._backends)

    def get_backend(self, name: str) -> StorageBackend:
        """Return the backend called ``name``.

        Raises:
            StorageNotConfiguredError: If no such backend is configured.
        """
        for backend in self._backends:
            if backend.backend_name == name:
                return backend
        raise StorageNotConfiguredError(
            f"Backend {name!r} is not configured",
            metadata={"backend": name, "configured": list(self.backend_names)},
        )

    # ========================================================================
    # Lifecycle Management
    # ========================================================================

    async def startup(self) -> None:
        """Start every backend.

        A backend that fails to start is logged and left unready; its
        uploads then fail per file while the others proceed.
        """
        async with asyncio.TaskGroup() as tg:
            for backend in self._backends:
                tg.create_task(self._start_backend(backend))

    async def _start_backend(self, backend: StorageBackend) -> None:
        with log_context(backend=backend.backend_name):
            try:
                await backend.startup()
            except Exception as e:
                logger.error("Backend failed to start", extra={"error": str(e)})

    async def shutdown(self) -> None:
        """Shut down every backend, logging (not raising) close errors."""
        for backend in self._backends:
            try:
                await backend.shutdown()
            except Exception as e:
                logger.warning(
                    "Backend shutdown failed",
                    extra={"backend": backend.backend_name, "error": str(e)},
                )

    async def __aenter__(self) -> Self:
        await self.startup()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    # ========================================================================
    # Replication
    # ========================================================================

    async def run(self, paths: Iterable[str | Path]) -> ReplicationReport:
        """Replicate every path, at most ``max_concurrent_files`` at a time.

        Per-file failures never stop the run. Outcomes keep input order.
        """
        started = time.perf_counter()
        semaphore = asyncio.Semaphore(self.max_concurrent_files)

        async def bounded(path: str | Path) -> FileOutcome:
            async with semaphore:
                return await self.run_file(path)

        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(bounded(path)) for path in paths]

        report = ReplicationReport(
            outcomes=tuple(task.result() for task in tasks),
            duration_seconds=time.perf_counter() - started,
        )
        logger.info(
            "Replication run finished",
            extra={
                "files": len(report.outcomes),
                "failed_files": len(report.failed_files),
                "duration_seconds": round(report.duration_seconds, 3),
            },
        )
        return report

    async def run_file(self, path: str | Path) -> FileOutcome:
        """Replicate one file to every backend.

        Never raises for read, classification or upload failures; they are
        recorded in the outcome, which always holds one result per backend.
        """
        path = Path(path)
        state = FileState.PENDING

        with log_context(file=str(path)):
            logger.debug("File state changed", extra={"state": str(state)})
            try:
                content = await self._read(path)
                state = self._advance(FileState.CLASSIFYING)
                task = await self._prepare(path, content)
            except (FileReadError, ClassificationError) as e:
                logger.warning("File skipped", extra={"state": str(state), "error": str(e)})
                return FileOutcome(
                    path=str(path),
                    key=None,
                    results=tuple(
                        BackendResult.failed(name, e, attempts=0) for name in self.backend_names
                    ),
                    state=state,
                    error=str(e),
                )

            with log_context(key=task.key):
                state = self._advance(FileState.UPLOADING)
                async with asyncio.TaskGroup() as tg:
                    uploads = [
                        tg.create_task(self._upload_to(backend, task)) for backend in self._backends
                    ]
                results = tuple(upload.result() for upload in uploads)
                state = self._advance(FileState.COMPLETED)

                outcome = FileOutcome(path=str(path), key=task.key, results=results, state=state)
                log = logger.error if outcome.failed else logger.info
                log(
                    "File replicated",
                    extra={
                        "status": str(outcome.status),
                        "succeeded": list(outcome.succeeded_backends),
                        "failed": list(outcome.failed_backends),
                    },
                )
                return outcome

    async def download(self, key: str, backend_name: str, bucket: str | None = None) -> bytes:
        """Fetch an object back from one backend."""
        backend = self.get_backend(backend_name)
        with log_context(backend=backend_name, key=key):
            return await backend.download_object(key, bucket=bucket)

    # ========================================================================
    # Internals
    # ========================================================================

    @staticmethod
    def _advance(state: FileState) -> FileState:
        logger.debug("File state changed", extra={"state": str(state)})
        return state

    @staticmethod
    async def _read(path: Path) -> bytes:
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise FileReadError(str(path), e.strerror or str(e)) from e

    async def _prepare(self, path: Path, content: bytes) -> UploadTask:
        try:
            category = self.classifier.classify(content)
        except ClassificationError:
            raise
        except Exception as e:
            raise ClassificationError(str(path), str(e)) from e

        key = build_storage_key(category, path)
        digest = await asyncio.to_thread(hash_payload, content)
        logger.debug("File classified", extra={"category": category, "key": key})

        return UploadTask(
            path=path,
            content=content,
            key=key,
            content_sha256=digest,
            backends=self.backend_names,
        )

    async def _upload_to(self, backend: StorageBackend, task: UploadTask) -> BackendResult:
        """Upload to one backend, converting any failure into a result."""
        name = backend.backend_name
        attempts = 0
        started = time.perf_counter()

        async def attempt() -> UploadResult:
            nonlocal attempts
            attempts += 1
            return await backend.upload_object(
                task.key,
                task.content,
                checksum_sha256=task.content_sha256,
            )

        upload = attempt
        if self.backend_retries:
            upload = retry(
                max_attempts=self.backend_retries + 1,
                initial_delay=self.retry_initial_delay,
                max_delay=self.retry_max_delay,
                exceptions=(StorageError,),
                retry_if=is_retryable_upload_error,
            )(attempt)

        with log_context(backend=name):
            try:
                result = await upload()
            except RetryError as e:
                error: Exception = e.last_exception
            except Exception as e:
                error = e
            else:
                duration = time.perf_counter() - started
                logger.info(
                    "Backend upload succeeded",
                    extra={"attempts": attempts, "duration_seconds": round(duration, 3)},
                )
                return BackendResult(
                    backend=name,
                    success=True,
                    status_code=result.status_code,
                    attempts=attempts,
                    duration_seconds=duration,
                )

            duration = time.perf_counter() - started
            logger.warning(
                "Backend upload failed",
                extra={"attempts": attempts, "error": str(error)},
            )
            return BackendResult.failed(name, error, attempts=attempts, duration_seconds=duration)
