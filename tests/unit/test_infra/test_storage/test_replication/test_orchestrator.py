"""Unit tests for the multi-backend replication orchestrator."""

import asyncio
import hashlib
from unittest.mock import MagicMock

import pytest

from file_replicator.core.exceptions import ConfigurationError
from file_replicator.core.settings import ReplicationSettings
from file_replicator.infra.storage.exceptions import (
    InvalidKeyMaterialError,
    ReplicationFailedError,
    SigningError,
    StorageFileNotFoundError,
    StorageHttpError,
    StorageNotConfiguredError,
    StoragePermissionError,
    StorageTimeoutError,
    StorageUploadError,
)
from file_replicator.infra.storage.replication import (
    FileState,
    OutcomeStatus,
    ReplicationOrchestrator,
    is_retryable_upload_error,
)

HELLO_SHA256 = hashlib.sha256(b"hello").hexdigest()


def write(tmp_path, name: str, data: bytes):
    path = tmp_path / name
    path.write_bytes(data)
    return path


class TestRunFile:
    """Test replication of a single file."""

    @pytest.mark.asyncio
    async def test_hello_reaches_every_backend(self, fake_backends, hello_file):
        """A text file is stored under text/<name> on every backend."""
        orchestrator = ReplicationOrchestrator(fake_backends)

        outcome = await orchestrator.run_file(hello_file)

        assert outcome.key == "text/hello.txt"
        assert outcome.status is OutcomeStatus.SUCCEEDED
        assert outcome.state is FileState.COMPLETED
        assert [r.backend for r in outcome.results] == ["http", "aws", "minio"]
        for backend in fake_backends:
            assert backend.objects == {"text/hello.txt": b"hello"}
            assert backend.checksums["text/hello.txt"] == HELLO_SHA256
        assert all(r.attempts == 1 and r.status_code == 200 for r in outcome.results)

    @pytest.mark.asyncio
    async def test_pdf_goes_to_documents(self, fake_backends, tmp_path):
        path = write(tmp_path, "report.pdf", b"%PDF-1.7\n...")
        orchestrator = ReplicationOrchestrator(fake_backends)

        outcome = await orchestrator.run_file(path)

        assert outcome.key == "documents/report.pdf"

    @pytest.mark.asyncio
    async def test_one_backend_failure_is_isolated(self, make_backend, hello_file):
        """A failing backend does not affect the others."""
        backends = [
            make_backend("http", fail_with=StorageHttpError(403, "denied")),
            make_backend("aws"),
            make_backend("minio"),
        ]
        orchestrator = ReplicationOrchestrator(backends)

        outcome = await orchestrator.run_file(hello_file)

        assert outcome.status is OutcomeStatus.PARTIAL
        assert outcome.failed_backends == ("http",)
        assert outcome.succeeded_backends == ("aws", "minio")
        http = outcome.result_for("http")
        assert http.success is False
        assert http.status_code == 403
        assert http.error_code == "STORAGE_HTTP_ERROR"
        assert backends[1].objects and backends[2].objects

    @pytest.mark.asyncio
    async def test_failure_does_not_cancel_slow_sibling(self, make_backend, hello_file):
        """An immediate failure leaves a slower upload running to completion."""
        slow = make_backend("aws", delay=0.05)
        backends = [make_backend("http", fail_with=RuntimeError("boom")), slow]
        orchestrator = ReplicationOrchestrator(backends)

        outcome = await orchestrator.run_file(hello_file)

        assert outcome.result_for("aws").success is True
        assert slow.objects == {"text/hello.txt": b"hello"}
        assert outcome.result_for("http").error == "boom"

    @pytest.mark.asyncio
    async def test_all_backends_fail(self, make_backend, hello_file):
        error = StorageUploadError("unreachable")
        backends = [make_backend("http", fail_with=error), make_backend("aws", fail_with=error)]
        orchestrator = ReplicationOrchestrator(backends)

        outcome = await orchestrator.run_file(hello_file)

        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.state is FileState.COMPLETED
        assert outcome.key == "text/hello.txt"

    @pytest.mark.asyncio
    async def test_unreadable_file(self, fake_backends, tmp_path):
        """A missing file is reported for every backend and never uploaded."""
        orchestrator = ReplicationOrchestrator(fake_backends)

        outcome = await orchestrator.run_file(tmp_path / "missing.txt")

        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.state is FileState.PENDING
        assert outcome.key is None
        assert "missing.txt" in outcome.error
        assert len(outcome.results) == 3
        assert all(r.error_code == "REPLICATION_READ_ERROR" for r in outcome.results)
        assert all(r.attempts == 0 for r in outcome.results)
        assert all(backend.calls == 0 for backend in fake_backends)

    @pytest.mark.asyncio
    async def test_directory_is_unreadable(self, fake_backends, tmp_path):
        orchestrator = ReplicationOrchestrator(fake_backends)

        outcome = await orchestrator.run_file(tmp_path)

        assert outcome.state is FileState.PENDING
        assert outcome.failed

    @pytest.mark.asyncio
    async def test_classifier_failure(self, fake_backends, hello_file):
        classifier = MagicMock()
        classifier.classify.side_effect = ValueError("corrupt header")
        orchestrator = ReplicationOrchestrator(fake_backends, classifier)

        outcome = await orchestrator.run_file(hello_file)

        assert outcome.state is FileState.CLASSIFYING
        assert outcome.failed
        assert "corrupt header" in outcome.error
        assert all(r.error_code == "REPLICATION_CLASSIFICATION_ERROR" for r in outcome.results)
        assert all(backend.calls == 0 for backend in fake_backends)

    @pytest.mark.asyncio
    async def test_invalid_category(self, fake_backends, hello_file):
        classifier = MagicMock()
        classifier.classify.return_value = "a/b"
        orchestrator = ReplicationOrchestrator(fake_backends, classifier)

        outcome = await orchestrator.run_file(hello_file)

        assert outcome.state is FileState.CLASSIFYING
        assert outcome.failed

    @pytest.mark.asyncio
    async def test_empty_file_is_text(self, fake_backends, tmp_path):
        path = write(tmp_path, "empty.txt", b"")
        orchestrator = ReplicationOrchestrator(fake_backends)

        outcome = await orchestrator.run_file(path)

        assert outcome.key == "text/empty.txt"
        assert outcome.status is OutcomeStatus.SUCCEEDED
        assert fake_backends[0].objects["text/empty.txt"] == b""


class TestRetries:
    """Test per-backend retry behaviour."""

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, make_backend, hello_file):
        flaky = make_backend("http", fail_with=StorageHttpError(503, "slow down"), failures=2)
        orchestrator = ReplicationOrchestrator([flaky], backend_retries=2, retry_initial_delay=0.0)

        outcome = await orchestrator.run_file(hello_file)

        result = outcome.result_for("http")
        assert result.success is True
        assert result.attempts == 3
        assert flaky.calls == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, make_backend, hello_file):
        broken = make_backend("aws", fail_with=StorageTimeoutError("timed out"))
        orchestrator = ReplicationOrchestrator([broken], backend_retries=1, retry_initial_delay=0.0)

        outcome = await orchestrator.run_file(hello_file)

        result = outcome.result_for("aws")
        assert result.success is False
        assert result.attempts == 2
        assert result.error_code == "STORAGE_TIMEOUT"
        assert result.error == "timed out"

    @pytest.mark.asyncio
    async def test_signing_error_not_retried(self, make_backend, hello_file):
        backend = make_backend("http", fail_with=InvalidKeyMaterialError())
        orchestrator = ReplicationOrchestrator([backend], backend_retries=3, retry_initial_delay=0.0)

        outcome = await orchestrator.run_file(hello_file)

        assert outcome.result_for("http").attempts == 1
        assert outcome.result_for("http").error_code == "STORAGE_INVALID_KEY_MATERIAL"
        assert backend.calls == 1

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, make_backend, hello_file):
        backend = make_backend("http", fail_with=StorageHttpError(403, "denied"))
        orchestrator = ReplicationOrchestrator([backend], backend_retries=3, retry_initial_delay=0.0)

        await orchestrator.run_file(hello_file)

        assert backend.calls == 1

    @pytest.mark.asyncio
    async def test_no_retries_by_default(self, make_backend, hello_file):
        backend = make_backend("http", fail_with=StorageHttpError(503, "unavailable"))
        orchestrator = ReplicationOrchestrator([backend])

        outcome = await orchestrator.run_file(hello_file)

        assert outcome.result_for("http").attempts == 1

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (StorageHttpError(None, "connection reset"), True),
            (StorageHttpError(500, "internal"), True),
            (StorageHttpError(429, "slow down"), True),
            (StorageHttpError(408, "timeout"), True),
            (StorageHttpError(403, "denied"), False),
            (StorageHttpError(404, "no bucket"), False),
            (StorageUploadError("reset"), True),
            (StorageTimeoutError("slow"), True),
            (SigningError("bad digest"), False),
            (StorageNotConfiguredError(), False),
            (StoragePermissionError("denied"), False),
            (RuntimeError("bug"), False),
        ],
    )
    def test_is_retryable_upload_error(self, error, expected):
        assert is_retryable_upload_error(error) is expected


class TestRun:
    """Test whole runs over several files."""

    @pytest.mark.asyncio
    async def test_outcomes_keep_input_order(self, make_backend, tmp_path):
        paths = [write(tmp_path, f"f{i}.txt", b"x" * i) for i in range(5)]
        backend = make_backend("aws")
        orchestrator = ReplicationOrchestrator([backend], max_concurrent_files=5)

        report = await orchestrator.run(reversed(paths))

        assert [o.path for o in report.outcomes] == [str(p) for p in reversed(paths)]
        assert report.exit_code == 0
        assert report.count(OutcomeStatus.SUCCEEDED) == 5

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, make_backend, tmp_path):
        paths = [write(tmp_path, f"f{i}.txt", b"data") for i in range(6)]
        backend = make_backend("aws", delay=0.02)
        orchestrator = ReplicationOrchestrator([backend], max_concurrent_files=2)

        report = await orchestrator.run(paths)

        assert backend.max_in_flight == 2
        assert backend.calls == 6
        assert report.exit_code == 0

    @pytest.mark.asyncio
    async def test_run_continues_after_failed_file(self, make_backend, tmp_path, hello_file):
        """A file failing everywhere sets the exit code but later files still upload."""
        bad = write(tmp_path, "bad.txt", b"bad")
        error = StorageUploadError("rejected")
        backends = [
            make_backend("http", fail_with=error, fail_keys={"text/bad.txt"}),
            make_backend("aws", fail_with=error, fail_keys={"text/bad.txt"}),
        ]
        orchestrator = ReplicationOrchestrator(backends, max_concurrent_files=1)

        report = await orchestrator.run([bad, hello_file])

        assert report.failed_files == (str(bad),)
        assert report.exit_code == 1
        assert report.outcomes[1].status is OutcomeStatus.SUCCEEDED
        with pytest.raises(ReplicationFailedError) as exc_info:
            report.raise_for_failures()
        assert exc_info.value.paths == [str(bad)]

    @pytest.mark.asyncio
    async def test_partial_failure_exits_zero(self, make_backend, hello_file):
        backends = [make_backend("http", fail_with=StorageUploadError("no")), make_backend("aws")]
        orchestrator = ReplicationOrchestrator(backends)

        report = await orchestrator.run([hello_file])

        assert report.exit_code == 0
        assert report.count(OutcomeStatus.PARTIAL) == 1

    @pytest.mark.asyncio
    async def test_empty_run(self, fake_backends):
        report = await ReplicationOrchestrator(fake_backends).run([])

        assert report.outcomes == ()
        assert report.exit_code == 0


class TestConfiguration:
    """Test orchestrator construction."""

    def test_requires_backends(self):
        with pytest.raises(ConfigurationError):
            ReplicationOrchestrator([])

    def test_rejects_duplicate_names(self, make_backend):
        with pytest.raises(ConfigurationError) as exc_info:
            ReplicationOrchestrator([make_backend("aws"), make_backend("aws")])

        assert exc_info.value.extra["backends"] == ["aws", "aws"]

    @pytest.mark.parametrize(
        "kwargs", [{"max_concurrent_files": 0}, {"backend_retries": -1}]
    )
    def test_rejects_bad_bounds(self, fake_backends, kwargs):
        with pytest.raises(ConfigurationError):
            ReplicationOrchestrator(fake_backends, **kwargs)

    def test_from_settings(self, replicator_settings, fake_backends):
        settings = replicator_settings.model_copy(
            update={
                "replication": ReplicationSettings(max_concurrent_files=7, backend_retries=2)
            }
        )

        orchestrator = ReplicationOrchestrator.from_settings(settings, backends=fake_backends)

        assert orchestrator.max_concurrent_files == 7
        assert orchestrator.backend_retries == 2
        assert orchestrator.backend_names == ("http", "aws", "minio")

    def test_from_settings_builds_backends(self, replicator_settings):
        orchestrator = ReplicationOrchestrator.from_settings(replicator_settings)

        assert orchestrator.backend_names == ("http", "aws", "minio")

    def test_get_backend(self, fake_backends):
        orchestrator = ReplicationOrchestrator(fake_backends)

        assert orchestrator.get_backend("aws") is fake_backends[1]
        with pytest.raises(StorageNotConfiguredError):
            orchestrator.get_backend("gcs")


class TestLifecycle:
    """Test startup, shutdown and downloads."""

    @pytest.mark.asyncio
    async def test_context_manager_starts_and_stops(self, fake_backends):
        async with ReplicationOrchestrator(fake_backends):
            assert all(backend.started for backend in fake_backends)

        assert all(backend.stopped for backend in fake_backends)

    @pytest.mark.asyncio
    async def test_startup_failure_is_isolated(self, make_backend, hello_file):
        broken = make_backend("http", startup_error=RuntimeError("no network"))
        healthy = make_backend("aws")

        async with ReplicationOrchestrator([broken, healthy]) as orchestrator:
            outcome = await orchestrator.run_file(hello_file)

        assert healthy.started
        assert not broken.started
        assert outcome.result_for("aws").success

    @pytest.mark.asyncio
    async def test_download(self, fake_backends, hello_file):
        async with ReplicationOrchestrator(fake_backends) as orchestrator:
            await orchestrator.run_file(hello_file)

            assert await orchestrator.download("text/hello.txt", "minio") == b"hello"
            with pytest.raises(StorageFileNotFoundError):
                await orchestrator.download("text/other.txt", "minio")
            with pytest.raises(StorageNotConfiguredError):
                await orchestrator.download("text/hello.txt", "gcs")

    @pytest.mark.asyncio
    async def test_concurrent_runs_share_backends(self, fake_backends, tmp_path):
        a = write(tmp_path, "a.txt", b"a")
        b = write(tmp_path, "b.txt", b"b")
        orchestrator = ReplicationOrchestrator(fake_backends)

        first, second = await asyncio.gather(orchestrator.run([a]), orchestrator.run([b]))

        assert first.exit_code == second.exit_code == 0
        assert set(fake_backends[0].objects) == {"text/a.txt", "text/b.txt"}
