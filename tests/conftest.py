"""Pytest configuration and shared fixtures.

Fixtures are organized by category:
    - Environment Fixtures: isolate tests from the developer's AWS_/S3_/LOG_ settings
    - Settings Fixtures: ready-made frozen settings objects
    - Backend Fixtures: in-memory StorageBackend implementations
    - File Fixtures: sample files on disk
"""

from __future__ import annotations

import asyncio
import hashlib
import os
from pathlib import Path

import pytest

from file_replicator.core.settings import (
    AwsStorageSettings,
    LoggingSettings,
    MinioStorageSettings,
    ReplicationSettings,
    ReplicatorSettings,
    clear_settings_cache,
)
from file_replicator.infra.logging import clear_log_context
from file_replicator.infra.storage.backends.protocol import UploadResult
from file_replicator.infra.storage.exceptions import StorageFileNotFoundError

_SETTINGS_ENV_PREFIXES = ("AWS_", "S3_", "REPLICATION_", "LOG_", "LOGGING_")

TEST_ACCESS_KEY = "AKIDEXAMPLE"
TEST_SECRET_KEY = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Run every test without ambient settings.

    Removes settings env vars, runs from an empty directory (no .env, no
    conf/) and clears cached settings and log context before and after.
    """
    for name in list(os.environ):
        if name.upper().startswith(_SETTINGS_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    clear_log_context()
    yield
    clear_settings_cache()
    clear_log_context()


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def aws_settings() -> AwsStorageSettings:
    """AWS settings with static test credentials."""
    return AwsStorageSettings(
        access_key=TEST_ACCESS_KEY,
        secret_key=TEST_SECRET_KEY,
        bucket="aws-bucket",
        region="us-east-1",
    )


@pytest.fixture
def minio_settings() -> MinioStorageSettings:
    """MinIO settings pointing at a local endpoint."""
    return MinioStorageSettings(endpoint="http://localhost:9000", bucket="minio-bucket")


@pytest.fixture
def replicator_settings(
    aws_settings: AwsStorageSettings,
    minio_settings: MinioStorageSettings,
) -> ReplicatorSettings:
    """Unified settings for all three backends."""
    return ReplicatorSettings(
        aws=aws_settings,
        minio=minio_settings,
        replication=ReplicationSettings(),
        logging=LoggingSettings(),
    )


# ============================================================================
# Backend Fixtures
# ============================================================================


class FakeBackend:
    """In-memory StorageBackend.

    Args:
        name: Backend name.
        fail_with: Exception raised by upload_object.
        failures: Raise ``fail_with`` this many times then succeed; None means always.
        fail_keys: Only fail for these keys; None means every key.
        delay: Seconds each upload sleeps before completing.
        startup_error: Exception raised by startup().
    """

    def __init__(
        self,
        name: str,
        fail_with: Exception | None = None,
        failures: int | None = None,
        fail_keys: set[str] | None = None,
        delay: float = 0.0,
        startup_error: Exception | None = None,
    ) -> None:
        self.name = name
        self.fail_with = fail_with
        self.failures_remaining = failures
        self.fail_keys = fail_keys
        self.delay = delay
        self.startup_error = startup_error
        self.objects: dict[str, bytes] = {}
        self.checksums: dict[str, str | None] = {}
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.started = False
        self.stopped = False

    @property
    def backend_name(self) -> str:
        return self.name

    @property
    def is_ready(self) -> bool:
        return self.started and not self.stopped

    async def startup(self) -> None:
        if self.startup_error is not None:
            raise self.startup_error
        self.started = True

    async def shutdown(self) -> None:
        self.stopped = True

    async def health_check(self) -> bool:
        return self.is_ready

    def _should_fail(self, key: str) -> bool:
        if self.fail_with is None:
            return False
        if self.fail_keys is not None and key not in self.fail_keys:
            return False
        if self.failures_remaining is None:
            return True
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            return True
        return False

    async def upload_object(
        self,
        key: str,
        data: bytes,
        bucket: str | None = None,
        content_type: str | None = None,
        checksum_sha256: str | None = None,
    ) -> UploadResult:
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self._should_fail(key):
                raise self.fail_with
            self.objects[key] = data
            self.checksums[key] = checksum_sha256
            return UploadResult(
                key=key,
                bucket=bucket or f"{self.name}-bucket",
                etag=hashlib.md5(data).hexdigest(),
                size_bytes=len(data),
                checksum_sha256=checksum_sha256,
                status_code=200,
            )
        finally:
            self.in_flight -= 1

    async def download_object(self, key: str, bucket: str | None = None) -> bytes:
        try:
            return self.objects[key]
        except KeyError:
            raise StorageFileNotFoundError(f"Object not found: {key}") from None

    async def delete_object(self, key: str, bucket: str | None = None) -> bool:
        return self.objects.pop(key, None) is not None

    async def object_exists(self, key: str, bucket: str | None = None) -> bool:
        return key in self.objects


@pytest.fixture
def make_backend() -> type[FakeBackend]:
    """Factory for configurable in-memory backends."""
    return FakeBackend


@pytest.fixture
def fake_backends() -> list[FakeBackend]:
    """Three healthy backends named like the real ones."""
    return [FakeBackend("http"), FakeBackend("aws"), FakeBackend("minio")]


# ============================================================================
# File Fixtures
# ============================================================================


@pytest.fixture
def hello_file(tmp_path: Path) -> Path:
    """A text file containing exactly ``hello``."""
    path = tmp_path / "hello.txt"
    path.write_bytes(b"hello")
    return path
