"""Tests for the file-replicator CLI commands.

Testing approach:
- Uses Click's CliRunner for command invocation
- Replaces real backends with in-memory fakes via the orchestrator factory
- Reads settings from environment variables set per test
"""

import hashlib
import json

import pytest
from click.testing import CliRunner

from file_replicator.cli.commands.replicate import apply_overrides
from file_replicator.cli.commands.samples import SAMPLE_FILES
from file_replicator.cli.main import cli
from file_replicator.core.settings import SigningMode, StorageBackendType, get_settings
from file_replicator.infra.storage.exceptions import StorageHttpError, StorageUploadError
from file_replicator.infra.storage.signing import CanonicalRequest, sign

HELLO_SHA256 = hashlib.sha256(b"hello").hexdigest()
ACCESS_KEY = "AKIDEXAMPLE"
SECRET_KEY = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"


@pytest.fixture
def cli_runner():
    """Create Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def aws_env(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY", ACCESS_KEY)
    monkeypatch.setenv("AWS_SECRET_KEY", SECRET_KEY)


@pytest.fixture
def installed_backends(monkeypatch, fake_backends):
    """Make the orchestrator build the in-memory backends named in settings."""
    by_name = {backend.backend_name: backend for backend in fake_backends}

    def create(settings):
        return [by_name[str(name)] for name in settings.replication.backends]

    monkeypatch.setattr(
        "file_replicator.infra.storage.replication.orchestrator.create_storage_backends",
        create,
    )
    return by_name


class TestCli:
    """Test the top-level group."""

    def test_help_lists_commands(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("replicate", "classify", "storage", "create-samples"):
            assert command in result.output

    def test_version(self, cli_runner):
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "file-replicator" in result.output
        assert "0.1.0" in result.output


class TestReplicateCommand:
    """Test the replicate command."""

    def test_replicates_to_every_backend(self, cli_runner, installed_backends, hello_file):
        result = cli_runner.invoke(cli, ["replicate", str(hello_file)])

        assert result.exit_code == 0, result.output
        assert "text/hello.txt" in result.stdout
        assert "1 succeeded" in result.stdout
        for backend in installed_backends.values():
            assert backend.objects == {"text/hello.txt": b"hello"}

    def test_backend_option_limits_targets(self, cli_runner, installed_backends, hello_file):
        result = cli_runner.invoke(cli, ["replicate", "-b", "minio", str(hello_file)])

        assert result.exit_code == 0, result.output
        assert installed_backends["minio"].objects
        assert not installed_backends["http"].objects
        assert not installed_backends["aws"].objects

    def test_backends_from_environment(
        self, cli_runner, installed_backends, hello_file, monkeypatch
    ):
        monkeypatch.setenv("REPLICATION_BACKENDS", "aws")

        result = cli_runner.invoke(cli, ["replicate", str(hello_file)])

        assert result.exit_code == 0, result.output
        assert installed_backends["aws"].objects
        assert not installed_backends["minio"].objects

    def test_partial_failure_exits_zero(self, cli_runner, installed_backends, hello_file):
        installed_backends["http"].fail_with = StorageHttpError(403, "denied")

        result = cli_runner.invoke(cli, ["replicate", str(hello_file)])

        assert result.exit_code == 0
        assert "1 partial" in result.stdout
        assert "FAILED: HTTP 403: denied" in result.stdout

    def test_total_failure_exits_one(self, cli_runner, installed_backends, hello_file, tmp_path):
        for backend in installed_backends.values():
            backend.fail_with = StorageUploadError("unreachable")
            backend.fail_keys = {"text/hello.txt"}
        other = tmp_path / "other.txt"
        other.write_text("other")

        result = cli_runner.invoke(cli, ["replicate", str(hello_file), str(other)])

        assert result.exit_code == 1
        assert installed_backends["aws"].objects == {"text/other.txt": b"other"}

    def test_missing_file_exits_one(self, cli_runner, installed_backends, tmp_path):
        result = cli_runner.invoke(cli, ["replicate", str(tmp_path / "missing.txt")])

        assert result.exit_code == 1
        assert "Cannot read" in result.stdout

    def test_json_report(self, cli_runner, installed_backends, hello_file):
        result = cli_runner.invoke(cli, ["replicate", "--json", str(hello_file)])

        assert result.exit_code == 0, result.output
        report = json.loads(result.stdout)
        assert report["files"] == 1
        assert report["exit_code"] == 0
        outcome = report["outcomes"][0]
        assert outcome["key"] == "text/hello.txt"
        assert [r["backend"] for r in outcome["results"]] == ["http", "aws", "minio"]

    def test_retries_option(self, cli_runner, installed_backends, hello_file, monkeypatch):
        monkeypatch.setenv("REPLICATION_RETRY_INITIAL_DELAY", "0")
        flaky = installed_backends["minio"]
        flaky.fail_with = StorageHttpError(503, "busy")
        flaky.failures_remaining = 1

        result = cli_runner.invoke(cli, ["replicate", "--retries", "1", "--json", str(hello_file)])

        assert result.exit_code == 0, result.output
        minio = json.loads(result.stdout)["outcomes"][0]["results"][2]
        assert minio["success"] is True
        assert minio["attempts"] == 2

    def test_invalid_configuration_exits_two(
        self, cli_runner, installed_backends, hello_file, monkeypatch
    ):
        monkeypatch.setenv("REPLICATION_BACKENDS", "gcs")

        result = cli_runner.invoke(cli, ["replicate", str(hello_file)])

        assert result.exit_code == 2
        assert "Invalid configuration" in result.output

    def test_requires_paths(self, cli_runner):
        result = cli_runner.invoke(cli, ["replicate"])

        assert result.exit_code == 2


class TestApplyOverrides:
    """Test command-line overrides of replication settings."""

    def test_no_overrides_returns_same_settings(self):
        settings = get_settings()

        assert apply_overrides(settings) is settings

    def test_overrides_are_validated(self):
        settings = apply_overrides(
            get_settings(),
            backends=("minio", "minio"),
            concurrency=2,
            retries=3,
            signing_mode="content-only",
        )

        assert settings.replication.backends == [StorageBackendType.MINIO]
        assert settings.replication.max_concurrent_files == 2
        assert settings.replication.backend_retries == 3
        assert settings.replication.signing_mode is SigningMode.CONTENT_ONLY


class TestClassifyCommand:
    """Test the classify command."""

    def test_prints_category_and_key(self, cli_runner, tmp_path, hello_file):
        pdf = tmp_path / "report.pdf"
        pdf.write_bytes(b"%PDF-1.7")

        result = cli_runner.invoke(cli, ["classify", str(hello_file), str(pdf)])

        assert result.exit_code == 0
        lines = result.stdout.splitlines()
        assert lines[0] == f"{hello_file}\ttext\ttext/hello.txt"
        assert lines[1] == f"{pdf}\tdocuments\tdocuments/report.pdf"

    def test_missing_file(self, cli_runner, tmp_path, hello_file):
        result = cli_runner.invoke(cli, ["classify", str(tmp_path / "nope.bin"), str(hello_file)])

        assert result.exit_code == 1
        assert "text/hello.txt" in result.stdout


class TestCreateSamplesCommand:
    """Test the create-samples command."""

    def test_creates_sample_files(self, cli_runner, tmp_path):
        target = tmp_path / "samples"

        result = cli_runner.invoke(cli, ["create-samples", str(target)])

        assert result.exit_code == 0
        for name, content in SAMPLE_FILES.items():
            assert (target / name).read_text() == content + "\n"

    def test_existing_files_are_kept(self, cli_runner, tmp_path):
        (tmp_path / "file1.txt").write_text("mine")

        result = cli_runner.invoke(cli, ["create-samples", str(tmp_path)])

        assert result.exit_code == 0
        assert (tmp_path / "file1.txt").read_text() == "mine"
        assert "skipping" in result.output
        assert "2 sample file(s)" in result.output

    def test_force_overwrites(self, cli_runner, tmp_path):
        (tmp_path / "file1.txt").write_text("mine")

        result = cli_runner.invoke(cli, ["create-samples", str(tmp_path), "--force"])

        assert result.exit_code == 0
        assert (tmp_path / "file1.txt").read_text() == SAMPLE_FILES["file1.txt"] + "\n"


class TestStorageCommands:
    """Test the storage command group."""

    def test_info_masks_secrets(self, cli_runner, aws_env):
        result = cli_runner.invoke(cli, ["storage", "info"])

        assert result.exit_code == 0
        assert "aws-bucket" in result.output
        assert "https://aws-bucket.s3.amazonaws.com" in result.output
        assert "AKID*******" in result.output
        assert SECRET_KEY not in result.output
        assert "Backends: http, aws, minio" in result.output

    def test_info_without_credentials(self, cli_runner):
        result = cli_runner.invoke(cli, ["storage", "info"])

        assert result.exit_code == 0
        assert "Not configured" in result.output

    def test_sign_canonical(self, cli_runner, aws_env):
        result = cli_runner.invoke(
            cli,
            [
                "storage",
                "sign",
                "--digest",
                HELLO_SHA256,
                "--timestamp",
                "20240101T000000Z",
                "--key",
                "text/hello.txt",
            ],
        )

        assert result.exit_code == 0, result.output
        expected = sign(
            SECRET_KEY,
            ACCESS_KEY,
            "us-east-1",
            "20240101T000000Z",
            HELLO_SHA256,
            request=CanonicalRequest.from_url(
                "PUT", "https://aws-bucket.s3.amazonaws.com/text/hello.txt"
            ),
        )
        assert f"Authorization: {expected}" in result.stdout
        assert "x-amz-date: 20240101T000000Z" in result.stdout
        assert f"x-amz-content-sha256: {HELLO_SHA256}" in result.stdout

    def test_sign_file_content_only(self, cli_runner, aws_env, hello_file):
        result = cli_runner.invoke(
            cli,
            [
                "storage",
                "sign",
                "--file",
                str(hello_file),
                "--timestamp",
                "20240101T000000Z",
                "--mode",
                "content-only",
            ],
        )

        assert result.exit_code == 0, result.output
        expected = sign(SECRET_KEY, ACCESS_KEY, "us-east-1", "20240101T000000Z", HELLO_SHA256)
        assert f"Authorization: {expected}" in result.stdout

    def test_sign_requires_one_input(self, cli_runner, aws_env, hello_file):
        neither = cli_runner.invoke(cli, ["storage", "sign"])
        both = cli_runner.invoke(
            cli, ["storage", "sign", "--digest", HELLO_SHA256, "--file", str(hello_file)]
        )

        assert neither.exit_code == 2
        assert both.exit_code == 2

    def test_sign_without_credentials(self, cli_runner):
        result = cli_runner.invoke(cli, ["storage", "sign", "--digest", HELLO_SHA256])

        assert result.exit_code == 1
        assert "AWS_ACCESS_KEY" in result.output

    def test_sign_bad_timestamp(self, cli_runner, aws_env):
        result = cli_runner.invoke(
            cli, ["storage", "sign", "--digest", HELLO_SHA256, "--timestamp", "yesterday"]
        )

        assert result.exit_code == 1
        assert "Cannot sign" in result.output

    def test_download(self, cli_runner, monkeypatch, tmp_path, make_backend):
        backend = make_backend("minio")
        backend.objects["text/hello.txt"] = b"hello"
        monkeypatch.setattr(
            "file_replicator.cli.commands.storage.create_storage_backend",
            lambda name, settings: backend,
        )
        output = tmp_path / "out" / "hello.txt"

        result = cli_runner.invoke(
            cli, ["storage", "download", "text/hello.txt", str(output), "-b", "minio"]
        )

        assert result.exit_code == 0, result.output
        assert output.read_bytes() == b"hello"
        assert backend.stopped

    def test_download_missing_object(self, cli_runner, monkeypatch, tmp_path, make_backend):
        backend = make_backend("minio")
        monkeypatch.setattr(
            "file_replicator.cli.commands.storage.create_storage_backend",
            lambda name, settings: backend,
        )

        result = cli_runner.invoke(
            cli, ["storage", "download", "text/missing.txt", str(tmp_path / "x"), "-b", "minio"]
        )

        assert result.exit_code == 1
        assert "Download from minio failed" in result.output
        assert backend.stopped
