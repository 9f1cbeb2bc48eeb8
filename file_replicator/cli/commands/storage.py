"""Storage commands for inspecting configuration and the signed HTTP path.

This module provides CLI commands for:
- Showing backend configuration (credentials masked)
- Downloading an object back from one backend
- Computing a SigV4 Authorization header for debugging
"""

import sys
from pathlib import Path

import click

from file_replicator.cli.utils import coro, error, info, mask_secret, section, success, warning
from file_replicator.core.settings import SigningMode, StorageBackendType, get_settings
from file_replicator.infra.storage.backends import create_storage_backend
from file_replicator.infra.storage.exceptions import SigningError, StorageError
from file_replicator.infra.storage.signing import CanonicalRequest, RequestSigner, format_amz_date, hash_payload


def _format_bytes(size_bytes: float) -> str:
    """Format bytes to human-readable size (e.g., "1.5 MB")."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}" if unit != "B" else f"{int(size_bytes)} B"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"


@click.group(name="storage")
def storage() -> None:
    """Storage backend commands.

    Inspect backend configuration, fetch replicated objects and debug
    request signing.
    """


@storage.command(name="info")
def info_cmd() -> None:
    """Show backend configuration.

    Displays buckets, endpoints and replication options. Secrets are masked.
    """
    settings = get_settings()
    aws, minio, replication = settings.aws, settings.minio, settings.replication

    section("AWS (http + aws backends)")
    click.echo(f"Bucket: {aws.bucket}")
    click.echo(f"Region: {aws.region}")
    click.echo(f"HTTP endpoint: {aws.http_base_url()}")
    click.echo(f"SDK endpoint: {aws.endpoint or 'AWS S3 (default)'}")
    if aws.has_static_credentials:
        click.echo(f"Access key: {mask_secret(aws.access_key.get_secret_value())}")
        success("Credentials: Configured")
    else:
        warning("Credentials: Not configured (SDK uses the default chain; http backend will fail)")

    section("S3-compatible (minio backend)")
    click.echo(f"Endpoint: {minio.endpoint}")
    click.echo(f"Bucket: {minio.bucket}")
    click.echo(f"Region: {minio.region}")
    if minio.has_static_credentials:
        click.echo(f"Access key: {mask_secret(minio.access_key.get_secret_value())}")
    else:
        warning("Credentials: Not configured")

    section("Replication")
    click.echo(f"Backends: {', '.join(b.value for b in replication.backends)}")
    click.echo(f"Max concurrent files: {replication.max_concurrent_files}")
    click.echo(f"Backend retries: {replication.backend_retries}")
    click.echo(f"Retry initial delay: {replication.retry_initial_delay}s")
    click.echo(f"Signing mode: {replication.signing_mode.value}")


@storage.command(name="download")
@click.argument("key")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--backend",
    "-b",
    "backend_name",
    required=True,
    type=click.Choice([t.value for t in StorageBackendType]),
    help="Backend to download from.",
)
@click.option("--bucket", default=None, help="Bucket override (default: the backend's bucket).")
@coro
async def download(key: str, output: Path, backend_name: str, bucket: str | None) -> None:
    """Download KEY from one backend into OUTPUT.

    \b
    Example:
      file-replicator storage download text/file1.txt out.txt --backend minio
    """
    try:
        backend = create_storage_backend(backend_name, get_settings())
    except StorageError as e:
        error(f"Cannot create {backend_name} backend: {e}")
        sys.exit(1)

    try:
        await backend.startup()
        data = await backend.download_object(key, bucket=bucket)
    except StorageError as e:
        error(f"Download from {backend_name} failed: {e}")
        sys.exit(1)
    finally:
        await backend.shutdown()

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    success(f"Downloaded {key} from {backend_name} to {output} ({_format_bytes(len(data))})")


@storage.command(name="sign")
@click.option("--timestamp", help="Request time as YYYYMMDDTHHMMSSZ (default: now).")
@click.option("--digest", help="Hex SHA-256 of the body.")
@click.option(
    "--file",
    "file_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File whose SHA-256 is signed.",
)
@click.option("--key", default=None, help="Object key; builds the request URL for canonical signing.")
@click.option("--method", default="PUT", show_default=True, help="HTTP method.")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in SigningMode]),
    default=None,
    help="Signing mode (default: REPLICATION_SIGNING_MODE).",
)
def sign_cmd(
    timestamp: str | None,
    digest: str | None,
    file_path: Path | None,
    key: str | None,
    method: str,
    mode: str | None,
) -> None:
    """Print the SigV4 headers for a request, using the AWS_* credentials.

    \b
    Examples:
      file-replicator storage sign --file hello.txt --key text/hello.txt
      file-replicator storage sign --digest <sha256> --timestamp 20240101T000000Z --mode content-only
    """
    if (digest is None) == (file_path is None):
        error("Provide exactly one of --digest or --file")
        sys.exit(2)

    settings = get_settings()
    aws = settings.aws
    if not aws.has_static_credentials:
        error("AWS_ACCESS_KEY and AWS_SECRET_KEY must be set to sign requests")
        sys.exit(1)

    payload_sha256 = digest if digest is not None else hash_payload(file_path.read_bytes())
    amz_date = timestamp or format_amz_date()
    signing_mode = SigningMode(mode) if mode else settings.replication.signing_mode
    url = f"{aws.http_base_url()}/{key.lstrip('/')}" if key else aws.http_base_url() + "/"

    try:
        signer = RequestSigner(
            aws.access_key.get_secret_value(),
            aws.secret_key.get_secret_value(),
            region=aws.region,
            mode=signing_mode,
        )
        authorization = signer.sign(
            amz_date,
            payload_sha256,
            request=CanonicalRequest.from_url(method, url),
        )
    except SigningError as e:
        error(f"Cannot sign: {e}")
        sys.exit(1)

    info(f"{method.upper()} {url} ({signing_mode.value})")
    click.echo(f"Authorization: {authorization}")
    click.echo(f"x-amz-date: {amz_date}")
    click.echo(f"x-amz-content-sha256: {payload_sha256}")
