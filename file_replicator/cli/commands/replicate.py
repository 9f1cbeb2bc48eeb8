"""Replicate local files to every configured storage backend."""

import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from file_replicator.cli.utils import coro, error, format_duration, success, warning
from file_replicator.core.exceptions import AppException
from file_replicator.core.settings import (
    ReplicatorSettings,
    SigningMode,
    StorageBackendType,
    get_settings,
)
from file_replicator.infra.logging import complete
from file_replicator.infra.storage.replication import (
    FileOutcome,
    OutcomeStatus,
    ReplicationOrchestrator,
    ReplicationReport,
)

_STATUS_COLORS = {
    OutcomeStatus.SUCCEEDED: "green",
    OutcomeStatus.PARTIAL: "yellow",
    OutcomeStatus.FAILED: "red",
}


def apply_overrides(
    settings: ReplicatorSettings,
    backends: tuple[str, ...] = (),
    concurrency: int | None = None,
    retries: int | None = None,
    signing_mode: str | None = None,
) -> ReplicatorSettings:
    """Return settings with command-line overrides applied.

    The replication section is re-validated, so overrides obey the same
    rules as environment variables.
    """
    update: dict[str, object] = {}
    if backends:
        update["backends"] = list(backends)
    if concurrency is not None:
        update["max_concurrent_files"] = concurrency
    if retries is not None:
        update["backend_retries"] = retries
    if signing_mode is not None:
        update["signing_mode"] = signing_mode
    if not update:
        return settings

    replication = type(settings.replication).model_validate(
        {**settings.replication.model_dump(), **update}
    )
    return settings.model_copy(update={"replication": replication})


def _print_outcome(outcome: FileOutcome) -> None:
    color = _STATUS_COLORS[outcome.status]
    target = outcome.key or "-"
    click.secho(f"{outcome.path} -> {target} [{outcome.status}]", fg=color, bold=True)
    if outcome.error:
        click.secho(f"    {outcome.error}", fg="red")
    for result in outcome.results:
        if result.success:
            detail = f"ok ({result.attempts} attempt(s), {format_duration(result.duration_seconds)})"
            click.secho(f"    {result.backend:<6} {detail}", fg="green")
        else:
            click.secho(f"    {result.backend:<6} FAILED: {result.error}", fg="red")


def _print_report(report: ReplicationReport) -> None:
    for outcome in report.outcomes:
        _print_outcome(outcome)

    summary = (
        f"{len(report.outcomes)} file(s): "
        f"{report.count(OutcomeStatus.SUCCEEDED)} succeeded, "
        f"{report.count(OutcomeStatus.PARTIAL)} partial, "
        f"{report.count(OutcomeStatus.FAILED)} failed "
        f"in {format_duration(report.duration_seconds)}"
    )
    click.echo()
    if report.exit_code:
        error(summary)
    elif report.count(OutcomeStatus.PARTIAL):
        warning(summary)
    else:
        success(summary)


@click.command(name="replicate")
@click.argument("paths", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.option(
    "--backend",
    "-b",
    "backends",
    multiple=True,
    type=click.Choice([t.value for t in StorageBackendType]),
    help="Backend to replicate to (repeatable). Default: REPLICATION_BACKENDS.",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1, max=256),
    help="Files replicated at the same time. Default: REPLICATION_MAX_CONCURRENT_FILES.",
)
@click.option(
    "--retries",
    type=click.IntRange(min=0, max=10),
    help="Extra attempts per backend upload. Default: REPLICATION_BACKEND_RETRIES.",
)
@click.option(
    "--signing-mode",
    type=click.Choice([m.value for m in SigningMode]),
    help="String-to-sign construction for the HTTP backend.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON.")
@coro
async def replicate(
    paths: tuple[Path, ...],
    backends: tuple[str, ...],
    concurrency: int | None,
    retries: int | None,
    signing_mode: str | None,
    as_json: bool,
) -> None:
    """Upload files to every configured backend concurrently.

    Each file is classified by content and stored as <category>/<file name>.
    Exits with status 1 if any file failed on every backend.

    \b
    Examples:
      file-replicator replicate report.pdf photo.jpg
      file-replicator replicate -b minio -b aws --retries 2 data/*.txt
    """
    try:
        settings = apply_overrides(get_settings(), backends, concurrency, retries, signing_mode)
        orchestrator = ReplicationOrchestrator.from_settings(settings)
    except (ValidationError, AppException) as e:
        error(f"Invalid configuration: {e}")
        sys.exit(2)

    async with orchestrator:
        report = await orchestrator.run(paths)

    complete()

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report)

    if report.exit_code:
        sys.exit(report.exit_code)
