"""Typer CLI entrypoint for contractgen."""

from __future__ import annotations

import logging
import signal
from pathlib import Path
from typing import Annotated

import typer
from docx import Document

from apps.cli.format_human import render_bulk_summary, render_generation_summary
from apps.cli.io import bulk_report_path, merge_report_path, write_bytes_atomic, write_json_atomic
from contractgen.archive.storage import LocalFileStorage
from contractgen.archive.writer import ImmutableArchiveWriter
from contractgen.config.models import GenerationSettings
from contractgen.config.settings_loader import load_settings
from contractgen.orchestrator.bulk import BulkGenerationOrchestrator, RunContext
from contractgen.orchestrator.models import GenerationStatus, RunStatus
from contractgen.orchestrator.pipeline import generate_contract
from contractgen.providers.models import ProviderRecord
from contractgen.templates.docx_import import document_body_text
from contractgen.templates.map_store import TemplateMapStore
from contractgen.templates.placeholder_parser import parse_placeholders
from contractgen.utils.errors import BatchValidationError, StorageError
from contractgen.workspace.loader import Workspace, load_workspace

app = typer.Typer(help="Provider contract generation CLI", rich_markup_mode=None)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_VALIDATION = 2
EXIT_PARTIAL = 3
EXIT_INTEGRITY = 4
EXIT_CANCELLED = 130

_LOG_LEVELS = {"debug", "info", "warning", "error"}


@app.callback()
def cli_callback(
    log_level: Annotated[
        str, typer.Option("--log-level", help="One of: debug, info, warning, error.")
    ] = "warning",
) -> None:
    """Configure logging for every command."""

    normalized = log_level.lower().strip()
    if normalized not in _LOG_LEVELS:
        typer.echo("ERROR: --log-level must be one of: debug, info, warning, error.")
        raise typer.Exit(code=EXIT_FAILED)
    logging.basicConfig(level=normalized.upper(), format="%(message)s")


@app.command("placeholders")
def placeholders_command(
    template: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
) -> None:
    """List placeholders and unsupported brace sequences in a .docx template."""

    try:
        body = document_body_text(Document(str(template)))
    except Exception as exc:  # noqa: BLE001
        typer.echo(f"ERROR: failed to read template: {exc}")
        raise typer.Exit(code=EXIT_FAILED)

    result = parse_placeholders(body)
    typer.echo(f"placeholders={len(result.fields)}")
    for name in result.fields:
        typer.echo(f"- {name}")
    if result.unsupported:
        typer.echo(f"unsupported={len(result.unsupported)}")
        for item in result.unsupported:
            typer.echo(f"- {item.kind} at {item.start}: {item.text}")
    raise typer.Exit(code=EXIT_OK)


@app.command("generate")
def generate_command(
    workspace: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    provider: Annotated[str, typer.Option(..., help="Provider id.")],
    out_dir: Annotated[Path, typer.Option()] = Path("."),
    settings: Annotated[Path | None, typer.Option()] = None,
    mapping_store: Annotated[Path | None, typer.Option()] = None,
    no_archive: Annotated[
        bool, typer.Option("--no-archive", help="Skip the immutable archive write.")
    ] = False,
) -> None:
    """Generate one contract and write it with its merge report."""

    settings_model, loaded = _load_inputs(settings, workspace, mapping_store)
    record = loaded.get_provider(provider)
    if record is None:
        typer.echo(f"ERROR: unknown provider: {provider}")
        raise typer.Exit(code=EXIT_VALIDATION)
    template = loaded.template_for(record)
    if template is None:
        typer.echo(f"ERROR: no template assigned for provider {record.name} ({record.id})")
        raise typer.Exit(code=EXIT_VALIDATION)

    try:
        mapping = loaded.mapping_for(template.id)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_FAILED)

    outcome = generate_contract(
        record,
        template,
        mapping,
        loaded.dynamic_blocks(),
        archive=None if no_archive else _archive_writer(settings_model),
        settings=settings_model,
    )

    try:
        if outcome.artifact is not None and outcome.file_name:
            write_bytes_atomic(out_dir / outcome.file_name, outcome.artifact)
        report_name = outcome.file_name or f"{record.id}.docx"
        write_json_atomic(merge_report_path(out_dir, report_name), outcome.summary())
    except OSError as exc:
        typer.echo(f"ERROR: write output failed: {exc}")
        raise typer.Exit(code=EXIT_FAILED)

    typer.echo(render_generation_summary(outcome))
    if outcome.status is GenerationStatus.SUCCESS:
        typer.echo("INFO: success")
        raise typer.Exit(code=EXIT_OK)
    if outcome.status is GenerationStatus.PARTIAL_SUCCESS:
        typer.echo("WARNING: generated with unresolved placeholders")
        raise typer.Exit(code=EXIT_PARTIAL)
    typer.echo("ERROR: generation failed")
    raise typer.Exit(code=EXIT_FAILED)


@app.command("bulk")
def bulk_command(
    workspace: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    provider: Annotated[
        list[str] | None, typer.Option("--provider", help="Provider id; repeatable.")
    ] = None,
    all_providers: Annotated[
        bool, typer.Option("--all", help="Select every provider in the workspace.")
    ] = False,
    out_dir: Annotated[Path, typer.Option()] = Path("."),
    settings: Annotated[Path | None, typer.Option()] = None,
    mapping_store: Annotated[Path | None, typer.Option()] = None,
    no_archive: Annotated[
        bool, typer.Option("--no-archive", help="Skip the immutable archive writes.")
    ] = False,
) -> None:
    """Generate contracts for many providers and write a bundle zip."""

    if all_providers and provider:
        typer.echo("ERROR: --all and --provider cannot be used together.")
        raise typer.Exit(code=EXIT_FAILED)

    settings_model, loaded = _load_inputs(settings, workspace, mapping_store)
    selection = _select_providers(loaded, provider or [], all_providers)

    orchestrator = BulkGenerationOrchestrator(
        loaded,
        archive=None if no_archive else _archive_writer(settings_model),
        settings=settings_model,
    )
    context = RunContext()
    previous_handler = signal.signal(
        signal.SIGINT, lambda signum, frame: context.cancel_token.cancel()
    )
    try:
        report = orchestrator.run(selection, context)
    except BatchValidationError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_VALIDATION)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    try:
        if report.bundle is not None and report.bundle_name:
            write_bytes_atomic(out_dir / report.bundle_name, report.bundle)
        write_json_atomic(bulk_report_path(out_dir), report.summary())
    except OSError as exc:
        typer.echo(f"ERROR: write output failed: {exc}")
        raise typer.Exit(code=EXIT_FAILED)

    typer.echo(render_bulk_summary(report))
    if report.status is RunStatus.CANCELLED:
        typer.echo("WARNING: run cancelled")
        raise typer.Exit(code=EXIT_CANCELLED)
    if report.failed_count or report.partial_count:
        raise typer.Exit(code=EXIT_PARTIAL)
    typer.echo("INFO: success")
    raise typer.Exit(code=EXIT_OK)


@app.command("verify")
def verify_command(
    archive_root: Annotated[Path, typer.Option(..., file_okay=False, dir_okay=True)],
    contract_id: Annotated[str, typer.Option(...)],
    generated_at: Annotated[
        str | None, typer.Option(help="Version timestamp; newest when omitted.")
    ] = None,
) -> None:
    """Recompute an archived contract's hash and compare it with its snapshot."""

    writer = ImmutableArchiveWriter(LocalFileStorage(archive_root))
    try:
        snapshot = writer.get_snapshot(contract_id, generated_at)
    except (StorageError, ValueError) as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_FAILED)

    try:
        intact = writer.verify(snapshot)
    except StorageError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_FAILED)
    if intact:
        typer.echo(f"INFO: intact {snapshot.artifact_key} sha256={snapshot.file_hash}")
        raise typer.Exit(code=EXIT_OK)
    typer.echo(f"ERROR: integrity mismatch for {snapshot.artifact_key}")
    raise typer.Exit(code=EXIT_INTEGRITY)


@app.command("versions")
def versions_command(
    archive_root: Annotated[Path, typer.Option(..., file_okay=False, dir_okay=True)],
    contract_id: Annotated[str, typer.Option(...)],
) -> None:
    """List archived versions of a contract, newest first."""

    writer = ImmutableArchiveWriter(LocalFileStorage(archive_root))
    try:
        versions = writer.list_versions(contract_id)
    except (StorageError, ValueError) as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_FAILED)

    typer.echo(f"versions={len(versions)}")
    for snapshot in versions:
        typer.echo(
            f"- {snapshot.generated_at.isoformat()} {snapshot.file_name} "
            f"sha256={snapshot.file_hash} version={snapshot.version}"
        )
    raise typer.Exit(code=EXIT_OK)


def _load_inputs(
    settings_path: Path | None, workspace_path: Path, mapping_store_path: Path | None
) -> tuple[GenerationSettings, Workspace]:
    try:
        settings_model = load_settings(settings_path)
        store = TemplateMapStore(mapping_store_path) if mapping_store_path else None
        loaded = load_workspace(workspace_path, mapping_store=store)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_FAILED)
    return settings_model, loaded


def _select_providers(
    workspace: Workspace, provider_ids: list[str], all_providers: bool
) -> list[ProviderRecord]:
    if all_providers:
        return workspace.providers

    selection: list[ProviderRecord] = []
    unknown: list[str] = []
    for provider_id in provider_ids:
        record = workspace.get_provider(provider_id)
        if record is None:
            unknown.append(provider_id)
        else:
            selection.append(record)
    if unknown:
        typer.echo(f"ERROR: unknown providers: {', '.join(unknown)}")
        raise typer.Exit(code=EXIT_VALIDATION)
    return selection


def _archive_writer(settings: GenerationSettings) -> ImmutableArchiveWriter:
    return ImmutableArchiveWriter(LocalFileStorage(Path(settings.archive_root)), settings=settings)


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
