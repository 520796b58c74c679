"""Bulk generation: validate a selection, then generate contracts one at a time."""

from __future__ import annotations

import hashlib
import io
import logging
import threading
import time
import uuid
import zipfile
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from contractgen.archive.writer import ImmutableArchiveWriter
from contractgen.blocks.models import DynamicBlockDefinition
from contractgen.config.models import GenerationSettings
from contractgen.orchestrator.models import (
    BulkRunReport,
    GenerationOutcome,
    GenerationStatus,
    RunProgress,
    RunStatus,
)
from contractgen.orchestrator.pipeline import generate_contract
from contractgen.providers.models import ProviderRecord
from contractgen.render.docx_encoder import DocxArtifactEncoder
from contractgen.templates.models import TemplateDefinition, TemplateMapping
from contractgen.utils.errors import BatchValidationError
from contractgen.utils.events import dump_json, log_event

logger = logging.getLogger("contractgen.bulk")

MANIFEST_NAME = "manifest.json"


class ContractRepository(Protocol):
    """Read-only lookups the orchestrator needs."""

    def template_for(self, provider: ProviderRecord) -> TemplateDefinition | None: ...

    def mapping_for(self, template_id: str) -> TemplateMapping | None: ...

    def dynamic_blocks(self) -> Mapping[str, DynamicBlockDefinition]: ...


class CancelToken:
    """Cooperative cancellation flag, safe to set from another thread."""

    def __init__(self) -> None:
        self._evt = threading.Event()

    def cancel(self) -> None:
        self._evt.set()

    @property
    def is_cancelled(self) -> bool:
        return self._evt.is_set()


@dataclass
class RunContext:
    """Caller-owned state of one bulk run."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    cancel_token: CancelToken = field(default_factory=CancelToken)
    progress: RunProgress = field(default_factory=RunProgress)
    status: RunStatus = RunStatus.IDLE
    on_progress: Callable[[RunProgress], None] | None = None

    def publish(self) -> None:
        if self.on_progress is not None:
            self.on_progress(self.progress.model_copy())


class BulkGenerationOrchestrator:
    """Run contract generation for many providers, strictly sequentially.

    Per-item failures are recorded and never abort the batch. Cancellation is
    honoured between items only.
    """

    def __init__(
        self,
        repository: ContractRepository,
        *,
        encoder: DocxArtifactEncoder | None = None,
        archive: ImmutableArchiveWriter | None = None,
        settings: GenerationSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.repository = repository
        self.encoder = encoder or DocxArtifactEncoder()
        self.archive = archive
        self.settings = settings or GenerationSettings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def validate(self, providers: Sequence[ProviderRecord]) -> dict[str, TemplateDefinition]:
        """Return the template assigned to every provider, or raise for all offenders."""

        if not providers:
            raise BatchValidationError("No providers selected", empty_selection=True)

        assigned: dict[str, TemplateDefinition] = {}
        missing: list[ProviderRecord] = []
        for provider in providers:
            template = self.repository.template_for(provider)
            if template is None:
                missing.append(provider)
            else:
                assigned[provider.id] = template

        if missing:
            names = ", ".join(f"{item.name} ({item.id})" for item in missing)
            raise BatchValidationError(
                f"No template assigned for: {names}",
                missing_template=[item.id for item in missing],
            )
        return assigned

    def run(
        self, providers: Sequence[ProviderRecord], context: RunContext | None = None
    ) -> BulkRunReport:
        ctx = context or RunContext()
        started = time.perf_counter()

        ctx.status = RunStatus.VALIDATING
        try:
            assigned = self.validate(providers)
        except BatchValidationError as exc:
            ctx.status = RunStatus.IDLE
            log_event(
                logger,
                logging.WARNING,
                "bulk_rejected",
                ctx.run_id,
                empty_selection=exc.empty_selection,
                missing_template=exc.missing_template,
            )
            raise

        total = len(providers)
        ctx.progress.reset(total)
        ctx.status = RunStatus.RUNNING
        log_event(logger, logging.INFO, "bulk_started", ctx.run_id, total=total)

        blocks = self.repository.dynamic_blocks()
        outcomes: list[GenerationOutcome] = []
        for index, provider in enumerate(providers, start=1):
            if ctx.cancel_token.is_cancelled:
                ctx.status = RunStatus.CANCELLED
                break

            ctx.progress.current_operation = (
                f"Generating contract for {provider.name} ({index}/{total})"
            )
            ctx.publish()

            outcome = self._generate_one(provider, assigned[provider.id], blocks, ctx.run_id)
            outcomes.append(outcome)
            ctx.progress.advance(outcome.status)
            ctx.publish()
            log_event(
                logger,
                logging.INFO,
                "item_completed",
                ctx.run_id,
                index=index,
                total=total,
                provider_id=provider.id,
                template_id=outcome.template_id,
                status=outcome.status.value,
                warning_count=len(outcome.warnings),
                error=outcome.error,
            )

        cancelled_count = total - len(outcomes)
        if ctx.status is RunStatus.CANCELLED:
            ctx.progress.current_operation = (
                f"Cancelled after {len(outcomes)} of {total} contracts"
            )
            log_event(
                logger,
                logging.WARNING,
                "bulk_cancelled",
                ctx.run_id,
                completed=len(outcomes),
                unprocessed=cancelled_count,
            )
        else:
            ctx.status = RunStatus.COMPLETED
            ctx.progress.current_operation = f"Completed {len(outcomes)} of {total} contracts"
        ctx.publish()

        report = BulkRunReport(
            run_id=ctx.run_id,
            status=ctx.status,
            outcomes=outcomes,
            total=total,
            success_count=ctx.progress.success_count,
            partial_count=ctx.progress.partial_count,
            failed_count=ctx.progress.failed_count,
            cancelled_count=cancelled_count,
        )
        bundle = self._bundle(outcomes, assigned, ctx.run_id)
        if bundle is not None:
            report.bundle, report.bundle_name, report.bundled_files = bundle

        log_event(
            logger,
            logging.INFO,
            "bulk_completed",
            ctx.run_id,
            status=report.status.value,
            total=total,
            success=report.success_count,
            partial=report.partial_count,
            failed=report.failed_count,
            cancelled=report.cancelled_count,
            bundle_name=report.bundle_name,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return report

    def _generate_one(
        self,
        provider: ProviderRecord,
        template: TemplateDefinition,
        blocks: Mapping[str, DynamicBlockDefinition],
        run_id: str,
    ) -> GenerationOutcome:
        try:
            return generate_contract(
                provider,
                template,
                self.repository.mapping_for(template.id),
                blocks,
                encoder=self.encoder,
                archive=self.archive,
                settings=self.settings,
                run_id=run_id,
                clock=self._clock,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("contract generation crashed for provider %s", provider.id)
            return GenerationOutcome(
                provider_id=provider.id,
                provider_name=provider.name,
                template_id=template.id,
                template_name=template.name,
                status=GenerationStatus.FAILED,
                error=f"{type(exc).__name__}: {exc}",
                generated_at=self._clock(),
            )

    def _bundle(
        self,
        outcomes: Sequence[GenerationOutcome],
        assigned: Mapping[str, TemplateDefinition],
        run_id: str,
    ) -> tuple[bytes, str, list[str]] | None:
        if not any(item.status is GenerationStatus.SUCCESS for item in outcomes):
            return None

        accepted = {GenerationStatus.SUCCESS}
        if self.settings.bundle_partial:
            accepted.add(GenerationStatus.PARTIAL_SUCCESS)
        selected = [
            item for item in outcomes if item.status in accepted and item.artifact is not None
        ]

        now = self._clock()
        years = sorted({assigned[item.provider_id].contract_year for item in selected})
        bundle_name = self.settings.bundle_name_pattern.format(
            contract_year=years[0] if len(years) == 1 else "multi",
            run_date=now.date().isoformat(),
            run_id=run_id,
        )

        buffer = io.BytesIO()
        used_names: set[str] = set()
        bundled: list[str] = []
        manifest_files: list[dict[str, object]] = []
        with zipfile.ZipFile(buffer, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
            for item in selected:
                if item.artifact is None:
                    continue
                arcname = _unique_name(item.file_name or f"{item.provider_id}.docx", used_names)
                archive.writestr(arcname, item.artifact)
                bundled.append(arcname)
                manifest_files.append(
                    {
                        "file_name": arcname,
                        "provider_id": item.provider_id,
                        "provider_name": item.provider_name,
                        "template_id": item.template_id,
                        "status": item.status.value,
                        "warnings": list(item.warnings),
                        "sha256": hashlib.sha256(item.artifact).hexdigest(),
                        "snapshot_reference": item.snapshot_reference,
                    }
                )
            archive.writestr(
                MANIFEST_NAME,
                dump_json(
                    {
                        "run_id": run_id,
                        "created_at": now.isoformat(),
                        "files": manifest_files,
                    }
                ),
            )

        return buffer.getvalue(), bundle_name, bundled


def _unique_name(name: str, used: set[str]) -> str:
    candidate = name
    stem, dot, suffix = name.rpartition(".")
    if not dot:
        stem, suffix = name, ""
    counter = 2
    while candidate in used:
        candidate = f"{stem}_{counter}.{suffix}" if dot else f"{stem}_{counter}"
        counter += 1
    used.add(candidate)
    return candidate
