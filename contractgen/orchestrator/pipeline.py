"""Single-contract pipeline: merge -> encode -> archive."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path

from contractgen.archive.writer import ImmutableArchiveWriter
from contractgen.blocks.models import DynamicBlockDefinition
from contractgen.config.models import GenerationSettings
from contractgen.orchestrator.models import GenerationOutcome, GenerationStatus
from contractgen.providers.models import ProviderRecord
from contractgen.render.docx_encoder import DocxArtifactEncoder, build_contract_file_name
from contractgen.render.merger import merge_template
from contractgen.templates.models import FieldMapping, TemplateDefinition, TemplateMapping
from contractgen.utils.errors import ArchiveWriteError, ArtifactEncodingError
from contractgen.utils.events import log_event

logger = logging.getLogger("contractgen.pipeline")

_PATH_SEPARATOR_RE = re.compile(r"[\\/]")


def build_contract_id(provider: ProviderRecord, template: TemplateDefinition) -> str:
    """Return ``<providerId>-<templateId>-<year>`` with path separators replaced by ``_``."""

    raw = f"{provider.id}-{template.id}-{template.contract_year}"
    return _PATH_SEPARATOR_RE.sub("_", raw)


def generate_contract(
    provider: ProviderRecord,
    template: TemplateDefinition,
    mapping: TemplateMapping | Iterable[FieldMapping] | None,
    blocks: Mapping[str, DynamicBlockDefinition] | Iterable[DynamicBlockDefinition] = (),
    *,
    encoder: DocxArtifactEncoder | None = None,
    archive: ImmutableArchiveWriter | None = None,
    settings: GenerationSettings | None = None,
    run_id: str = "-",
    clock: Callable[[], datetime] | None = None,
) -> GenerationOutcome:
    """Generate one contract and return its outcome.

    Encoding and archive failures produce a FAILED outcome; merge warnings
    produce PARTIAL_SUCCESS. Any other exception propagates to the caller.
    Without ``archive`` the artifact is produced but not archived.
    """

    started = time.perf_counter()
    effective = settings or GenerationSettings()
    active_encoder = encoder or DocxArtifactEncoder()
    generated_at = (clock or _utc_now)()

    merge = merge_template(template, provider, mapping, blocks, settings=effective)
    file_name = build_contract_file_name(
        template.contract_year, provider.name, generated_at.date()
    )

    def _outcome(status: GenerationStatus, **fields) -> GenerationOutcome:
        outcome = GenerationOutcome(
            provider_id=provider.id,
            provider_name=provider.name,
            template_id=template.id,
            template_name=template.name,
            status=status,
            file_name=file_name,
            warnings=list(merge.warnings),
            entries=list(merge.entries),
            generated_at=generated_at,
            **fields,
        )
        log_event(
            logger,
            logging.DEBUG,
            "contract_generated",
            run_id,
            provider_id=provider.id,
            template_id=template.id,
            status=status.value,
            warning_count=len(merge.warnings),
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return outcome

    try:
        shell = _read_shell(template)
        artifact = active_encoder.encode(merge.content, shell, title=file_name)
    except ArtifactEncodingError as exc:
        return _outcome(GenerationStatus.FAILED, error=str(exc))

    reference: str | None = None
    if archive is not None:
        try:
            snapshot = archive.store(
                build_contract_id(provider, template),
                file_name,
                artifact,
                provider=provider.model_dump(mode="json"),
                template=template.model_dump(mode="json"),
            )
        except ArchiveWriteError as exc:
            return _outcome(GenerationStatus.FAILED, error=str(exc))
        reference = snapshot.reference

    status = GenerationStatus.SUCCESS if merge.success else GenerationStatus.PARTIAL_SUCCESS
    return _outcome(status, artifact=artifact, snapshot_reference=reference)


def _read_shell(template: TemplateDefinition) -> bytes | None:
    if not template.shell_path:
        return None
    try:
        return Path(template.shell_path).read_bytes()
    except OSError as exc:
        raise ArtifactEncodingError(
            f"Failed to read template shell {template.shell_path}: {exc}"
        ) from exc


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
