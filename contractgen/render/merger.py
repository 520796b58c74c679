"""Template merger: resolves every placeholder and substitutes in one pass."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Literal

from contractgen.blocks.evaluator import evaluate
from contractgen.blocks.models import DynamicBlockDefinition
from contractgen.config.models import GenerationSettings
from contractgen.providers.models import ProviderRecord
from contractgen.render.models import MergeResult, ReplaceLogEntry
from contractgen.resolve.value_resolver import ResolvedValue, resolve_field
from contractgen.templates.models import FieldMapping, TemplateDefinition, TemplateMapping
from contractgen.templates.placeholder_parser import PLACEHOLDER_RE

Status = Literal["replaced", "dynamic", "implicit", "ignored", "missing"]


@dataclass(frozen=True)
class _Resolution:
    status: Status
    text: str
    source: str | None = None
    warning: str | None = None


def merge_template(
    template: TemplateDefinition,
    provider: ProviderRecord,
    mapping: TemplateMapping | Iterable[FieldMapping] | None,
    blocks: Mapping[str, DynamicBlockDefinition] | Iterable[DynamicBlockDefinition] = (),
    *,
    settings: GenerationSettings | None = None,
) -> MergeResult:
    """Merge one provider into one template body.

    Unresolvable placeholders become empty strings and add a warning, unless
    they are listed in ``settings.ignore_unmapped``. Malformed brace
    sequences are left as literal text.
    """

    effective = settings or GenerationSettings()
    mapping_index = _index_mappings(mapping)
    block_index = _index_blocks(blocks)
    ignored = frozenset(effective.ignore_unmapped)

    template_fields = template.placeholders
    resolutions: dict[str, _Resolution] = {}
    for name in template_fields:
        resolutions[name] = _resolve_placeholder(
            name, provider, mapping_index, block_index, ignored, effective
        )

    counts: Counter[str] = Counter()

    def _substitute(match) -> str:
        name = match.group(1)
        if not name:
            return match.group(0)
        resolution = resolutions.get(name)
        if resolution is None:
            resolution = _resolve_placeholder(
                name, provider, mapping_index, block_index, ignored, effective
            )
            resolutions[name] = resolution
        counts[name] += 1
        return resolution.text

    content = PLACEHOLDER_RE.sub(_substitute, template.body)

    warnings: list[str] = []
    entries: list[ReplaceLogEntry] = []
    for name, resolution in resolutions.items():
        if resolution.warning is not None:
            warnings.append(resolution.warning)
        entries.append(
            ReplaceLogEntry(
                status=resolution.status,
                placeholder=name,
                occurrences=counts[name],
                source=resolution.source,
                new_text=resolution.text if resolution.status != "missing" else None,
                reason=resolution.warning,
            )
        )

    return MergeResult(
        content=content,
        warnings=warnings,
        success=not warnings,
        template_fields=template_fields,
        entries=entries,
    )


def _resolve_placeholder(
    name: str,
    provider: ProviderRecord,
    mapping_index: Mapping[str, FieldMapping],
    block_index: Mapping[str, DynamicBlockDefinition],
    ignored: frozenset[str],
    settings: GenerationSettings,
) -> _Resolution:
    field_mapping = mapping_index.get(name)

    if field_mapping is not None and field_mapping.mapping_type == "dynamic":
        block_id = field_mapping.mapped_dynamic_block_id or ""
        block = block_index.get(block_id)
        if block is None:
            return _missing(
                name,
                ignored,
                f"Placeholder {{{{{name}}}}} references unknown dynamic block '{block_id}'",
            )
        text = evaluate(
            block,
            provider,
            field_formats=settings.field_formats,
            currency_symbol=settings.currency_symbol,
        )
        return _Resolution(status="dynamic", text=text, source=f"block:{block.id}")

    if field_mapping is not None:
        column = field_mapping.mapped_column or ""
        resolved = resolve_field(
            provider,
            column,
            field_formats=settings.field_formats,
            currency_symbol=settings.currency_symbol,
        )
        if not isinstance(resolved, ResolvedValue):
            return _missing(
                name,
                ignored,
                f"Placeholder {{{{{name}}}}} is mapped to '{column}' "
                f"but provider {provider.id} has no such field",
            )
        return _found(name, "replaced", column, resolved)

    resolved = resolve_field(
        provider,
        name,
        field_formats=settings.field_formats,
        currency_symbol=settings.currency_symbol,
        case_insensitive_fields=True,
    )
    if isinstance(resolved, ResolvedValue):
        return _found(name, "implicit", name, resolved)
    return _missing(
        name,
        ignored,
        f"Placeholder {{{{{name}}}}} is not mapped and provider {provider.id} "
        "has no matching field",
    )


def _found(name: str, status: Status, source: str, resolved: ResolvedValue) -> _Resolution:
    warning = None
    if resolved.type_mismatch:
        warning = (
            f"Placeholder {{{{{name}}}}} value '{resolved.raw}' from '{source}' "
            f"is not a valid {resolved.kind}"
        )
    return _Resolution(status=status, text=resolved.text, source=source, warning=warning)


def _missing(name: str, ignored: frozenset[str], warning: str) -> _Resolution:
    if name in ignored:
        return _Resolution(status="ignored", text="")
    return _Resolution(status="missing", text="", warning=warning)


def _index_mappings(
    mapping: TemplateMapping | Iterable[FieldMapping] | None,
) -> dict[str, FieldMapping]:
    if mapping is None:
        return {}
    items = mapping.mappings if isinstance(mapping, TemplateMapping) else mapping
    return {item.placeholder: item for item in items}


def _index_blocks(
    blocks: Mapping[str, DynamicBlockDefinition] | Iterable[DynamicBlockDefinition],
) -> Mapping[str, DynamicBlockDefinition]:
    if isinstance(blocks, Mapping):
        return blocks
    return {block.id: block for block in blocks}
