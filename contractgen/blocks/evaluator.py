"""Dynamic block evaluation against a provider record.

Every condition whose predicate holds contributes a fragment, in declaration
order. Always-include fragments follow, also in declaration order. The result
is deterministic for a given block and provider.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from contractgen.blocks.models import (
    AlwaysIncludeItem,
    BlockCondition,
    DynamicBlockDefinition,
    OutputShape,
)
from contractgen.providers.models import ProviderRecord
from contractgen.resolve.formatting import parse_float
from contractgen.resolve.value_resolver import NOT_FOUND, format_value, lookup

_NUMERIC_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "=": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
}


@dataclass(frozen=True)
class _Fragment:
    label: str = ""
    value: str = ""
    text: str | None = None


def evaluate(
    block: DynamicBlockDefinition,
    provider: ProviderRecord,
    *,
    field_formats: Mapping[str, str] | None = None,
    currency_symbol: str = "$",
) -> str:
    """Assemble the block text for one provider. Empty output is valid."""

    fragments: list[_Fragment] = []

    for condition in block.conditions:
        if condition_holds(condition, provider):
            fragments.append(
                _condition_fragment(condition, provider, field_formats, currency_symbol)
            )

    for item in block.always_include:
        fragments.append(_always_fragment(item, provider, field_formats, currency_symbol))

    return "\n".join(_render_line(fragment, block.output_shape) for fragment in fragments)


def condition_holds(condition: BlockCondition, provider: ProviderRecord) -> bool:
    raw = _field_value(provider, condition.field)
    present = _is_present(raw)

    if condition.operator == "exists":
        return present
    if condition.operator == "not_exists":
        return not present
    if not present:
        return False

    left = parse_float(raw)
    right = parse_float(condition.value)
    if left is None or right is None:
        if condition.operator == "=":
            return str(raw) == condition.value
        if condition.operator == "!=":
            return str(raw) != condition.value
        return False

    return _NUMERIC_OPERATORS[condition.operator](left, right)


def _field_value(provider: ProviderRecord, field_name: str) -> Any:
    # Case-insensitive so ClinicalFTE, clinicalFTE and clinicalFte all match.
    return lookup(provider, field_name, case_insensitive_fields=True)


def _is_present(raw: Any) -> bool:
    if raw is NOT_FOUND or raw is None:
        return False
    return str(raw).strip() != ""


def _condition_fragment(
    condition: BlockCondition,
    provider: ProviderRecord,
    field_formats: Mapping[str, str] | None,
    currency_symbol: str,
) -> _Fragment:
    if condition.text is not None:
        return _Fragment(text=condition.text)
    raw = _field_value(provider, condition.field)
    return _Fragment(
        label=condition.label,
        value=_display(condition.field, raw, field_formats, currency_symbol),
    )


def _always_fragment(
    item: AlwaysIncludeItem,
    provider: ProviderRecord,
    field_formats: Mapping[str, str] | None,
    currency_symbol: str,
) -> _Fragment:
    if item.text is not None or item.value_field is None:
        return _Fragment(text=item.text or "")
    raw = _field_value(provider, item.value_field)
    return _Fragment(
        label=item.label,
        value=_display(item.value_field, raw, field_formats, currency_symbol),
    )


def _display(
    field_name: str,
    raw: Any,
    field_formats: Mapping[str, str] | None,
    currency_symbol: str,
) -> str:
    if not _is_present(raw):
        return ""
    return format_value(
        field_name, raw, field_formats=field_formats, currency_symbol=currency_symbol
    ).text


def _render_line(fragment: _Fragment, shape: OutputShape) -> str:
    if fragment.text is not None:
        line = fragment.text
    elif shape in ("table", "table-no-borders"):
        return f"{fragment.label}\t{fragment.value}"
    else:
        line = f"{fragment.label}: {fragment.value}".rstrip()

    if shape == "bullets":
        return f"• {line}"
    if shape == "list":
        return f"- {line}"
    return line
