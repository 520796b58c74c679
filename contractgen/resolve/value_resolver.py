"""Resolve provider field values into placeholder text."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from contractgen.providers.models import SCHEMA_BY_KEY, ProviderRecord
from contractgen.resolve.formatting import (
    FormatKind,
    format_currency,
    format_date,
    format_fte,
    format_number,
    infer_format_kind,
    parse_currency_amount,
    parse_float,
)


class _NotFound:
    """Sentinel for a field that exists nowhere on the provider."""

    _instance: _NotFound | None = None

    def __new__(cls) -> _NotFound:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND: Final = _NotFound()


@dataclass(frozen=True)
class ResolvedValue:
    """Formatted value plus the facts the merger needs for warnings."""

    text: str
    raw: Any
    kind: FormatKind
    type_mismatch: bool = False


def lookup(
    provider: ProviderRecord,
    field_name: str,
    *,
    case_insensitive_fields: bool = False,
) -> Any:
    """Return the raw value for ``field_name`` or ``NOT_FOUND``.

    Order: exact schema field, exact extra field, case-insensitive extra field
    and, when ``case_insensitive_fields`` is set, case-insensitive schema field.
    A schema field present with a null value only wins when nothing else
    matches.
    """

    present_but_empty = False

    if field_name in provider.fields:
        value = provider.fields[field_name]
        if value is not None:
            return value
        present_but_empty = True

    if field_name in provider.extra_fields:
        return provider.extra_fields[field_name]

    lowered = field_name.lower()
    for key, value in provider.extra_fields.items():
        if key.lower() == lowered:
            return value

    if case_insensitive_fields:
        for key, value in provider.fields.items():
            if key.lower() == lowered and value is not None:
                return value

    return None if present_but_empty else NOT_FOUND


def format_kind_for(field_name: str, field_formats: Mapping[str, str] | None = None) -> FormatKind:
    """Pick the format for a field: explicit override, schema tag, then name heuristic."""

    if field_formats and field_name in field_formats:
        return field_formats[field_name]  # type: ignore[return-value]

    schema_field = SCHEMA_BY_KEY.get(field_name)
    if schema_field is not None and schema_field.format is not None:
        return schema_field.format  # type: ignore[return-value]

    return infer_format_kind(field_name)


def format_value(
    field_name: str,
    value: Any,
    *,
    field_formats: Mapping[str, str] | None = None,
    currency_symbol: str = "$",
) -> ResolvedValue:
    kind = format_kind_for(field_name, field_formats)
    if value is None or value == "":
        return ResolvedValue(text="", raw=value, kind=kind)

    if kind == "currency":
        if parse_currency_amount(value) is None:
            return ResolvedValue(
                text=format_currency(value, currency_symbol),
                raw=value,
                kind=kind,
                type_mismatch=True,
            )
        return ResolvedValue(text=format_currency(value, currency_symbol), raw=value, kind=kind)
    if kind == "date":
        return ResolvedValue(text=format_date(value) or str(value), raw=value, kind=kind)
    if kind in ("fte", "number"):
        mismatch = parse_float(value) is None
        text = format_fte(value) if kind == "fte" else format_number(value)
        return ResolvedValue(text=text, raw=value, kind=kind, type_mismatch=mismatch)
    return ResolvedValue(text=str(value), raw=value, kind=kind)


def resolve_field(
    provider: ProviderRecord,
    field_name: str,
    *,
    field_formats: Mapping[str, str] | None = None,
    currency_symbol: str = "$",
    case_insensitive_fields: bool = False,
) -> ResolvedValue | _NotFound:
    raw = lookup(provider, field_name, case_insensitive_fields=case_insensitive_fields)
    if raw is NOT_FOUND:
        return NOT_FOUND
    return format_value(
        field_name, raw, field_formats=field_formats, currency_symbol=currency_symbol
    )


def resolve(
    provider: ProviderRecord,
    field_name: str,
    *,
    field_formats: Mapping[str, str] | None = None,
    currency_symbol: str = "$",
) -> str | _NotFound:
    """Resolve ``field_name`` on ``provider`` to formatted text or ``NOT_FOUND``."""

    resolved = resolve_field(
        provider, field_name, field_formats=field_formats, currency_symbol=currency_symbol
    )
    if isinstance(resolved, _NotFound):
        return NOT_FOUND
    return resolved.text
