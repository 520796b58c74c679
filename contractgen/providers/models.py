"""Provider record model and recognized schema fields."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

FieldKind = Literal["string", "number", "date"]
Scalar = str | int | float

_HEADER_NORMALIZE_RE = re.compile(r"[\s_]+")
_NUMBER_NOISE_RE = re.compile(r"[$,\s]")


@dataclass(frozen=True)
class SchemaField:
    """One recognized provider column."""

    key: str
    kind: FieldKind
    variants: tuple[str, ...] = ()
    format: str | None = None


PROVIDER_SCHEMA: tuple[SchemaField, ...] = (
    SchemaField("compensationYear", "string", ("compensation year", "year")),
    SchemaField("employeeId", "string", ("employee id", "emp id")),
    SchemaField("name", "string", ("provider name",)),
    SchemaField("providerType", "string", ("provider type", "type")),
    SchemaField("specialty", "string"),
    SchemaField("subspecialty", "string", ("sub specialty",)),
    SchemaField("positionTitle", "string", ("position title", "title")),
    SchemaField("yearsExperience", "number", ("years of experience", "experience")),
    SchemaField("hourlyWage", "number", ("hourly wage",), "currency"),
    SchemaField("baseSalary", "number", ("base salary", "salary"), "currency"),
    SchemaField("originalAgreementDate", "date", ("original agreement date", "agreement date")),
    SchemaField("organizationName", "string", ("organization name", "organization")),
    SchemaField("startDate", "date", ("start date",)),
    SchemaField("contractTerm", "string", ("contract term", "term")),
    SchemaField("ptoDays", "number", ("pto days", "pto")),
    SchemaField("holidayDays", "number", ("holiday days", "holidays")),
    SchemaField("cmeDays", "number", ("cme days", "cme")),
    SchemaField("cmeAmount", "number", ("cme amount",), "currency"),
    SchemaField("signingBonus", "number", ("signing bonus",), "currency"),
    SchemaField("relocationBonus", "number", ("relocation bonus",), "currency"),
    SchemaField("qualityBonus", "number", ("quality bonus",), "currency"),
    SchemaField("compensationType", "string", ("compensation type", "comp type")),
    SchemaField("conversionFactor", "number", ("conversion factor",)),
    SchemaField("wRVUTarget", "number", ("wrvu target", "wrvu")),
    SchemaField("credentials", "string"),
    SchemaField("clinicalFTE", "number", ("clinical fte",), "fte"),
    SchemaField("medicalDirectorFTE", "number", ("medical director fte",), "fte"),
    SchemaField("divisionChiefFTE", "number", ("division chief fte",), "fte"),
    SchemaField("researchFTE", "number", ("research fte",), "fte"),
    SchemaField("teachingFTE", "number", ("teaching fte",), "fte"),
    SchemaField("totalFTE", "number", ("total fte", "fte"), "fte"),
)

SCHEMA_BY_KEY: Mapping[str, SchemaField] = MappingProxyType(
    {item.key: item for item in PROVIDER_SCHEMA}
)


def _normalize_header(header: str) -> str:
    return _HEADER_NORMALIZE_RE.sub("", header).lower()


def _build_header_index() -> dict[str, SchemaField]:
    index: dict[str, SchemaField] = {}
    for item in PROVIDER_SCHEMA:
        for candidate in (item.key, *item.variants):
            index.setdefault(_normalize_header(candidate), item)
    return index


_HEADER_INDEX: Mapping[str, SchemaField] = MappingProxyType(_build_header_index())


def match_schema_field(header: str) -> SchemaField | None:
    """Return the schema field a raw column header maps to, if any."""

    return _HEADER_INDEX.get(_normalize_header(header))


class ProviderRecord(BaseModel):
    """One provider row as consumed by the merge engine.

    ``fields`` holds recognized schema columns as typed scalars. Columns the
    schema does not know live only in ``extra_fields``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    name: str = ""
    fields: dict[str, Scalar | None] = Field(default_factory=dict)
    extra_fields: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _sync_name_field(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        fields = dict(data.get("fields") or {})
        name = data.get("name")
        if name and fields.get("name") is None:
            fields["name"] = name
        elif not name and fields.get("name") is not None:
            data = {**data, "name": str(fields["name"])}
        return {**data, "fields": fields}

    @model_validator(mode="after")
    def _check_extra_fields_disjoint(self) -> ProviderRecord:
        duplicated = sorted(set(self.fields) & set(self.extra_fields))
        if duplicated:
            raise ValueError(f"Fields present in both schema and extra fields: {duplicated}")
        return self

    @classmethod
    def from_row(cls, row: Mapping[str, Any], provider_id: str | None = None) -> ProviderRecord:
        """Build a record from one raw tabular row keyed by column header."""

        fields: dict[str, Scalar | None] = {}
        extra_fields: dict[str, str] = {}
        explicit_id: str | None = None

        for header, raw_value in row.items():
            if raw_value is None:
                continue
            text = str(raw_value).strip()
            if not text:
                continue
            if _normalize_header(header) == "id":
                explicit_id = text
                continue

            schema_field = match_schema_field(header)
            if schema_field is None:
                extra_fields[header] = text
                continue
            fields[schema_field.key] = _coerce(text, schema_field.kind)

        resolved_id = provider_id or explicit_id or str(fields.get("employeeId") or "")
        if not resolved_id:
            raise ValueError("Provider row has no id or employeeId")

        name = fields.get("name")
        return cls(
            id=resolved_id,
            name=str(name) if name is not None else "",
            fields=fields,
            extra_fields=extra_fields,
        )


def _coerce(text: str, kind: FieldKind) -> Scalar:
    if kind != "number":
        return text

    cleaned = _NUMBER_NOISE_RE.sub("", text)
    try:
        number = float(cleaned)
    except ValueError:
        return text
    if number.is_integer() and "." not in cleaned:
        return int(number)
    return number
