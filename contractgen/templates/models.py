"""Data models for templates, placeholder parsing, and field mappings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

MappingType = Literal["field", "dynamic"]

_LEGACY_DYNAMIC_PREFIX = "dynamic:"


@dataclass(frozen=True)
class Occurrence:
    """A well-formed ``{{Name}}`` token found in a template body."""

    field_name: str
    start: int
    end: int
    token: str


@dataclass(frozen=True)
class UnsupportedOccurrence:
    """A brace sequence that is left untouched as literal text."""

    kind: str
    text: str
    start: int
    end: int


@dataclass
class ParseResult:
    """Placeholder parsing output."""

    fields: list[str] = field(default_factory=list)
    occurrences: list[Occurrence] = field(default_factory=list)
    unsupported: list[UnsupportedOccurrence] = field(default_factory=list)


class TemplateDefinition(BaseModel):
    """Contract template with a body containing ``{{Placeholder}}`` tokens."""

    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    contract_year: str
    body: str
    shell_path: str | None = None

    _placeholder_cache: tuple[str, list[str]] | None = PrivateAttr(default=None)

    @property
    def placeholders(self) -> list[str]:
        """Distinct placeholder names in order of first appearance.

        Parsed once per body; the cache is keyed by the body fingerprint so an
        edited body is re-parsed on next access.
        """

        from contractgen.templates.placeholder_parser import extract_placeholders
        from contractgen.templates.template_fingerprint import compute_body_fingerprint

        fingerprint = compute_body_fingerprint(self.body)
        cached = self._placeholder_cache
        if cached is not None and cached[0] == fingerprint:
            return list(cached[1])

        names = extract_placeholders(self.body)
        self._placeholder_cache = (fingerprint, names)
        return list(names)


class FieldMapping(BaseModel):
    """Binding of one placeholder to a provider field or a dynamic block."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    placeholder: str
    mapping_type: MappingType = "field"
    mapped_column: str | None = None
    mapped_dynamic_block_id: str | None = None
    notes: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy_dynamic(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        column = data.get("mapped_column")
        if isinstance(column, str) and column.startswith(_LEGACY_DYNAMIC_PREFIX):
            return {
                **data,
                "mapping_type": "dynamic",
                "mapped_column": None,
                "mapped_dynamic_block_id": column[len(_LEGACY_DYNAMIC_PREFIX) :],
            }
        return data

    @model_validator(mode="after")
    def _check_target(self) -> FieldMapping:
        if self.mapping_type == "field":
            if not self.mapped_column or self.mapped_dynamic_block_id is not None:
                raise ValueError(
                    f"Field mapping for '{self.placeholder}' requires mapped_column only"
                )
        elif not self.mapped_dynamic_block_id or self.mapped_column is not None:
            raise ValueError(
                f"Dynamic mapping for '{self.placeholder}' requires mapped_dynamic_block_id only"
            )
        return self


class TemplateMapping(BaseModel):
    """Mapping table for one template."""

    model_config = ConfigDict(extra="forbid")

    template_id: str
    mappings: list[FieldMapping] = Field(default_factory=list)
    note: str | None = None

    @model_validator(mode="after")
    def _check_unique_placeholders(self) -> TemplateMapping:
        seen: set[str] = set()
        for item in self.mappings:
            if item.placeholder in seen:
                raise ValueError(f"Duplicate mapping for placeholder '{item.placeholder}'")
            seen.add(item.placeholder)
        return self

    def get(self, placeholder: str) -> FieldMapping | None:
        for item in self.mappings:
            if item.placeholder == placeholder:
                return item
        return None
