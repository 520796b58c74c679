"""Workspace files: providers, templates, mappings and blocks in one document."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, field_validator

from contractgen.blocks.models import DynamicBlockDefinition
from contractgen.providers.models import ProviderRecord
from contractgen.templates.docx_import import load_template_from_docx
from contractgen.templates.map_store import TemplateMapStore
from contractgen.templates.models import FieldMapping, TemplateDefinition, TemplateMapping


class _TemplateEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str | None = None
    contract_year: str
    body: str | None = None
    docx: str | None = None

    @field_validator("contract_year", mode="before")
    @classmethod
    def _year_as_text(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class _WorkspaceFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_template_id: str | None = None
    templates: list[_TemplateEntry] = Field(default_factory=list)
    providers: list[dict[str, Any]] = Field(default_factory=list)
    mappings: dict[str, list[FieldMapping]] = Field(default_factory=dict)
    dynamic_blocks: list[DynamicBlockDefinition] = Field(default_factory=list)
    assignments: dict[str, str] = Field(default_factory=dict)


class Workspace:
    """Read-only repository over loaded providers, templates and mappings."""

    def __init__(
        self,
        *,
        providers: list[ProviderRecord],
        templates: list[TemplateDefinition],
        mappings: Mapping[str, TemplateMapping] | None = None,
        dynamic_blocks: list[DynamicBlockDefinition] | None = None,
        assignments: Mapping[str, str] | None = None,
        default_template_id: str | None = None,
        mapping_store: TemplateMapStore | None = None,
    ) -> None:
        self._providers = {provider.id: provider for provider in providers}
        self._templates = {template.id: template for template in templates}
        self._mappings = dict(mappings or {})
        self._blocks = {block.id: block for block in dynamic_blocks or []}
        self._assignments = dict(assignments or {})
        self.default_template_id = default_template_id
        self.mapping_store = mapping_store

    @property
    def providers(self) -> list[ProviderRecord]:
        return list(self._providers.values())

    def get_provider(self, provider_id: str) -> ProviderRecord | None:
        return self._providers.get(provider_id)

    def get_template(self, template_id: str) -> TemplateDefinition | None:
        return self._templates.get(template_id)

    def template_for(self, provider: ProviderRecord) -> TemplateDefinition | None:
        template_id = self._assignments.get(provider.id, self.default_template_id)
        if template_id is None:
            return None
        return self._templates.get(template_id)

    def mapping_for(self, template_id: str) -> TemplateMapping | None:
        mapping = self._mappings.get(template_id)
        if mapping is None and self.mapping_store is not None:
            mapping = self.mapping_store.get(template_id)
        return mapping

    def dynamic_blocks(self) -> Mapping[str, DynamicBlockDefinition]:
        return dict(self._blocks)


def load_workspace(path: Path, *, mapping_store: TemplateMapStore | None = None) -> Workspace:
    """Load a YAML or JSON workspace file.

    Template ``docx`` paths are resolved relative to the workspace file.
    Provider entries with a ``fields`` key are full records; any other entry is
    treated as a raw row keyed by column header.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ValueError(f"Workspace file not found: {path}") from exc

    try:
        raw = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"Invalid workspace file: {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Workspace file must contain a mapping: {path}")

    try:
        parsed = _WorkspaceFile.model_validate(raw)
        providers = [_provider_from_entry(entry) for entry in parsed.providers]
        mappings = {
            template_id: TemplateMapping(template_id=template_id, mappings=items)
            for template_id, items in parsed.mappings.items()
        }
    except ValueError as exc:
        raise ValueError(f"Invalid workspace schema: {path}: {exc}") from exc

    templates = [_template_from_entry(entry, path.parent) for entry in parsed.templates]
    template_ids = {template.id for template in templates}

    if parsed.default_template_id is not None and parsed.default_template_id not in template_ids:
        raise ValueError(f"Unknown default_template_id: {parsed.default_template_id}")
    unknown = sorted(set(parsed.assignments.values()) - template_ids)
    if unknown:
        raise ValueError(f"Assignments reference unknown templates: {unknown}")

    return Workspace(
        providers=providers,
        templates=templates,
        mappings=mappings,
        dynamic_blocks=parsed.dynamic_blocks,
        assignments=parsed.assignments,
        default_template_id=parsed.default_template_id,
        mapping_store=mapping_store,
    )


def _provider_from_entry(entry: dict[str, Any]) -> ProviderRecord:
    if "fields" in entry:
        return ProviderRecord.model_validate(entry)
    return ProviderRecord.from_row(entry)


def _template_from_entry(entry: _TemplateEntry, base_dir: Path) -> TemplateDefinition:
    if (entry.body is None) == (entry.docx is None):
        raise ValueError(f"Template '{entry.id}' needs exactly one of body or docx")
    if entry.docx is not None:
        docx_path = base_dir / entry.docx
        if not docx_path.exists():
            raise ValueError(f"Template docx not found: {docx_path}")
        return load_template_from_docx(
            docx_path,
            template_id=entry.id,
            name=entry.name,
            contract_year=entry.contract_year,
        )
    return TemplateDefinition(
        id=entry.id,
        name=entry.name or entry.id,
        contract_year=entry.contract_year,
        body=entry.body or "",
    )
