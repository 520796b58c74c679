"""Local JSON store for template field mappings."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from contractgen.templates.models import TemplateMapping

_STORE_VERSION = 1


class TemplateMapStore:
    """Persist mapping tables keyed by template id in a JSON file."""

    def __init__(self, store_path: Path) -> None:
        self._store_path = store_path

    def get(self, template_id: str) -> TemplateMapping | None:
        return self._read_data().get(template_id)

    def upsert(self, mapping: TemplateMapping) -> None:
        data = self._read_data()
        data[mapping.template_id] = mapping
        self._write_data(data)

    def list_all(self) -> list[TemplateMapping]:
        data = self._read_data()
        return [data[key] for key in sorted(data.keys())]

    def delete(self, template_id: str) -> bool:
        data = self._read_data()
        if template_id not in data:
            return False
        del data[template_id]
        self._write_data(data)
        return True

    def _read_data(self) -> dict[str, TemplateMapping]:
        if not self._store_path.exists():
            return {}

        try:
            raw = json.loads(self._store_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid map store JSON: {self._store_path}") from exc
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid map store JSON: {self._store_path}")

        templates: dict[str, TemplateMapping] = {}
        for template_id, item in raw.get("templates", {}).items():
            try:
                templates[template_id] = TemplateMapping.model_validate(item)
            except ValidationError as exc:
                raise ValueError(
                    f"Invalid mapping for template '{template_id}' in {self._store_path}"
                ) from exc
        return templates

    def _write_data(self, data: dict[str, TemplateMapping]) -> None:
        self._store_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._store_path.with_suffix(f"{self._store_path.suffix}.tmp")

        payload = {
            "version": _STORE_VERSION,
            "templates": {
                key: data[key].model_dump(mode="json", exclude_none=True)
                for key in sorted(data.keys())
            },
        }
        temp_path.write_text(
            json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False),
            encoding="utf-8",
        )
        temp_path.replace(self._store_path)
