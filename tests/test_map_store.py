from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from contractgen.templates.map_store import TemplateMapStore
from contractgen.templates.models import FieldMapping, TemplateMapping


def _mapping(template_id: str, *items: FieldMapping, note: str | None = None) -> TemplateMapping:
    return TemplateMapping(template_id=template_id, mappings=list(items), note=note)


def test_map_store_initializes_empty_data(tmp_path: Path) -> None:
    store = TemplateMapStore(tmp_path / "template_map.json")

    assert store.list_all() == []
    assert store.get("missing") is None


def test_map_store_upsert_and_get_round_trip(tmp_path: Path) -> None:
    store = TemplateMapStore(tmp_path / "template_map.json")
    mapping = _mapping(
        "T1",
        FieldMapping(placeholder="Salary", mapped_column="baseSalary"),
        FieldMapping(
            placeholder="FTEBreakdown", mapping_type="dynamic", mapped_dynamic_block_id="fte"
        ),
        note="test",
    )

    store.upsert(mapping)

    assert store.get("T1") == mapping


def test_map_store_upsert_overwrites_existing_mapping(tmp_path: Path) -> None:
    store = TemplateMapStore(tmp_path / "template_map.json")
    store.upsert(_mapping("T1", FieldMapping(placeholder="A", mapped_column="x")))
    store.upsert(_mapping("T1", FieldMapping(placeholder="B", mapped_column="y")))

    loaded = store.get("T1")
    assert loaded is not None
    assert [item.placeholder for item in loaded.mappings] == ["B"]


def test_map_store_list_all_is_sorted_by_template_id(tmp_path: Path) -> None:
    store = TemplateMapStore(tmp_path / "template_map.json")
    store.upsert(_mapping("T2"))
    store.upsert(_mapping("T1"))

    assert [item.template_id for item in store.list_all()] == ["T1", "T2"]


def test_map_store_delete_removes_mapping(tmp_path: Path) -> None:
    store = TemplateMapStore(tmp_path / "template_map.json")
    store.upsert(_mapping("T1"))

    assert store.delete("T1") is True
    assert store.get("T1") is None
    assert store.delete("T1") is False


def test_map_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "template_map.json"
    TemplateMapStore(path).upsert(_mapping("T1", FieldMapping(placeholder="N", mapped_column="n")))

    loaded = TemplateMapStore(path).get("T1")

    assert loaded is not None
    assert loaded.get("N") == FieldMapping(placeholder="N", mapped_column="n")


def test_map_store_raises_on_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "template_map.json"
    path.write_text("{invalid", encoding="utf-8")
    store = TemplateMapStore(path)

    with pytest.raises(ValueError, match="Invalid map store JSON"):
        store.list_all()


def test_legacy_dynamic_column_becomes_dynamic_mapping() -> None:
    mapping = FieldMapping.model_validate(
        {"placeholder": "FTEBreakdown", "mapped_column": "dynamic:fte"}
    )

    assert mapping.mapping_type == "dynamic"
    assert mapping.mapped_dynamic_block_id == "fte"
    assert mapping.mapped_column is None


def test_field_mapping_requires_exactly_one_target() -> None:
    with pytest.raises(ValidationError):
        FieldMapping(placeholder="A")
    with pytest.raises(ValidationError):
        FieldMapping(placeholder="A", mapped_column="a", mapped_dynamic_block_id="b")


def test_template_mapping_rejects_duplicate_placeholders() -> None:
    with pytest.raises(ValidationError, match="Duplicate mapping"):
        _mapping(
            "T1",
            FieldMapping(placeholder="A", mapped_column="a"),
            FieldMapping(placeholder="A", mapped_column="b"),
        )
