from __future__ import annotations

from contractgen.templates.models import TemplateDefinition
from contractgen.templates.template_fingerprint import compute_body_fingerprint


def test_fingerprint_is_stable_sha256_hex() -> None:
    first = compute_body_fingerprint("Dear {{Name}}")
    second = compute_body_fingerprint("Dear {{Name}}")

    assert first == second
    assert len(first) == 64
    int(first, 16)


def test_fingerprint_ignores_line_ending_style() -> None:
    assert compute_body_fingerprint("a\r\nb\rc") == compute_body_fingerprint("a\nb\nc")


def test_fingerprint_changes_with_body() -> None:
    assert compute_body_fingerprint("{{A}}") != compute_body_fingerprint("{{B}}")


def test_template_placeholders_are_cached_per_body() -> None:
    template = TemplateDefinition(id="T1", name="Schedule A", contract_year="2025", body="{{A}}")

    assert template.placeholders == ["A"]
    cached = template._placeholder_cache
    assert template.placeholders == ["A"]
    assert template._placeholder_cache is cached

    template.body = "{{B}} {{A}}"

    assert template.placeholders == ["B", "A"]


def test_template_placeholders_returns_a_copy() -> None:
    template = TemplateDefinition(id="T1", name="Schedule A", contract_year="2025", body="{{A}}")

    names = template.placeholders
    names.append("Injected")

    assert template.placeholders == ["A"]
