"""Placeholder parser for ``{{Name}}`` tokens in template bodies.

Only well-formed tokens are placeholders. Unbalanced or empty brace pairs are
reported as unsupported and stay in the body as literal text.
"""

from __future__ import annotations

import re

from contractgen.templates.models import Occurrence, ParseResult, UnsupportedOccurrence
from contractgen.utils.errors import TemplateError

PLACEHOLDER_RE = re.compile(r"\{\{\s*([^{}]*?)\s*\}\}")
_OPEN_RE = re.compile(r"\{\{")
_CLOSE_RE = re.compile(r"\}\}")


def parse_placeholders(body: str, strict: bool = False) -> ParseResult:
    """Parse placeholders from a template body.

    Rules:
    - Supported placeholder format is ``{{Name}}``; whitespace around the name
      is ignored and the name must not contain braces.
    - ``{{}}`` is recorded as ``invalid_format``.
    - ``{{`` without a matching ``}}`` is ``unclosed_brace``; a lone ``}}`` is
      ``stray_close``.

    Args:
        body: Raw template text or HTML.
        strict: When True, raise TemplateError if any unsupported item exists.

    Returns:
        ParseResult containing distinct fields, occurrences and unsupported entries.
    """

    result = ParseResult()
    seen_fields: set[str] = set()
    covered: list[tuple[int, int]] = []

    for match in PLACEHOLDER_RE.finditer(body):
        covered.append((match.start(), match.end()))
        field_name = match.group(1)
        if not field_name:
            result.unsupported.append(
                UnsupportedOccurrence(
                    kind="invalid_format",
                    text=match.group(0),
                    start=match.start(),
                    end=match.end(),
                )
            )
            continue

        result.occurrences.append(
            Occurrence(
                field_name=field_name,
                start=match.start(),
                end=match.end(),
                token=match.group(0),
            )
        )
        if field_name not in seen_fields:
            result.fields.append(field_name)
            seen_fields.add(field_name)

    for kind, pattern in (("unclosed_brace", _OPEN_RE), ("stray_close", _CLOSE_RE)):
        for match in pattern.finditer(body):
            if _is_covered(match.start(), match.end(), covered):
                continue
            result.unsupported.append(
                UnsupportedOccurrence(
                    kind=kind,
                    text=match.group(0),
                    start=match.start(),
                    end=match.end(),
                )
            )

    result.unsupported.sort(key=lambda item: (item.start, item.kind))

    if strict and result.unsupported:
        raise TemplateError("Unsupported placeholders found in template", result=result)

    return result


def extract_placeholders(body: str) -> list[str]:
    """Return distinct placeholder names in order of first appearance."""

    return parse_placeholders(body).fields


def _is_covered(start: int, end: int, spans: list[tuple[int, int]]) -> bool:
    for span_start, span_end in spans:
        if start < span_end and end > span_start:
            return True
    return False
