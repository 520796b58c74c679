"""Utilities for docx XML operations.

All XML-level operations on docx content must be implemented here.
Do not spread XML manipulation logic across other modules.
"""

from __future__ import annotations

from docx.document import Document as DocxDocument
from docx.oxml.ns import qn

_BLOCK_TAGS = (qn("w:p"), qn("w:tbl"))


def clear_body_blocks(document: DocxDocument) -> int:
    """Remove body paragraphs and tables, keeping section properties.

    Returns the number of removed block elements.
    """

    body = document.element.body
    removed = 0
    for child in list(body.iterchildren()):
        if child.tag in _BLOCK_TAGS:
            body.remove(child)
            removed += 1
    return removed


def body_block_count(document: DocxDocument) -> int:
    """Count direct body paragraphs and tables."""

    return sum(1 for child in document.element.body.iterchildren() if child.tag in _BLOCK_TAGS)
