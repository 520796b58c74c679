"""Build template definitions from .docx files."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from docx import Document
from docx.document import Document as DocxDocument
from docx.text.paragraph import Paragraph

from contractgen.templates.models import TemplateDefinition


def load_template_from_docx(
    path: Path,
    *,
    template_id: str,
    name: str | None = None,
    contract_year: str,
) -> TemplateDefinition:
    """Load a .docx file and use its text as the template body.

    Body paragraphs come first, then table cell paragraphs. The source file is
    kept as the shell for artifact encoding.
    """

    document = Document(str(path))
    return TemplateDefinition(
        id=template_id,
        name=name or path.stem,
        contract_year=contract_year,
        body=document_body_text(document),
        shell_path=str(path),
    )


def document_body_text(document: DocxDocument) -> str:
    """Join paragraph texts from body and tables with newlines."""

    return "\n".join(paragraph.text for _, paragraph in iter_target_paragraphs(document))


def iter_target_paragraphs(document: DocxDocument) -> Iterator[tuple[str, Paragraph]]:
    for paragraph_index, paragraph in enumerate(document.paragraphs):
        yield f"p{paragraph_index}", paragraph

    for table_index, table in enumerate(document.tables):
        for row_index, row in enumerate(table.rows):
            for cell_index, cell in enumerate(row.cells):
                for paragraph_index, paragraph in enumerate(cell.paragraphs):
                    paragraph_path = (
                        f"t{table_index}.r{row_index}.c{cell_index}.p{paragraph_index}"
                    )
                    yield paragraph_path, paragraph
