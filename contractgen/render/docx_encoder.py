"""Encode merged contract bodies as .docx artifacts."""

from __future__ import annotations

import html
import io
import re
from datetime import date

from docx import Document

from contractgen.resolve.formatting import normalize_smart_quotes
from contractgen.utils.docx_xml import clear_body_blocks
from contractgen.utils.errors import ArtifactEncodingError

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_LINE_BREAK_RE = re.compile(r"<br\s*/?>|</(?:p|div|li|h[1-6]|tr)\s*>", re.IGNORECASE)
_TAG_RE = re.compile(r"</?[a-zA-Z][^<>]*>")
_INDENT_RE = re.compile(r"^[ ]+")


class DocxArtifactEncoder:
    """Write filled body text into a docx shell.

    The shell keeps its styles, headers, footers and section settings; its body
    content is replaced by one paragraph per line of the filled text.
    """

    def encode(self, body: str, shell: bytes | None = None, *, title: str | None = None) -> bytes:
        try:
            document = Document(io.BytesIO(shell)) if shell else Document()
            clear_body_blocks(document)
            for line in body_to_lines(body):
                document.add_paragraph(line)
            if title:
                document.core_properties.title = title

            buffer = io.BytesIO()
            document.save(buffer)
        except Exception as exc:  # noqa: BLE001
            raise ArtifactEncodingError(f"Failed to encode docx artifact: {exc}") from exc
        return buffer.getvalue()


def body_to_lines(body: str) -> list[str]:
    """Flatten simple HTML to text lines and normalize typographic characters."""

    text = body.replace("\r\n", "\n").replace("\r", "\n")
    is_html = _TAG_RE.search(text) is not None
    if is_html:
        text = _LINE_BREAK_RE.sub("\n", text)
        text = _TAG_RE.sub("", text)
        text = html.unescape(text)

    lines = [line.rstrip() for line in normalize_smart_quotes(text).split("\n")]
    if is_html:
        # Source indentation and blank lines carry no meaning in markup.
        lines = [_INDENT_RE.sub("", line) for line in lines if line.strip()]
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


def build_contract_file_name(contract_year: str, provider_name: str, run_date: date) -> str:
    """Build ``<year>_<ProviderName>_ScheduleA_<YYYY-MM-DD>.docx``."""

    safe_provider = re.sub(r"\s+", "", provider_name)
    safe_provider = re.sub(r"[\\/:*?\"<>|]", "", safe_provider) or "Provider"
    return f"{contract_year}_{safe_provider}_ScheduleA_{run_date.isoformat()}.docx"
