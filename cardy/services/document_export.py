"""Export generated artifacts as DOCX or PDF.

Markdown is the source format. PDF goes markdown -> HTML -> WeasyPrint; DOCX is
built line by line with python-docx. WeasyPrint is imported lazily since it pulls
in native libraries.
"""

import html
import io
import re

import markdown

from cardy.core.formatting import annotate_code_fences
from cardy.core.logging import get_logger

logger = get_logger(__name__)

MARKDOWN_EXTENSIONS = ["tables", "fenced_code", "sane_lists"]

DEFAULT_PDF_CSS = """
@page { size: Letter; margin: 2cm; }
body { font-family: "Helvetica", "Arial", sans-serif; font-size: 11pt; line-height: 1.45; color: #222; }
h1 { font-size: 20pt; border-bottom: 1px solid #ccc; padding-bottom: 4pt; }
h2 { font-size: 16pt; margin-top: 18pt; }
h3 { font-size: 13pt; }
pre { background: #f5f5f5; border: 1px solid #e0e0e0; padding: 8pt; font-size: 9pt; white-space: pre-wrap; }
code { font-family: "Courier New", monospace; }
table { border-collapse: collapse; width: 100%; margin: 8pt 0; }
th, td { border: 1px solid #ccc; padding: 4pt 6pt; text-align: left; vertical-align: top; }
th { background: #f0f0f0; }
"""

_FORMAT_RE = re.compile(r"(\*\*\*(.+?)\*\*\*|\*\*(.+?)\*\*|\*(.+?)\*|`([^`]+)`|([^*`]+))")


def render_markdown_html(content: str) -> str:
    """Convert artifact markdown to an HTML fragment, tagging bare code fences."""
    return markdown.markdown(annotate_code_fences(content), extensions=MARKDOWN_EXTENSIONS)


def generate_pdf(content: str, title: str | None = None) -> bytes:
    """
    Render markdown content as a PDF.

    Raises:
        RuntimeError: If PDF generation fails
    """
    try:
        from weasyprint import CSS, HTML

        full_html = (
            "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
            f"<title>{html.escape(title or 'Document')}</title></head><body>"
            + (f"<h1>{html.escape(title)}</h1>" if title else "")
            + render_markdown_html(content)
            + "</body></html>"
        )
        pdf_bytes = HTML(string=full_html).write_pdf(stylesheets=[CSS(string=DEFAULT_PDF_CSS)])

        logger.debug(f"Generated PDF: {len(pdf_bytes)} bytes")
        return pdf_bytes

    except Exception as e:
        logger.error(f"PDF generation failed: {e}")
        raise RuntimeError(f"PDF generation failed: {e}") from e


def _add_formatted_text(paragraph, text: str) -> None:
    """Add text to a paragraph honouring **bold**, *italic* and `code` spans."""
    from docx.shared import Pt

    for match in _FORMAT_RE.finditer(text):
        if match.group(2):
            run = paragraph.add_run(match.group(2))
            run.bold = True
            run.italic = True
        elif match.group(3):
            paragraph.add_run(match.group(3)).bold = True
        elif match.group(4):
            paragraph.add_run(match.group(4)).italic = True
        elif match.group(5):
            run = paragraph.add_run(match.group(5))
            run.font.name = "Courier New"
            run.font.size = Pt(9)
        elif match.group(6):
            paragraph.add_run(match.group(6))


def _add_table(doc, rows: list[str]) -> None:
    cells = [
        [c.strip() for c in row.strip().strip("|").split("|")]
        for row in rows
        if not re.match(r"^\|?\s*:?-{3,}", row.strip())
    ]
    if not cells:
        return
    width = max(len(r) for r in cells)
    table = doc.add_table(rows=len(cells), cols=width)
    table.style = "Table Grid"
    for i, row in enumerate(cells):
        for j, value in enumerate(row):
            table.cell(i, j).text = value


def generate_docx(content: str, title: str | None = None) -> bytes:
    """
    Render markdown content as a Word document.

    Supports headings, bullet and numbered lists, fenced code blocks, pipe tables and
    bold/italic/inline-code spans.

    Raises:
        RuntimeError: If DOCX generation fails
    """
    try:
        from docx import Document
        from docx.shared import Pt

        doc = Document()
        if title:
            doc.core_properties.title = title
            doc.add_heading(title, level=0)

        lines = content.split("\n")
        i = 0
        while i < len(lines):
            stripped = lines[i].strip()

            if stripped.startswith("```"):
                code_lines = []
                i += 1
                while i < len(lines) and not lines[i].strip().startswith("```"):
                    code_lines.append(lines[i])
                    i += 1
                p = doc.add_paragraph()
                run = p.add_run("\n".join(code_lines))
                run.font.name = "Courier New"
                run.font.size = Pt(9)
            elif stripped.startswith("|"):
                table_rows = []
                while i < len(lines) and lines[i].strip().startswith("|"):
                    table_rows.append(lines[i])
                    i += 1
                _add_table(doc, table_rows)
                continue
            elif not stripped:
                pass
            elif stripped.startswith("### "):
                doc.add_heading(stripped[4:], level=3)
            elif stripped.startswith("## "):
                doc.add_heading(stripped[3:], level=2)
            elif stripped.startswith("# "):
                doc.add_heading(stripped[2:], level=1)
            elif stripped.startswith(("- ", "* ")):
                _add_formatted_text(doc.add_paragraph(style="List Bullet"), stripped[2:])
            elif re.match(r"^\d+\.\s", stripped):
                _add_formatted_text(
                    doc.add_paragraph(style="List Number"), re.sub(r"^\d+\.\s", "", stripped)
                )
            else:
                _add_formatted_text(doc.add_paragraph(), stripped)

            i += 1

        buffer = io.BytesIO()
        doc.save(buffer)
        docx_bytes = buffer.getvalue()

        logger.debug(f"Generated DOCX: {len(docx_bytes)} bytes")
        return docx_bytes

    except Exception as e:
        logger.error(f"DOCX generation failed: {e}")
        raise RuntimeError(f"DOCX generation failed: {e}") from e
