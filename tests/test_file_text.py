"""Tests for text extraction from uploaded files."""

from io import BytesIO

import pytest

from cardy.core.file_text import (
    MAX_EXTRACTED_CHARS,
    ExtractionError,
    extract_text_from_upload,
)


class TestPlainText:
    def test_utf8_markdown(self):
        result = extract_text_from_upload("notes.md", "text/markdown", "# Intake\nCafé".encode())
        assert result.text == "# Intake\nCafé"
        assert result.extraction_method == "utf-8"

    def test_utf8_bom_stripped(self):
        result = extract_text_from_upload("notes.txt", None, b"\xef\xbb\xbfhello")
        assert result.text == "hello"
        assert result.extraction_method == "utf-8-sig"

    def test_latin1_fallback(self):
        result = extract_text_from_upload("legacy.txt", None, "naïve".encode("latin-1"))
        assert result.text == "naïve"
        assert result.extraction_method == "latin-1"

    def test_content_type_without_extension(self):
        result = extract_text_from_upload("README", "text/plain", b"plain")
        assert result.text == "plain"

    def test_unsupported_type_rejected(self):
        with pytest.raises(ExtractionError, match="Unsupported file type"):
            extract_text_from_upload("image.png", "image/png", b"\x89PNG")

    def test_long_text_truncated(self):
        result = extract_text_from_upload("big.txt", None, b"a" * (MAX_EXTRACTED_CHARS + 10))
        assert len(result.text) == MAX_EXTRACTED_CHARS


class TestDocx:
    def test_paragraphs_and_tables(self):
        from docx import Document

        doc = Document()
        doc.add_paragraph("Case Intake Requirements")
        doc.add_paragraph("")
        table = doc.add_table(rows=2, cols=2)
        table.cell(0, 0).text = "Field"
        table.cell(0, 1).text = "Type"
        table.cell(1, 0).text = "case_id"
        table.cell(1, 1).text = "uuid"
        buffer = BytesIO()
        doc.save(buffer)

        result = extract_text_from_upload("reqs.docx", None, buffer.getvalue())

        assert result.extraction_method == "docx"
        assert "Case Intake Requirements" in result.text
        assert "Field | Type" in result.text
        assert "case_id | uuid" in result.text

    def test_corrupt_docx_raises(self):
        with pytest.raises(ExtractionError, match="Failed to open DOCX"):
            extract_text_from_upload("broken.docx", None, b"not a zip file")


class TestPdf:
    def test_pdf_text(self):
        import fitz

        doc = fitz.open()
        page = doc.new_page()
        page.insert_text((72, 72), "Placement rules apply")
        data = doc.tobytes()
        doc.close()

        result = extract_text_from_upload("rules.pdf", "application/pdf", data)

        assert result.extraction_method == "pdf"
        assert "Placement rules apply" in result.text

    def test_corrupt_pdf_raises(self):
        with pytest.raises(ExtractionError, match="Failed to open PDF"):
            extract_text_from_upload("broken.pdf", None, b"definitely not a pdf")
