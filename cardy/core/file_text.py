"""Text extraction from uploaded files.

Plain-text formats are decoded directly. Word documents go through python-docx and
PDFs through PyMuPDF; both are imported lazily so the text path does not load them.
"""

from dataclasses import dataclass
from io import BytesIO

from cardy.core.logging import get_logger

logger = get_logger(__name__)

# Decoded directly
TEXT_EXTENSIONS = {".txt", ".md", ".json", ".csv", ".tsv", ".yaml", ".yml", ".sql", ".xml"}
TEXT_CONTENT_TYPE_PREFIXES = ("text/", "application/json", "application/xml")

DOCX_EXTENSIONS = {".docx"}
DOCX_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
PDF_EXTENSIONS = {".pdf"}
PDF_CONTENT_TYPES = {"application/pdf"}

# Cap on extracted text kept per document
MAX_EXTRACTED_CHARS = 200_000


class ExtractionError(ValueError):
    """Raised when text cannot be extracted from an upload."""


@dataclass
class FileTextResult:
    """Result of text extraction from a file."""

    text: str
    extraction_method: str


def _get_extension(filename: str) -> str:
    """Extract lowercase file extension from filename."""
    if "." in filename:
        return "." + filename.rsplit(".", 1)[-1].lower()
    return ""


def _matches_prefix(content_type: str | None, prefixes: tuple[str, ...]) -> bool:
    if not content_type:
        return False
    return content_type.lower().startswith(prefixes)


def _decode_bytes(raw_bytes: bytes) -> tuple[str, str]:
    """
    Attempt to decode bytes using fallback chain.

    Returns:
        Tuple of (decoded_text, encoding_name)

    Raises:
        ExtractionError: If no encoding works
    """
    # Check for UTF-8 BOM first
    if raw_bytes.startswith(b"\xef\xbb\xbf"):
        try:
            return raw_bytes.decode("utf-8-sig"), "utf-8-sig"
        except UnicodeDecodeError:
            pass

    for encoding in ("utf-8", "latin-1"):
        try:
            return raw_bytes.decode(encoding), encoding
        except UnicodeDecodeError:
            continue

    raise ExtractionError(
        "Unable to decode file content. Supported encodings: UTF-8, UTF-8-BOM, Latin-1."
    )


def _extract_docx(raw_bytes: bytes, filename: str) -> str:
    from docx import Document

    try:
        doc = Document(BytesIO(raw_bytes))
    except Exception as e:
        raise ExtractionError(f"Failed to open DOCX {filename}: {e}") from e

    parts = [para.text.strip() for para in doc.paragraphs if para.text.strip()]

    # Tables as pipe-delimited rows
    for table in doc.tables:
        rows = [" | ".join(cell.text.strip() for cell in row.cells) for row in table.rows]
        table_text = "\n".join(rows)
        if table_text.strip():
            parts.append(table_text)

    return "\n\n".join(parts)


def _extract_pdf(raw_bytes: bytes, filename: str) -> str:
    import fitz

    try:
        doc = fitz.open(stream=BytesIO(raw_bytes), filetype="pdf")
    except Exception as e:
        raise ExtractionError(f"Failed to open PDF {filename}: {e}") from e

    try:
        pages = [page.get_text("text") for page in doc]
    finally:
        doc.close()

    return "\n\n".join(p.strip() for p in pages if p.strip())


def extract_text_from_upload(
    filename: str,
    content_type: str | None,
    raw_bytes: bytes,
) -> FileTextResult:
    """
    Extract text content from an uploaded file.

    Args:
        filename: Original filename
        content_type: MIME content type (may be None)
        raw_bytes: Raw file bytes

    Returns:
        FileTextResult with extracted text and how it was obtained

    Raises:
        ExtractionError: If file type is not supported or content cannot be read
    """
    extension = _get_extension(filename)
    normalized_type = (content_type or "").lower()

    if extension in DOCX_EXTENSIONS or normalized_type in DOCX_CONTENT_TYPES:
        text = _extract_docx(raw_bytes, filename)
        method = "docx"
    elif extension in PDF_EXTENSIONS or normalized_type in PDF_CONTENT_TYPES:
        text = _extract_pdf(raw_bytes, filename)
        method = "pdf"
    elif extension in TEXT_EXTENSIONS or _matches_prefix(content_type, TEXT_CONTENT_TYPE_PREFIXES):
        text, method = _decode_bytes(raw_bytes)
    else:
        allowed = ", ".join(sorted(TEXT_EXTENSIONS | DOCX_EXTENSIONS | PDF_EXTENSIONS))
        raise ExtractionError(f"Unsupported file type. Allowed extensions: {allowed}")

    if len(text) > MAX_EXTRACTED_CHARS:
        logger.warning(
            f"Truncating extracted text for {filename} to {MAX_EXTRACTED_CHARS} chars",
            extra={"original_chars": len(text)},
        )
        text = text[:MAX_EXTRACTED_CHARS]

    logger.debug(f"Extracted {len(text)} chars from {filename} via {method}")
    return FileTextResult(text=text, extraction_method=method)
