"""Document content resolved once at ingestion.

A document is either raw text or a structured data model. The kind is decided when
the file is uploaded and stored next to the content, so readers never re-sniff it.
"""

import json
from dataclasses import dataclass
from typing import Any, Literal, Union

from cardy.core.data_model import DataModel, normalise_data_model, render_data_model
from cardy.core.file_text import extract_text_from_upload

DOCUMENT_TYPES = ("data-model", "system-requirements", "coding-guidelines", "technical-design")
STRUCTURED_DOCUMENT_TYPES = {"data-model"}

ContentKind = Literal["raw", "structured"]


@dataclass
class RawContent:
    text: str
    kind: ContentKind = "raw"


@dataclass
class StructuredContent:
    data_model: DataModel
    kind: ContentKind = "structured"


DocumentContent = Union[RawContent, StructuredContent]


def resolve_upload_content(
    document_type: str,
    filename: str,
    content_type: str | None,
    raw_bytes: bytes,
) -> DocumentContent:
    """
    Resolve uploaded bytes into document content.

    Data-model uploads must be JSON in one of the accepted shapes; everything else is
    treated as text and extracted according to the file type.

    Raises:
        ValueError: If the document type is unknown or the content cannot be read
    """
    if document_type not in DOCUMENT_TYPES:
        raise ValueError(f"Unknown document type: {document_type}")

    if document_type in STRUCTURED_DOCUMENT_TYPES:
        text = extract_text_from_upload(filename, content_type, raw_bytes).text
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Data model must be valid JSON: {e.msg}") from e
        return StructuredContent(data_model=normalise_data_model(parsed))

    return RawContent(text=extract_text_from_upload(filename, content_type, raw_bytes).text)


def serialize_content(content: DocumentContent) -> tuple[str, Any]:
    """Return (content_kind, stored value) for the documents table."""
    if isinstance(content, StructuredContent):
        return "structured", content.data_model.model_dump()
    return "raw", content.text


def content_from_record(record: dict[str, Any]) -> DocumentContent:
    """Read content back from a documents row using its stored kind."""
    stored = record.get("content")
    if record.get("content_kind") == "structured":
        return StructuredContent(data_model=DataModel.model_validate(stored or {}))
    return RawContent(text=stored or "")


def content_text(content: DocumentContent) -> str:
    """Text used for chunking, prompts and fallback scans."""
    if isinstance(content, StructuredContent):
        return render_data_model(content.data_model)
    return content.text
