"""Document ingestion: validate, resolve content once, deduplicate, store."""

import uuid
from dataclasses import dataclass
from typing import Any

from cardy.core.config import get_settings
from cardy.core.document_content import resolve_upload_content, serialize_content
from cardy.core.errors import NotFoundError
from cardy.core.logging import get_logger
from cardy.db.documents import (
    check_duplicate,
    compute_checksum,
    create_document,
    delete_file,
    upload_file,
)
from cardy.db.projects import get_project

logger = get_logger(__name__)


@dataclass
class IngestionResult:
    document: dict[str, Any]
    is_duplicate: bool = False


def ingest_document(
    project_id: str,
    title: str,
    document_type: str,
    filename: str,
    content_type: str | None,
    raw_bytes: bytes,
    source_url: str | None = None,
) -> IngestionResult:
    """
    Store a new project document in 'pending' state.

    The content kind (raw text or structured data model) is resolved here and never
    re-derived later. Uploading identical bytes twice to one project returns the
    existing record only when title, filename, type and source URL also match.

    Raises:
        ValueError: If the file is empty, too large, or its content unreadable
        NotFoundError: If the project does not exist
    """
    settings = get_settings()

    if not raw_bytes:
        raise ValueError("Empty file")
    if len(raw_bytes) > settings.MAX_UPLOAD_BYTES:
        raise ValueError(
            f"File size ({len(raw_bytes)} bytes) exceeds limit ({settings.MAX_UPLOAD_BYTES} bytes)"
        )

    if not get_project(project_id):
        raise NotFoundError("Project", project_id)

    checksum = compute_checksum(raw_bytes)
    existing = check_duplicate(
        project_id,
        checksum,
        title=title,
        filename=filename,
        document_type=document_type,
        source_url=source_url,
    )
    if existing:
        logger.info(f"Duplicate document detected: {filename}", extra={"project_id": project_id})
        return IngestionResult(document=existing, is_duplicate=True)

    content = resolve_upload_content(document_type, filename, content_type, raw_bytes)
    content_kind, stored_content = serialize_content(content)

    mime_type = content_type or "application/octet-stream"
    # One object per document row; rows sharing bytes must not share a file
    storage_path = f"{project_id}/{uuid.uuid4().hex}_{filename}"
    upload_file(storage_path, raw_bytes, mime_type)

    try:
        document = create_document(
            project_id=project_id,
            title=title,
            filename=filename,
            document_type=document_type,
            content_kind=content_kind,
            content=stored_content,
            checksum=checksum,
            storage_path=storage_path,
            mime_type=mime_type,
            file_size_bytes=len(raw_bytes),
            source_url=source_url,
        )
    except Exception:
        logger.error(
            f"Document insert failed, removing stored file {storage_path}",
            extra={"project_id": project_id},
        )
        try:
            delete_file(storage_path)
        except Exception as cleanup_error:
            logger.warning(f"Failed to remove orphaned file {storage_path}: {cleanup_error}")
        raise

    return IngestionResult(document=document)
