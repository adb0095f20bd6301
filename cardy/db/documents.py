"""Database operations for project documents."""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from cardy.core.config import get_settings
from cardy.core.logging import get_logger
from cardy.db.supabase_client import get_supabase

logger = get_logger(__name__)

# States a forced reprocess may start from
FINISHED_STATUSES = ("completed", "partial", "failed")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def compute_checksum(file_bytes: bytes) -> str:
    """Compute SHA256 checksum for deduplication.

    Args:
        file_bytes: Raw file content

    Returns:
        Hex-encoded SHA256 hash
    """
    return hashlib.sha256(file_bytes).hexdigest()


def check_duplicate(
    project_id: UUID | str,
    checksum: str,
    title: str,
    filename: str,
    document_type: str,
    source_url: str | None = None,
) -> dict[str, Any] | None:
    """Return the document this upload would duplicate, if any.

    An upload is a duplicate only when the bytes and every submitted field match an
    existing document in the project. The same bytes under another title, filename,
    type or source URL are a separate document.
    """
    supabase = get_supabase()

    query = (
        supabase.table("documents")
        .select("*")
        .eq("project_id", str(project_id))
        .eq("checksum", checksum)
        .eq("title", title)
        .eq("filename", filename)
        .eq("document_type", document_type)
    )

    if source_url is None:
        query = query.is_("source_url", "null")
    else:
        query = query.eq("source_url", source_url)

    response = query.execute()

    if response.data:
        logger.info(f"Found duplicate document with checksum {checksum[:16]}...")
        return response.data[0]

    return None


def upload_file(storage_path: str, file_bytes: bytes, mime_type: str) -> None:
    """Upload original file bytes to the documents bucket."""
    supabase = get_supabase()
    supabase.storage.from_(get_settings().DOCUMENTS_BUCKET).upload(
        path=storage_path,
        file=file_bytes,
        file_options={"content-type": mime_type, "upsert": "true"},
    )


def delete_file(storage_path: str) -> None:
    """Remove an object from the documents bucket."""
    supabase = get_supabase()
    supabase.storage.from_(get_settings().DOCUMENTS_BUCKET).remove([storage_path])


def create_document(
    project_id: UUID | str,
    title: str,
    filename: str,
    document_type: str,
    content_kind: str,
    content: Any,
    checksum: str,
    storage_path: str | None = None,
    mime_type: str | None = None,
    file_size_bytes: int | None = None,
    source_url: str | None = None,
) -> dict[str, Any]:
    """Create a new document record in 'pending' state.

    Args:
        project_id: Owning project
        title: Display name
        filename: Original filename
        document_type: data-model, system-requirements, coding-guidelines, technical-design
        content_kind: 'raw' or 'structured'
        content: Text for raw content, normalised data model for structured content
        checksum: SHA256 of the uploaded bytes
        storage_path: Object path in the documents bucket
        mime_type: MIME type of the upload
        file_size_bytes: Upload size
        source_url: Where the document came from, if anywhere

    Returns:
        Created document record
    """
    supabase = get_supabase()

    record = {
        "project_id": str(project_id),
        "title": title,
        "filename": filename,
        "document_type": document_type,
        "content_kind": content_kind,
        "content": content,
        "checksum": checksum,
        "storage_path": storage_path,
        "mime_type": mime_type,
        "file_size_bytes": file_size_bytes,
        "source_url": source_url,
        "processing_status": "pending",
    }

    response = supabase.table("documents").insert(record).execute()

    if not response.data:
        raise ValueError("Failed to create document record")

    doc = response.data[0]
    logger.info(
        f"Created document {doc['id']}: {filename}",
        extra={"document_id": doc["id"], "project_id": str(project_id)},
    )

    return doc


def get_document(document_id: UUID | str) -> dict[str, Any] | None:
    """Get a document by ID, or None."""
    supabase = get_supabase()

    response = supabase.table("documents").select("*").eq("id", str(document_id)).execute()

    return response.data[0] if response.data else None


def get_documents(document_ids: list[str]) -> list[dict[str, Any]]:
    """Get several documents by ID (missing IDs are simply absent)."""
    if not document_ids:
        return []

    supabase = get_supabase()

    response = (
        supabase.table("documents")
        .select("id, project_id, title, filename, document_type, content_kind, content")
        .in_("id", [str(d) for d in document_ids])
        .execute()
    )

    return response.data or []


def list_project_documents(
    project_id: UUID | str,
    status: str | None = None,
    document_type: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> dict[str, Any]:
    """List documents for a project with optional filtering.

    Returns:
        Dict with 'documents' list and 'total' count
    """
    supabase = get_supabase()

    query = (
        supabase.table("documents")
        .select("*", count="exact")
        .eq("project_id", str(project_id))
    )

    if status:
        query = query.eq("processing_status", status)
    if document_type:
        query = query.eq("document_type", document_type)

    query = query.order("created_at", desc=True)
    query = query.range(offset, offset + limit - 1)

    response = query.execute()

    return {
        "documents": response.data or [],
        "total": response.count or 0,
    }


def claim_document_for_processing(document_id: UUID | str, force: bool = False) -> bool:
    """Atomically claim a document for processing.

    Sets status to 'processing' only if still 'pending', or, when force is set, if
    processing has already finished or a previous run has been 'processing' for
    longer than PROCESSING_STALE_SECONDS. A live run is never claimed twice.

    Returns:
        True if claimed successfully, False otherwise
    """
    supabase = get_supabase()

    query = (
        supabase.table("documents")
        .update({
            "processing_status": "processing",
            "processing_error": None,
            "processing_started_at": _now(),
        })
        .eq("id", str(document_id))
    )

    if force:
        cutoff = datetime.now(timezone.utc) - timedelta(
            seconds=get_settings().PROCESSING_STALE_SECONDS
        )
        claimable = ",".join(["pending", *FINISHED_STATUSES])
        query = query.or_(
            f"processing_status.in.({claimable}),"
            f"and(processing_status.eq.processing,"
            f"processing_started_at.lt.{cutoff.strftime('%Y-%m-%dT%H:%M:%SZ')})"
        )
    else:
        query = query.eq("processing_status", "pending")

    response = query.execute()

    if response.data:
        logger.info(f"Claimed document {document_id} for processing")
        return True

    logger.info(f"Document {document_id} already claimed or not claimable")
    return False


def update_document_processing(
    document_id: UUID | str,
    status: str,
    error: str | None = None,
    total_chunks: int | None = None,
    embedded_chunks: int | None = None,
) -> dict[str, Any]:
    """Record the outcome of processing.

    Args:
        document_id: Document UUID
        status: New status ('completed', 'partial', 'failed')
        error: Error message for failed or partial runs
        total_chunks: Number of chunks produced
        embedded_chunks: Number of chunks embedded and stored

    Returns:
        Updated document record
    """
    supabase = get_supabase()

    update_data: dict[str, Any] = {
        "processing_status": status,
        "processing_completed_at": _now(),
        "processing_error": error,
    }

    if total_chunks is not None:
        update_data["total_chunks"] = total_chunks
    if embedded_chunks is not None:
        update_data["embedded_chunks"] = embedded_chunks

    response = (
        supabase.table("documents")
        .update(update_data)
        .eq("id", str(document_id))
        .execute()
    )

    if not response.data:
        raise ValueError(f"Document {document_id} not found")

    logger.info(
        f"Updated document {document_id} to {status}",
        extra={"document_id": str(document_id), "status": status},
    )

    return response.data[0]


def delete_document(document_id: UUID | str) -> bool:
    """Delete a document: its storage object, its chunks, then the row.

    Returns:
        True if deleted, False if not found
    """
    doc = get_document(document_id)
    if not doc:
        return False

    supabase = get_supabase()

    if doc.get("storage_path"):
        try:
            delete_file(doc["storage_path"])
        except Exception as e:
            logger.warning(f"Failed to delete file from storage: {e}")

    supabase.table("project_chunks").delete().eq("document_id", str(document_id)).execute()
    supabase.table("documents").delete().eq("id", str(document_id)).execute()

    logger.info(f"Deleted document {document_id}", extra={"document_id": str(document_id)})
    return True


def delete_project_documents(project_id: UUID | str) -> int:
    """Delete every document of a project. Returns the number deleted."""
    supabase = get_supabase()

    response = (
        supabase.table("documents").select("id").eq("project_id", str(project_id)).execute()
    )

    deleted = 0
    for row in response.data or []:
        if delete_document(row["id"]):
            deleted += 1

    return deleted
