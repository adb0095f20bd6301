"""API endpoints for project documents and their processing."""

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile

from cardy.core.document_processing import process_document
from cardy.core.errors import DocumentStateError, NotFoundError
from cardy.core.ingestion import ingest_document
from cardy.core.logging import get_logger
from cardy.core.schemas_projects import (
    CreateTextDocumentRequest,
    DocumentListResponse,
    DocumentStatusResponse,
    DocumentType,
    DocumentUploadResponse,
    ProcessDocumentResponse,
)
from cardy.db.documents import delete_document, get_document, list_project_documents

logger = get_logger(__name__)

router = APIRouter()


def _upload_response(doc: dict, is_duplicate: bool) -> DocumentUploadResponse:
    return DocumentUploadResponse(
        id=str(doc["id"]),
        project_id=str(doc["project_id"]),
        title=doc["title"],
        filename=doc["filename"],
        document_type=doc["document_type"],
        source_url=doc.get("source_url"),
        content_kind=doc["content_kind"],
        processing_status=doc["processing_status"],
        is_duplicate=is_duplicate,
    )


@router.post("/projects/{project_id}/documents", status_code=201)
async def upload_document(
    project_id: str,
    file: UploadFile = File(...),
    title: str | None = Form(default=None),
    document_type: DocumentType = Form(...),
    source_url: str | None = Form(default=None),
) -> DocumentUploadResponse:
    """Upload a document file.

    Data-model documents must be JSON; other types may be text, markdown, DOCX or PDF.
    The document is stored as 'pending' until processed.

    Raises:
        HTTPException 400: Empty, oversize or unreadable file
        HTTPException 404: Unknown project
    """
    file_bytes = await file.read()
    filename = file.filename or "unnamed"

    try:
        result = ingest_document(
            project_id=project_id,
            title=title or filename,
            document_type=document_type,
            filename=filename,
            content_type=file.content_type,
            raw_bytes=file_bytes,
            source_url=source_url,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception(f"Failed to upload document {filename}")
        raise HTTPException(status_code=500, detail="Failed to upload document")

    return _upload_response(result.document, result.is_duplicate)


@router.post("/projects/{project_id}/documents/text", status_code=201)
async def create_text_document(
    project_id: str, request: CreateTextDocumentRequest
) -> DocumentUploadResponse:
    """Create a document from text supplied in the request body."""
    default_name = "data-model.json" if request.document_type == "data-model" else "document.md"
    filename = request.filename or default_name

    try:
        result = ingest_document(
            project_id=project_id,
            title=request.title,
            document_type=request.document_type,
            filename=filename,
            content_type="application/json" if filename.endswith(".json") else "text/plain",
            raw_bytes=request.text.encode("utf-8"),
            source_url=request.source_url,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception(f"Failed to create document {request.title}")
        raise HTTPException(status_code=500, detail="Failed to create document")

    return _upload_response(result.document, result.is_duplicate)


@router.get("/projects/{project_id}/documents")
async def list_documents(
    project_id: str,
    status: str | None = Query(default=None),
    document_type: str | None = Query(default=None),
    limit: int = Query(default=50, le=100),
    offset: int = Query(default=0, ge=0),
) -> DocumentListResponse:
    try:
        result = list_project_documents(
            project_id=project_id,
            status=status,
            document_type=document_type,
            limit=limit,
            offset=offset,
        )
        return DocumentListResponse(documents=result["documents"], total=result["total"])
    except Exception:
        logger.exception(f"Failed to list documents for project {project_id}")
        raise HTTPException(status_code=500, detail="Failed to list documents")


@router.get("/documents/{document_id}")
async def get_document_endpoint(document_id: str) -> dict:
    doc = get_document(document_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


@router.get("/documents/{document_id}/status")
async def get_document_status(document_id: str) -> DocumentStatusResponse:
    doc = get_document(document_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return DocumentStatusResponse(
        id=str(doc["id"]),
        processing_status=doc["processing_status"],
        processing_error=doc.get("processing_error"),
        total_chunks=doc.get("total_chunks"),
        embedded_chunks=doc.get("embedded_chunks"),
    )


@router.delete("/documents/{document_id}")
async def delete_document_endpoint(document_id: str) -> dict:
    """Delete a document, its chunks and its stored file."""
    try:
        deleted = delete_document(document_id)
    except Exception:
        logger.exception(f"Failed to delete document {document_id}")
        raise HTTPException(status_code=500, detail="Failed to delete document")

    if not deleted:
        raise HTTPException(status_code=404, detail="Document not found")
    return {"success": True, "message": "Document deleted"}


@router.post("/documents/{document_id}/process")
async def process_document_endpoint(
    document_id: str,
    force: bool = Query(default=False, description="Reprocess a finished document"),
) -> ProcessDocumentResponse:
    """Chunk and embed a document.

    Returns the final status: completed, partial (some chunks failed to embed) or failed.

    Raises:
        HTTPException 404: Unknown document
        HTTPException 409: Document is being processed, or already processed without force
    """
    try:
        result = await process_document(document_id, force=force)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DocumentStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception:
        logger.exception(f"Failed to process document {document_id}")
        raise HTTPException(status_code=500, detail="Failed to process document")

    return ProcessDocumentResponse(
        document_id=result.document_id,
        status=result.status,
        total_chunks=result.total_chunks,
        embedded_chunks=result.embedded_chunks,
        failed_chunk_indices=result.failed_chunk_indices,
        error=result.error,
    )
