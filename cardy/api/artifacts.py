"""API endpoints for per-ticket story artifacts."""

import asyncio

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from cardy.core.config import get_settings
from cardy.core.errors import (
    ArtifactStateError,
    NotFoundError,
    ScopeValidationError,
    UpstreamServiceError,
)
from cardy.core.generation import ArtifactResult, generate_artifact, get_artifacts, regenerate_artifact
from cardy.core.generation_prompts import ARTIFACT_HEADINGS
from cardy.core.logging import get_logger
from cardy.core.schemas_artifacts import (
    ArtifactResponse,
    ArtifactType,
    GenerateArtifactRequest,
    GoogleDocExportRequest,
    GoogleDocExportResponse,
    StoryArtifactsResponse,
)
from cardy.core.scope import resolve_context
from cardy.services.document_export import generate_docx, generate_pdf
from cardy.services.google_docs_service import document_url, export_to_google_doc

logger = get_logger(__name__)

router = APIRouter()

EXPORT_MEDIA_TYPES = {
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "pdf": "application/pdf",
}


def _stored_content(ticket_key: str, artifact_type: ArtifactType) -> str:
    row = get_artifacts(ticket_key)
    content = (row or {}).get(artifact_type.content_column)
    if not content:
        raise HTTPException(
            status_code=404, detail=f"No {artifact_type.value} stored for {ticket_key}"
        )
    return content


async def _run(ticket_key: str, artifact_type: ArtifactType, request: GenerateArtifactRequest, regenerate: bool) -> ArtifactResponse:
    if request.ticket.key != ticket_key:
        raise HTTPException(status_code=400, detail="Ticket key in body does not match path")

    operation = regenerate_artifact if regenerate else generate_artifact
    try:
        context = None
        if request.context is not None or request.session_id:
            context = resolve_context(request.context, request.session_id)
        result: ArtifactResult = await operation(
            request.ticket,
            artifact_type,
            context=context,
            additional_context=request.additional_context,
        )
    except ScopeValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ArtifactStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception:
        logger.exception(f"Failed to generate {artifact_type.value} for {ticket_key}")
        raise HTTPException(status_code=500, detail="Failed to generate artifact")

    return ArtifactResponse(
        story_id=result.story_id,
        artifact_type=result.artifact_type,
        content=result.content,
        generated=result.generated,
        usage=result.usage,
    )


@router.get("/{ticket_key}")
async def get_story_artifacts(ticket_key: str) -> StoryArtifactsResponse:
    """Every artifact stored for a ticket."""
    row = get_artifacts(ticket_key)
    if not row:
        raise HTTPException(status_code=404, detail=f"No artifacts stored for {ticket_key}")

    return StoryArtifactsResponse(
        story_id=ticket_key,
        artifacts={t.value: row.get(t.content_column) for t in ArtifactType},
        gdoc_ids={t.value: row.get(t.gdoc_column) for t in ArtifactType},
    )


@router.post("/{ticket_key}/{artifact_type}/generate")
async def generate(
    ticket_key: str, artifact_type: ArtifactType, request: GenerateArtifactRequest
) -> ArtifactResponse:
    """Return the stored artifact, generating it first if absent."""
    return await _run(ticket_key, artifact_type, request, regenerate=False)


@router.post("/{ticket_key}/{artifact_type}/regenerate")
async def regenerate(
    ticket_key: str, artifact_type: ArtifactType, request: GenerateArtifactRequest
) -> ArtifactResponse:
    """Replace an existing artifact with a fresh generation."""
    return await _run(ticket_key, artifact_type, request, regenerate=True)


@router.get("/{ticket_key}/{artifact_type}/export")
async def export_artifact(
    ticket_key: str,
    artifact_type: ArtifactType,
    format: str = Query(default="docx", pattern="^(docx|pdf)$"),
) -> Response:
    """Download an artifact as DOCX or PDF."""
    content = _stored_content(ticket_key, artifact_type)
    title = f"{ticket_key} - {ARTIFACT_HEADINGS[artifact_type]}"
    renderer = generate_pdf if format == "pdf" else generate_docx

    try:
        data = await asyncio.to_thread(renderer, content, title)
    except RuntimeError:
        logger.exception(f"Failed to export {artifact_type.value} for {ticket_key}")
        raise HTTPException(status_code=500, detail=f"Failed to export {format.upper()}")

    filename = f"{ticket_key}_{artifact_type.value}.{format}"
    return Response(
        content=data,
        media_type=EXPORT_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{ticket_key}/{artifact_type}/gdoc")
async def export_google_doc(
    ticket_key: str, artifact_type: ArtifactType, request: GoogleDocExportRequest
) -> GoogleDocExportResponse:
    """Export an artifact to a new Google Doc and remember its id."""
    access_token = request.access_token or get_settings().GOOGLE_ACCESS_TOKEN
    if not access_token:
        raise HTTPException(status_code=400, detail="Google access token is required")

    content = _stored_content(ticket_key, artifact_type)

    try:
        document_id = await export_to_google_doc(
            ticket_key, artifact_type, content, access_token, title=request.title
        )
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception:
        logger.exception(f"Failed to export {artifact_type.value} for {ticket_key} to Google Docs")
        raise HTTPException(status_code=500, detail="Failed to export to Google Docs")

    return GoogleDocExportResponse(document_id=document_id, url=document_url(document_id))
