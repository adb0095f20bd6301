"""API endpoints for saved project context (per session)."""

from fastapi import APIRouter, HTTPException

from cardy.core.errors import NotFoundError, ScopeValidationError
from cardy.core.logging import get_logger
from cardy.core.schemas_context import ProjectContext, SaveContextRequest, SavedContextResponse
from cardy.core.scope import validate_scope
from cardy.db.project_context import clear_context, get_context, save_context

logger = get_logger(__name__)

router = APIRouter()


@router.put("/{session_id}")
async def save_session_context(session_id: str, request: SaveContextRequest) -> SavedContextResponse:
    """Replace the context saved for a session.

    An empty document list scopes the session to every document in the project.
    """
    try:
        context = validate_scope(
            ProjectContext(
                project_id=request.project_id,
                document_ids=request.document_ids or None,
            )
        )
        row = save_context(session_id, context.project_id, context.document_ids or [])
    except ScopeValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        logger.exception(f"Failed to save context for session {session_id}")
        raise HTTPException(status_code=500, detail="Failed to save context")

    return SavedContextResponse(
        session_id=session_id,
        project_id=str(row["project_id"]),
        document_ids=row.get("document_ids") or [],
    )


@router.get("/{session_id}")
async def get_session_context(session_id: str) -> SavedContextResponse:
    row = get_context(session_id)
    if not row:
        raise HTTPException(status_code=404, detail="No context saved for session")
    return SavedContextResponse(
        session_id=session_id,
        project_id=str(row["project_id"]),
        document_ids=row.get("document_ids") or [],
    )


@router.delete("/{session_id}")
async def clear_session_context(session_id: str) -> dict:
    return {"success": clear_context(session_id)}
