"""Saved project context per session."""

from typing import Any

from cardy.core.logging import get_logger
from cardy.db.supabase_client import get_supabase

logger = get_logger(__name__)


def save_context(session_id: str, project_id: str, document_ids: list[str]) -> dict[str, Any]:
    """
    Replace a session's saved context wholesale.

    Args:
        session_id: Caller-chosen session key
        project_id: Project in scope
        document_ids: Documents in scope (empty means every project document)

    Returns:
        The stored row
    """
    supabase = get_supabase()

    try:
        supabase.table("project_context").delete().eq("session_id", session_id).execute()

        response = (
            supabase.table("project_context")
            .insert({
                "session_id": session_id,
                "project_id": project_id,
                "document_ids": document_ids,
            })
            .execute()
        )

        if not response.data:
            raise ValueError("No data returned from save_context")

        logger.info(
            f"Saved context for session {session_id}",
            extra={"project_id": project_id, "document_count": len(document_ids)},
        )
        return response.data[0]

    except Exception as e:
        logger.error(f"Failed to save context for session {session_id}: {e}")
        raise


def get_context(session_id: str) -> dict[str, Any] | None:
    supabase = get_supabase()

    response = (
        supabase.table("project_context").select("*").eq("session_id", session_id).execute()
    )
    return response.data[0] if response.data else None


def clear_context(session_id: str) -> bool:
    supabase = get_supabase()

    response = supabase.table("project_context").delete().eq("session_id", session_id).execute()
    return bool(response.data)
