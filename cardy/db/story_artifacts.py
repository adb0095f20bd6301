"""Database operations for per-ticket story artifacts."""

from datetime import datetime, timezone
from typing import Any

from cardy.core.logging import get_logger
from cardy.core.schemas_artifacts import ArtifactType
from cardy.db.supabase_client import get_supabase

logger = get_logger(__name__)


def get_story_artifacts(story_id: str) -> dict[str, Any] | None:
    """Get the artifact row for a ticket key, or None."""
    supabase = get_supabase()

    response = supabase.table("story_artifacts").select("*").eq("story_id", story_id).execute()

    return response.data[0] if response.data else None


def get_artifact_content(story_id: str, artifact_type: ArtifactType) -> str | None:
    """Stored content for one artifact type, or None when absent."""
    row = get_story_artifacts(story_id)
    if not row:
        return None
    return row.get(artifact_type.content_column) or None


def save_artifact_content(
    story_id: str,
    artifact_type: ArtifactType,
    content: str,
    project_id: str | None = None,
    sprint_id: str | None = None,
) -> dict[str, Any]:
    """
    Upsert one artifact's content on the ticket's row.

    Args:
        story_id: Jira ticket key
        artifact_type: Which artifact column to write
        content: Generated content
        project_id: Project the ticket belongs to
        sprint_id: Sprint the ticket belongs to

    Returns:
        The stored row
    """
    supabase = get_supabase()

    record: dict[str, Any] = {
        "story_id": story_id,
        artifact_type.content_column: content,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }
    if project_id:
        record["project_id"] = project_id
    if sprint_id:
        record["sprint_id"] = sprint_id

    try:
        response = (
            supabase.table("story_artifacts")
            .upsert(record, on_conflict="story_id")
            .execute()
        )

        if not response.data:
            raise ValueError("No data returned from save_artifact_content")

        logger.info(
            f"Saved {artifact_type.value} for {story_id}",
            extra={"story_id": story_id, "artifact_type": artifact_type.value},
        )
        return response.data[0]

    except Exception as e:
        logger.error(f"Failed to save {artifact_type.value} for {story_id}: {e}")
        raise


def save_gdoc_id(story_id: str, artifact_type: ArtifactType, gdoc_id: str) -> dict[str, Any]:
    """Record the Google Doc an artifact was exported to."""
    supabase = get_supabase()

    response = (
        supabase.table("story_artifacts")
        .update({artifact_type.gdoc_column: gdoc_id})
        .eq("story_id", story_id)
        .execute()
    )

    if not response.data:
        raise ValueError(f"No artifacts stored for {story_id}")

    logger.info(
        f"Recorded Google Doc {gdoc_id} for {story_id} {artifact_type.value}",
        extra={"story_id": story_id},
    )
    return response.data[0]
