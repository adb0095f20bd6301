"""Projects database operations."""

from typing import Any
from uuid import UUID

from cardy.core.logging import get_logger
from cardy.db.supabase_client import get_supabase

logger = get_logger(__name__)

PROJECT_TYPES = ("Child Welfare", "Child Support", "Juvenile Justice")


def create_project(
    name: str,
    project_type: str,
    details: str | None = None,
    bitbucket_url: str | None = None,
    google_drive_url: str | None = None,
    jira_url: str | None = None,
) -> dict[str, Any]:
    """
    Create a new project.

    Args:
        name: Project name (required)
        project_type: One of PROJECT_TYPES
        details: Free-text project details used in generation prompts
        bitbucket_url: Repository link (optional)
        google_drive_url: Drive folder link (optional)
        jira_url: Jira project link (optional)

    Returns:
        Created project row as dict

    Raises:
        ValueError: If project_type is unknown
        Exception: If database operation fails
    """
    if project_type not in PROJECT_TYPES:
        raise ValueError(f"Unknown project type: {project_type}")

    supabase = get_supabase()

    try:
        data = {
            "name": name,
            "type": project_type,
            "details": details,
            "bitbucket_url": bitbucket_url,
            "google_drive_url": google_drive_url,
            "jira_url": jira_url,
        }

        response = supabase.table("projects").insert(data).execute()

        if not response.data:
            raise ValueError("No data returned from create_project")

        project = response.data[0]
        logger.info(
            f"Created project {project['id']}: {name}",
            extra={"project_id": project["id"], "project_name": name},
        )
        return project

    except Exception as e:
        logger.error(f"Failed to create project {name}: {e}")
        raise


def list_projects(limit: int = 50, offset: int = 0) -> dict[str, Any]:
    """
    List projects, newest first.

    Returns:
        Dict with 'projects' list and 'total' count
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table("projects")
            .select("*", count="exact")
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )

        return {
            "projects": response.data or [],
            "total": response.count or 0,
        }

    except Exception as e:
        logger.error(f"Failed to list projects: {e}")
        raise


def get_project(project_id: UUID | str) -> dict[str, Any] | None:
    """
    Get a single project by ID.

    Returns:
        Project row as dict, or None if it does not exist
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table("projects")
            .select("*")
            .eq("id", str(project_id))
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(f"Failed to get project {project_id}: {e}")
        raise


def delete_project(project_id: UUID | str) -> bool:
    """Delete a project row. Documents must be removed first."""
    supabase = get_supabase()

    response = supabase.table("projects").delete().eq("id", str(project_id)).execute()

    if response.data:
        logger.info(f"Deleted project {project_id}", extra={"project_id": str(project_id)})
        return True

    return False
