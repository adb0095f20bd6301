"""API endpoints for projects."""

from fastapi import APIRouter, HTTPException, Query

from cardy.core.logging import get_logger
from cardy.core.schemas_projects import CreateProjectRequest, ProjectListResponse
from cardy.db.documents import delete_project_documents
from cardy.db.projects import create_project, delete_project, get_project, list_projects

logger = get_logger(__name__)

router = APIRouter()


@router.post("", status_code=201)
async def create_project_endpoint(request: CreateProjectRequest) -> dict:
    """Create a project."""
    try:
        return create_project(
            name=request.name,
            project_type=request.type,
            details=request.details,
            bitbucket_url=request.bitbucket_url,
            google_drive_url=request.google_drive_url,
            jira_url=request.jira_url,
        )
    except Exception:
        logger.exception("Failed to create project")
        raise HTTPException(status_code=500, detail="Failed to create project")


@router.get("")
async def list_projects_endpoint(
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> ProjectListResponse:
    try:
        result = list_projects(limit=limit, offset=offset)
        return ProjectListResponse(projects=result["projects"], total=result["total"])
    except Exception:
        logger.exception("Failed to list projects")
        raise HTTPException(status_code=500, detail="Failed to list projects")


@router.get("/{project_id}")
async def get_project_endpoint(project_id: str) -> dict:
    project = get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.delete("/{project_id}")
async def delete_project_endpoint(project_id: str) -> dict:
    """Delete a project together with its documents, chunks and stored files."""
    if not get_project(project_id):
        raise HTTPException(status_code=404, detail="Project not found")

    try:
        deleted_documents = delete_project_documents(project_id)
        delete_project(project_id)
        return {"success": True, "deleted_documents": deleted_documents}
    except Exception:
        logger.exception(f"Failed to delete project {project_id}")
        raise HTTPException(status_code=500, detail="Failed to delete project")
