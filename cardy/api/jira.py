"""API endpoints proxying Jira Cloud with per-request credentials."""

from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel, Field

from cardy.core.errors import UpstreamServiceError
from cardy.core.logging import get_logger
from cardy.core.schemas_artifacts import JiraTicket
from cardy.services.jira_service import JiraCredentials, JiraService

logger = get_logger(__name__)

router = APIRouter()


class CommentRequest(BaseModel):
    text: str = Field(..., min_length=1)


def _service(domain: str, email: str, api_token: str) -> JiraService:
    return JiraService(JiraCredentials(domain=domain, email=email, api_token=api_token))


def _upstream(e: UpstreamServiceError) -> HTTPException:
    # Jira's own 401/403/404 are passed through; everything else is a bad gateway
    status = e.status_code if e.status_code in (401, 403, 404) else 502
    return HTTPException(status_code=status, detail=str(e))


@router.get("/projects")
async def list_jira_projects(
    x_jira_domain: str = Header(...),
    x_jira_email: str = Header(...),
    x_jira_token: str = Header(...),
) -> list[dict]:
    try:
        return await _service(x_jira_domain, x_jira_email, x_jira_token).list_projects()
    except UpstreamServiceError as e:
        raise _upstream(e)


@router.get("/projects/{project_key}/sprints")
async def list_jira_sprints(
    project_key: str,
    x_jira_domain: str = Header(...),
    x_jira_email: str = Header(...),
    x_jira_token: str = Header(...),
) -> list[dict]:
    try:
        return await _service(x_jira_domain, x_jira_email, x_jira_token).list_sprints(project_key)
    except UpstreamServiceError as e:
        raise _upstream(e)


@router.get("/sprints/{sprint_id}/tickets")
async def list_jira_tickets(
    sprint_id: str,
    x_jira_domain: str = Header(...),
    x_jira_email: str = Header(...),
    x_jira_token: str = Header(...),
) -> list[JiraTicket]:
    try:
        return await _service(x_jira_domain, x_jira_email, x_jira_token).list_tickets(sprint_id)
    except UpstreamServiceError as e:
        raise _upstream(e)


@router.get("/tickets/{ticket_key}")
async def get_jira_ticket(
    ticket_key: str,
    x_jira_domain: str = Header(...),
    x_jira_email: str = Header(...),
    x_jira_token: str = Header(...),
) -> JiraTicket:
    try:
        return await _service(x_jira_domain, x_jira_email, x_jira_token).get_ticket(ticket_key)
    except UpstreamServiceError as e:
        raise _upstream(e)


@router.post("/tickets/{ticket_key}/comments", status_code=201)
async def add_jira_comment(
    ticket_key: str,
    request: CommentRequest,
    x_jira_domain: str = Header(...),
    x_jira_email: str = Header(...),
    x_jira_token: str = Header(...),
) -> dict:
    try:
        return await _service(x_jira_domain, x_jira_email, x_jira_token).add_comment(
            ticket_key, request.text
        )
    except UpstreamServiceError as e:
        raise _upstream(e)
