"""Jira Cloud REST API service for projects, sprints and tickets.

Credentials are supplied per request. Uses httpx for async HTTP requests with
Basic auth (account email + API token).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import httpx

from cardy.core.config import get_settings
from cardy.core.errors import UpstreamServiceError
from cardy.core.logging import get_logger
from cardy.core.schemas_artifacts import JiraTicket

logger = get_logger(__name__)

ACCEPTANCE_CRITERIA_FIELD = "customfield_10016"
STORY_POINTS_FIELD = "customfield_10026"
MAX_BOARDS = 3
MAX_TICKETS = 50
SPRINT_STATE_ORDER = {"active": 0, "future": 1, "closed": 2}


@dataclass
class JiraCredentials:
    domain: str
    email: str
    api_token: str


def normalize_domain(domain: str) -> str:
    """Strip scheme and trailing slashes: 'https://acme.atlassian.net/' -> 'acme.atlassian.net'."""
    return re.sub(r"/+$", "", re.sub(r"^https?://", "", domain.strip(), flags=re.IGNORECASE))


def adf_to_text(node: Any) -> str:
    """Flatten an Atlassian document format node (or plain string) to text."""
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return "".join(adf_to_text(n) for n in node)
    if not isinstance(node, dict):
        return str(node)

    node_type = node.get("type")
    if node_type == "text":
        return node.get("text", "")
    if node_type == "hardBreak":
        return "\n"

    inner = adf_to_text(node.get("content", []))
    if node_type in ("paragraph", "heading", "listItem", "codeBlock", "blockquote"):
        return inner.rstrip("\n") + "\n"
    return inner


def text_to_adf(text: str) -> dict[str, Any]:
    """Wrap plain text as an Atlassian document, one paragraph per line."""
    paragraphs = [
        {"type": "paragraph", "content": [{"type": "text", "text": line}]}
        for line in text.split("\n")
        if line.strip()
    ]
    return {"type": "doc", "version": 1, "content": paragraphs}


def map_issue(issue: dict[str, Any], sprint_id: str | None = None) -> JiraTicket:
    """Map a Jira issue payload to JiraTicket."""
    fields = issue.get("fields") or {}
    project = fields.get("project") or {}
    story_points = fields.get(STORY_POINTS_FIELD)

    return JiraTicket(
        id=str(issue.get("id")) if issue.get("id") else None,
        key=issue["key"],
        summary=fields.get("summary") or "",
        description=adf_to_text(fields.get("description")).strip() or None,
        acceptance_criteria=adf_to_text(fields.get(ACCEPTANCE_CRITERIA_FIELD)).strip() or None,
        status=(fields.get("status") or {}).get("name"),
        issue_type=(fields.get("issuetype") or {}).get("name"),
        priority=(fields.get("priority") or {}).get("name"),
        assignee=(fields.get("assignee") or {}).get("displayName"),
        labels=fields.get("labels") or [],
        story_points=story_points if isinstance(story_points, (int, float)) else None,
        project_id=str(project["id"]) if project.get("id") else None,
        sprint_id=sprint_id,
    )


class JiraService:
    """Reads projects, sprints and tickets from one Jira Cloud site."""

    def __init__(self, credentials: JiraCredentials, timeout: float | None = None):
        self.domain = normalize_domain(credentials.domain)
        self.timeout = timeout or get_settings().HTTP_TIMEOUT_SECONDS
        self._auth = httpx.BasicAuth(credentials.email, credentials.api_token)
        self._headers = {"Accept": "application/json", "Content-Type": "application/json"}

    def _url(self, path: str, agile: bool = False) -> str:
        base = "rest/agile/1.0" if agile else "rest/api/3"
        return f"https://{self.domain}/{base}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        agile: bool = False,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                resp = await client.request(
                    method,
                    self._url(path, agile),
                    params=params,
                    json=json,
                    headers=self._headers,
                    auth=self._auth,
                )
            except httpx.HTTPError as e:
                logger.error(f"Jira request failed: {e}", extra={"path": path})
                raise UpstreamServiceError("jira", str(e)) from e

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.error(
                f"Jira returned {resp.status_code}: {message}",
                extra={"path": path, "status_code": resp.status_code},
            )
            raise UpstreamServiceError("jira", message, resp.status_code)

        return resp.json() if resp.content else None

    async def list_projects(self) -> list[dict[str, Any]]:
        """Projects visible to the account."""
        data = await self._request("GET", "project")
        return [
            {
                "id": str(p.get("id")),
                "key": p.get("key"),
                "name": p.get("name"),
                "avatar_url": (p.get("avatarUrls") or {}).get("48x48"),
            }
            for p in data or []
        ]

    async def list_sprints(self, project_id_or_key: str) -> list[dict[str, Any]]:
        """
        Sprints for a project.

        Scrum projects expose sprints on their boards (first three boards are read,
        sprints ordered active, future, closed). Projects without boards fall back to
        versions as sprints plus an "All Issues" entry.
        """
        boards = await self._request(
            "GET", "board", agile=True, params={"projectKeyOrId": project_id_or_key}
        )
        board_values = (boards or {}).get("values") or []

        sprints: dict[str, dict[str, Any]] = {}
        for board in board_values[:MAX_BOARDS]:
            try:
                data = await self._request(
                    "GET",
                    f"board/{board['id']}/sprint",
                    agile=True,
                    params={"state": "active,future,closed"},
                )
            except UpstreamServiceError as e:
                # Kanban boards reject the sprint endpoint
                logger.info(f"Board {board['id']} has no sprints: {e.message}")
                continue
            for sprint in (data or {}).get("values") or []:
                sprints[str(sprint["id"])] = {
                    "id": str(sprint["id"]),
                    "name": sprint.get("name"),
                    "state": sprint.get("state"),
                    "start_date": sprint.get("startDate"),
                    "end_date": sprint.get("endDate"),
                    "board_id": str(board["id"]),
                }

        if sprints:
            return sorted(
                sprints.values(), key=lambda s: SPRINT_STATE_ORDER.get(s["state"], 3)
            )

        return await self._list_classic_sprints(project_id_or_key)

    async def _list_classic_sprints(self, project_id_or_key: str) -> list[dict[str, Any]]:
        versions = await self._request("GET", f"project/{project_id_or_key}/versions")
        sprints = [
            {
                "id": f"version-{v['id']}",
                "name": v.get("name"),
                "state": "closed" if v.get("released") else "active",
                "start_date": v.get("startDate"),
                "end_date": v.get("releaseDate"),
                "board_id": None,
            }
            for v in versions or []
        ]
        sprints.append(
            {
                "id": f"classic-{project_id_or_key}",
                "name": "All Issues",
                "state": "active",
                "start_date": None,
                "end_date": None,
                "board_id": None,
            }
        )
        return sprints

    @staticmethod
    def _sprint_jql(sprint_id: str) -> str:
        if sprint_id.startswith("classic-"):
            return f'project = "{sprint_id.removeprefix("classic-")}" ORDER BY updated DESC'
        if sprint_id.startswith("version-"):
            return f"fixVersion = {sprint_id.removeprefix('version-')} ORDER BY updated DESC"
        return f"sprint = {sprint_id} ORDER BY updated DESC"

    async def list_tickets(self, sprint_id: str) -> list[JiraTicket]:
        """Up to 50 tickets of a sprint, most recently updated first."""
        data = await self._request(
            "POST",
            "search/jql",
            json={
                "jql": self._sprint_jql(sprint_id),
                "maxResults": MAX_TICKETS,
                "fields": ["*all"],
            },
        )
        issues = (data or {}).get("issues") or []
        logger.info(f"Fetched {len(issues)} tickets for sprint {sprint_id}")
        return [map_issue(issue, sprint_id=sprint_id) for issue in issues]

    async def get_ticket(self, key: str) -> JiraTicket:
        data = await self._request("GET", f"issue/{key}")
        return map_issue(data)

    async def add_comment(self, key: str, text: str) -> dict[str, Any]:
        """Post a plain-text comment to a ticket."""
        data = await self._request(
            "POST", f"issue/{key}/comment", json={"body": text_to_adf(text)}
        )
        logger.info(f"Added comment to {key}")
        return data or {}


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict):
        messages = body.get("errorMessages") or []
        errors = body.get("errors") or {}
        parts = list(messages) + [f"{k}: {v}" for k, v in errors.items()]
        if parts:
            return "; ".join(parts)
        if body.get("message"):
            return str(body["message"])
    return resp.text or resp.reason_phrase
