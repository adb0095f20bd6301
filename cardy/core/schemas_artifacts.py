"""Pydantic schemas for story artifacts and Jira tickets."""

from enum import Enum

from pydantic import BaseModel, Field

from cardy.core.schemas_context import ProjectContext


class ArtifactType(str, Enum):
    """Artifact kinds generated per ticket."""

    LLD = "lld"
    CODE = "code"
    TESTS = "tests"
    TEST_CASES = "test_cases"

    @property
    def content_column(self) -> str:
        return f"{self.value}_content"

    @property
    def gdoc_column(self) -> str:
        return f"{self.value}_gdoc_id"


class JiraTicket(BaseModel):
    """Jira ticket fields used for generation."""

    id: str | None = None
    key: str = Field(..., min_length=1, description="Ticket key, e.g. CW-123")
    summary: str = Field(default="", description="Ticket title")
    description: str | None = None
    acceptance_criteria: str | None = None
    status: str | None = None
    issue_type: str | None = None
    priority: str | None = None
    assignee: str | None = None
    labels: list[str] = Field(default_factory=list)
    story_points: float | None = None
    project_id: str | None = None
    sprint_id: str | None = None


class GenerateArtifactRequest(BaseModel):
    """Request body for artifact generation; the document scope is optional."""

    context: ProjectContext | None = None
    session_id: str | None = None

    ticket: JiraTicket
    additional_context: str | None = Field(
        default=None, description="Extra instructions from the requester"
    )


class ArtifactResponse(BaseModel):
    """One artifact for one ticket."""

    story_id: str
    artifact_type: ArtifactType
    content: str
    generated: bool = Field(..., description="False when existing content was returned")
    usage: dict[str, int] = Field(default_factory=dict)


class StoryArtifactsResponse(BaseModel):
    """Every artifact stored for a ticket."""

    story_id: str
    artifacts: dict[str, str | None]
    gdoc_ids: dict[str, str | None]


class GoogleDocExportRequest(BaseModel):
    """Request body for Google Docs export."""

    title: str | None = None
    access_token: str | None = Field(
        default=None, description="OAuth token; falls back to GOOGLE_ACCESS_TOKEN"
    )


class GoogleDocExportResponse(BaseModel):
    document_id: str
    url: str
