"""Pydantic schemas for project context (the retrieval scope)."""

from pydantic import BaseModel, Field, model_validator


class ProjectContext(BaseModel):
    """Project plus optional document subset a request is scoped to."""

    project_id: str = Field(..., min_length=1, description="Project the request is scoped to")
    document_ids: list[str] | None = Field(
        default=None,
        description="Restrict to these documents; omit to use every project document",
    )


class ContextRequestMixin(BaseModel):
    """Requests carry either an inline context or a saved session id."""

    context: ProjectContext | None = None
    session_id: str | None = None

    @model_validator(mode="after")
    def _require_scope(self):
        if self.context is None and not self.session_id:
            raise ValueError("Provide either 'context' or 'session_id'")
        return self


class SaveContextRequest(BaseModel):
    """Request body for saving a session context."""

    project_id: str = Field(..., min_length=1)
    document_ids: list[str] = Field(default_factory=list)


class SavedContextResponse(BaseModel):
    session_id: str
    project_id: str
    document_ids: list[str]
