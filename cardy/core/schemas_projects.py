"""Pydantic schemas for projects and documents."""

from typing import Literal

from pydantic import BaseModel, Field

ProjectType = Literal["Child Welfare", "Child Support", "Juvenile Justice"]
DocumentType = Literal["data-model", "system-requirements", "coding-guidelines", "technical-design"]


class CreateProjectRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: ProjectType
    details: str | None = None
    bitbucket_url: str | None = None
    google_drive_url: str | None = None
    jira_url: str | None = None


class ProjectListResponse(BaseModel):
    projects: list[dict]
    total: int


class CreateTextDocumentRequest(BaseModel):
    """Ingest already-extracted text (or data-model JSON as text)."""

    title: str = Field(..., min_length=1)
    document_type: DocumentType
    text: str = Field(..., min_length=1, description="Document text")
    filename: str | None = None
    source_url: str | None = None


class DocumentUploadResponse(BaseModel):
    id: str
    project_id: str
    title: str
    filename: str
    document_type: str
    source_url: str | None = None
    content_kind: str
    processing_status: str
    is_duplicate: bool = False


class DocumentListResponse(BaseModel):
    documents: list[dict]
    total: int


class DocumentStatusResponse(BaseModel):
    id: str
    processing_status: str
    processing_error: str | None = None
    total_chunks: int | None = None
    embedded_chunks: int | None = None


class ProcessDocumentResponse(BaseModel):
    document_id: str
    status: str
    total_chunks: int
    embedded_chunks: int
    failed_chunk_indices: list[int] = Field(default_factory=list)
    error: str | None = None
