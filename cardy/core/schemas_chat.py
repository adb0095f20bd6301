"""Pydantic schemas for search and Cardy Mind chat."""

from typing import Literal

from pydantic import BaseModel, Field

from cardy.core.schemas_context import ContextRequestMixin, ProjectContext


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class SearchRequest(ContextRequestMixin):
    """Request body for similarity search."""

    query: str = Field(..., min_length=1, description="Natural-language query")
    match_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    match_count: int | None = Field(default=None, ge=1, le=50)


class SearchResultChunk(BaseModel):
    document_id: str
    document_name: str
    document_type: str | None = None
    chunk_index: int
    content: str
    similarity: float | None = None


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResultChunk]
    is_fallback: bool


class ChatRequest(ContextRequestMixin):
    """Request body for Cardy Mind chat."""

    messages: list[ChatMessage] = Field(..., min_length=1)


class DataModelChatRequest(BaseModel):
    """Question about one structured data-model document; the scope is optional."""

    context: ProjectContext | None = None
    session_id: str | None = None

    document_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class ChatSource(BaseModel):
    document_id: str
    document_name: str
    document_type: str | None = None


class ChatResponse(BaseModel):
    reply: str
    sources: list[ChatSource]
    is_fallback: bool = False
    usage: dict[str, int] = Field(default_factory=dict)


class SpeakRequest(BaseModel):
    """Text for Cardy Mind to read aloud."""

    text: str = Field(..., min_length=1, max_length=4096)
    voice: Literal["alloy", "echo", "fable", "onyx", "nova", "shimmer"] | None = None


class TranscriptionResponse(BaseModel):
    text: str
