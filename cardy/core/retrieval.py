"""Similarity search over project documents.

Flow:
  1. Validate the scope (before any external call)
  2. Embed the query
  3. match_document_chunks RPC filtered by project and documents
  4. Drop any row outside the scope
  5. If nothing met the threshold, fall back to an unscored scan of the scope
"""

from dataclasses import dataclass, field
from typing import Any

from cardy.core.config import get_settings
from cardy.core.document_content import content_from_record, content_text
from cardy.core.embeddings import embed_text_with_retry
from cardy.core.errors import ScopeValidationError
from cardy.core.logging import get_logger
from cardy.core.schemas_context import ProjectContext
from cardy.core.scope import validate_scope
from cardy.db.chunks import list_scope_documents, search_document_chunks

logger = get_logger(__name__)


@dataclass
class RetrievedChunk:
    """One chunk of evidence, ranked by similarity (None for fallback rows)."""

    document_id: str
    document_name: str
    document_type: str | None
    chunk_index: int
    content: str
    similarity: float | None = None


@dataclass
class RetrievalResult:
    """Result of a scoped similarity search."""

    query: str
    chunks: list[RetrievedChunk] = field(default_factory=list)
    is_fallback: bool = False

    @property
    def document_ids(self) -> list[str]:
        return list(dict.fromkeys(c.document_id for c in self.chunks))


def _in_scope(row: dict[str, Any], context: ProjectContext) -> bool:
    if str(row.get("project_id")) != context.project_id:
        return False
    if context.document_ids is not None and str(row.get("document_id")) not in context.document_ids:
        return False
    return True


def _from_match_row(row: dict[str, Any]) -> RetrievedChunk:
    return RetrievedChunk(
        document_id=str(row["document_id"]),
        document_name=row.get("document_title") or row.get("document_name") or "Untitled",
        document_type=row.get("document_type"),
        chunk_index=row.get("chunk_index", 0),
        content=row.get("chunk_text") or "",
        similarity=row.get("similarity"),
    )


def _fallback_scan(context: ProjectContext, max_chars: int) -> list[RetrievedChunk]:
    """Unscored document-level scan of the scope."""
    chunks = []
    for doc in list_scope_documents(context.project_id, context.document_ids):
        if str(doc.get("project_id")) != context.project_id:
            continue
        text = content_text(content_from_record(doc)).strip()
        if not text:
            continue
        chunks.append(
            RetrievedChunk(
                document_id=str(doc["id"]),
                document_name=doc.get("title") or doc.get("filename") or "Untitled",
                document_type=doc.get("document_type"),
                chunk_index=0,
                content=text[:max_chars],
                similarity=None,
            )
        )
    return chunks


async def search(
    query: str,
    context: ProjectContext,
    match_threshold: float | None = None,
    match_count: int | None = None,
) -> RetrievalResult:
    """
    Find the chunks in scope most similar to a query.

    Args:
        query: Natural-language query
        context: Project and optional document subset to search
        match_threshold: Minimum similarity (defaults to MATCH_THRESHOLD)
        match_count: Max chunks (defaults to MATCH_COUNT)

    Returns:
        RetrievalResult. Never raises for an empty result; is_fallback is set when
        no chunk met the threshold and the scope was scanned instead.

    Raises:
        ScopeValidationError: If the query is blank or the scope malformed
        NotFoundError: If the project does not exist
        UpstreamServiceError: If embedding the query fails
    """
    settings = get_settings()

    if not query or not query.strip():
        raise ScopeValidationError("Query must not be empty")

    context = validate_scope(context)
    threshold = settings.MATCH_THRESHOLD if match_threshold is None else match_threshold
    count = settings.MATCH_COUNT if match_count is None else match_count

    query_embedding = await embed_text_with_retry(query)

    rows = search_document_chunks(
        query_embedding=query_embedding,
        match_threshold=threshold,
        match_count=count,
        project_id=context.project_id,
        document_ids=context.document_ids,
    )

    scoped = [r for r in rows if _in_scope(r, context)]
    if len(scoped) != len(rows):
        logger.warning(
            f"Dropped {len(rows) - len(scoped)} chunks outside the requested scope",
            extra={"project_id": context.project_id},
        )

    if scoped:
        return RetrievalResult(query=query, chunks=[_from_match_row(r) for r in scoped])

    logger.info(
        "No chunks met the threshold, scanning scope documents",
        extra={"project_id": context.project_id, "match_threshold": threshold},
    )
    return RetrievalResult(
        query=query,
        chunks=_fallback_scan(context, settings.FALLBACK_MAX_CHARS),
        is_fallback=True,
    )
