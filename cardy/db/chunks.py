"""Database operations for document chunks and vector search."""

from typing import Any
from uuid import UUID

from cardy.core.logging import get_logger
from cardy.db.supabase_client import get_supabase

logger = get_logger(__name__)


def delete_document_chunks(document_id: UUID | str) -> None:
    """Remove every chunk of a document (before reprocessing)."""
    supabase = get_supabase()

    try:
        supabase.table("project_chunks").delete().eq("document_id", str(document_id)).execute()
    except Exception as e:
        logger.error(f"Failed to delete chunks for document {document_id}: {e}")
        raise


def insert_document_chunks(
    document: dict[str, Any],
    chunks: list[dict[str, Any]],
    embeddings: list[list[float]],
) -> list[dict[str, Any]]:
    """
    Insert document chunks with embeddings.

    Args:
        document: Owning documents row (id, project_id, document_type)
        chunks: Chunk dicts with chunk_index, content, start_char, end_char
        embeddings: Embedding vectors, one per chunk

    Returns:
        List of inserted chunk rows

    Raises:
        ValueError: If chunks and embeddings length mismatch
        Exception: If database operation fails
    """
    if len(chunks) != len(embeddings):
        raise ValueError(
            f"Chunks count ({len(chunks)}) must match embeddings count ({len(embeddings)})"
        )

    if not chunks:
        return []

    supabase = get_supabase()

    try:
        chunk_records = [
            {
                "document_id": str(document["id"]),
                "project_id": str(document["project_id"]),
                "document_type": document.get("document_type"),
                "chunk_index": chunk["chunk_index"],
                "chunk_text": chunk["content"],
                "embedding": embedding,
                "metadata": {
                    "start_char": chunk["start_char"],
                    "end_char": chunk["end_char"],
                    **chunk.get("metadata", {}),
                },
            }
            for chunk, embedding in zip(chunks, embeddings, strict=True)
        ]

        response = supabase.table("project_chunks").insert(chunk_records).execute()

        if not response.data:
            raise ValueError("No data returned from insert_document_chunks")

        logger.info(
            f"Inserted {len(response.data)} chunks for document {document['id']}",
            extra={"document_id": str(document["id"])},
        )
        return response.data

    except Exception as e:
        logger.error(
            f"Failed to insert document chunks: {e}",
            extra={"document_id": str(document["id"])},
        )
        raise


def search_document_chunks(
    query_embedding: list[float],
    match_threshold: float,
    match_count: int,
    project_id: UUID | str,
    document_ids: list[str] | None = None,
) -> list[dict[str, Any]]:
    """
    Search for similar chunks using vector similarity.

    Args:
        query_embedding: Query embedding vector
        match_threshold: Minimum cosine similarity
        match_count: Number of results to return
        project_id: Project every result must belong to
        document_ids: Optional restriction to these documents

    Returns:
        Matching chunks ordered by similarity (highest first)

    Raises:
        Exception: If the RPC fails
    """
    supabase = get_supabase()

    try:
        response = supabase.rpc(
            "match_document_chunks",
            {
                "query_embedding": query_embedding,
                "match_threshold": match_threshold,
                "match_count": match_count,
                "filter_project_id": str(project_id),
                "filter_document_ids": [str(d) for d in document_ids] if document_ids else None,
            },
        ).execute()

        if not response.data:
            logger.info("No matching chunks found", extra={"project_id": str(project_id)})
            return []

        logger.info(
            f"Found {len(response.data)} matching chunks",
            extra={"match_count": match_count, "project_id": str(project_id)},
        )
        return response.data

    except Exception as e:
        logger.error(
            f"Failed to search document chunks: {e}",
            extra={"project_id": str(project_id)},
        )
        raise


def list_scope_documents(
    project_id: UUID | str,
    document_ids: list[str] | None = None,
) -> list[dict[str, Any]]:
    """Documents in a scope, for the unscored fallback scan."""
    supabase = get_supabase()

    query = (
        supabase.table("documents")
        .select("id, project_id, title, filename, document_type, content_kind, content")
        .eq("project_id", str(project_id))
    )
    if document_ids:
        query = query.in_("id", [str(d) for d in document_ids])

    response = query.order("created_at", desc=False).execute()
    return response.data or []
