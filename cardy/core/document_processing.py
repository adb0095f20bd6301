"""Chunk and embed a stored document.

Processing claims the document, replaces its chunks, and records one of three
outcomes: completed (every chunk embedded), partial (some), or failed (none).
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from cardy.core.chunking import chunk_text
from cardy.core.config import get_settings
from cardy.core.document_content import content_from_record, content_text
from cardy.core.embeddings import embed_text_with_retry
from cardy.core.errors import DocumentStateError, NotFoundError, UpstreamServiceError
from cardy.core.logging import get_logger
from cardy.db.chunks import delete_document_chunks, insert_document_chunks
from cardy.db.documents import (
    claim_document_for_processing,
    get_document,
    update_document_processing,
)

logger = get_logger(__name__)


@dataclass
class ProcessingResult:
    """Outcome of processing one document."""

    document_id: str
    status: str
    total_chunks: int = 0
    embedded_chunks: int = 0
    failed_chunk_indices: list[int] = field(default_factory=list)
    error: str | None = None


@dataclass
class _EmbeddedChunk:
    chunk: dict[str, Any]
    embedding: list[float] | None
    error: str | None = None


async def _embed_chunks(chunks: list[dict[str, Any]], concurrency: int) -> list[_EmbeddedChunk]:
    """Embed every chunk with at most `concurrency` requests in flight."""
    semaphore = asyncio.Semaphore(concurrency)

    async def _embed_one(chunk: dict[str, Any]) -> _EmbeddedChunk:
        async with semaphore:
            try:
                embedding = await embed_text_with_retry(chunk["content"])
                return _EmbeddedChunk(chunk=chunk, embedding=embedding)
            except (UpstreamServiceError, ValueError) as e:
                logger.warning(
                    f"Chunk {chunk['chunk_index']} failed to embed: {e}",
                    extra={"chunk_index": chunk["chunk_index"]},
                )
                return _EmbeddedChunk(chunk=chunk, embedding=None, error=str(e))

    results = await asyncio.gather(*[_embed_one(c) for c in chunks])
    # Completion order does not matter; restore chunk order
    return sorted(results, key=lambda r: r.chunk["chunk_index"])


def _final_status(total: int, embedded: int) -> str:
    if total > 0 and embedded == total:
        return "completed"
    if embedded > 0:
        return "partial"
    return "failed"


async def process_document(document_id: str, force: bool = False) -> ProcessingResult:
    """
    Chunk and embed a document, replacing any previous chunks.

    Args:
        document_id: Document to process
        force: Reprocess a document whose processing already finished

    Returns:
        ProcessingResult with the final status and chunk counts

    Raises:
        NotFoundError: If the document does not exist
        DocumentStateError: If the document is being processed, or already processed
            and force is not set
    """
    settings = get_settings()

    document = get_document(document_id)
    if not document:
        raise NotFoundError("Document", document_id)

    if not claim_document_for_processing(document_id, force=force):
        status = document.get("processing_status")
        raise DocumentStateError(
            f"Document {document_id} cannot be processed from status '{status}'"
            + ("" if force or status == "processing" else "; pass force to reprocess")
        )

    logger.info(
        f"Processing document {document_id}",
        extra={"document_id": document_id, "document_type": document.get("document_type")},
    )

    try:
        text = content_text(content_from_record(document))
        delete_document_chunks(document_id)

        chunks = chunk_text(
            text,
            max_chars=settings.CHUNK_MAX_CHARS,
            overlap=settings.CHUNK_OVERLAP,
            metadata={"document_type": document.get("document_type")},
        )

        if not chunks:
            error = "Document has no text content"
            update_document_processing(
                document_id, "failed", error=error, total_chunks=0, embedded_chunks=0
            )
            return ProcessingResult(document_id=document_id, status="failed", error=error)

        results = await _embed_chunks(chunks, settings.EMBEDDING_CONCURRENCY)
        succeeded = [r for r in results if r.embedding is not None]
        failed = [r for r in results if r.embedding is None]

        if succeeded:
            insert_document_chunks(
                document,
                [r.chunk for r in succeeded],
                [r.embedding for r in succeeded],
            )

        status = _final_status(len(chunks), len(succeeded))
        error = None
        if failed:
            error = f"{len(failed)} of {len(chunks)} chunks failed to embed: {failed[0].error}"

        update_document_processing(
            document_id,
            status,
            error=error,
            total_chunks=len(chunks),
            embedded_chunks=len(succeeded),
        )

        logger.info(
            f"Processed document {document_id}: {status}",
            extra={
                "document_id": document_id,
                "total_chunks": len(chunks),
                "embedded_chunks": len(succeeded),
            },
        )

        return ProcessingResult(
            document_id=document_id,
            status=status,
            total_chunks=len(chunks),
            embedded_chunks=len(succeeded),
            failed_chunk_indices=[r.chunk["chunk_index"] for r in failed],
            error=error,
        )

    except Exception as e:
        logger.exception(f"Processing failed for document {document_id}")
        update_document_processing(document_id, "failed", error=str(e))
        raise
