"""API endpoint for similarity search."""

from fastapi import APIRouter, HTTPException

from cardy.core.errors import NotFoundError, ScopeValidationError, UpstreamServiceError
from cardy.core.logging import get_logger
from cardy.core.retrieval import search
from cardy.core.schemas_chat import SearchRequest, SearchResponse, SearchResultChunk
from cardy.core.scope import resolve_context

logger = get_logger(__name__)

router = APIRouter()


@router.post("/search")
async def search_documents(request: SearchRequest) -> SearchResponse:
    """Return the chunks in scope most similar to the query.

    Raises:
        HTTPException 400: Malformed scope
        HTTPException 404: Unknown project or session
        HTTPException 502: Embedding provider failure
    """
    try:
        context = resolve_context(request.context, request.session_id)
        result = await search(
            request.query,
            context,
            match_threshold=request.match_threshold,
            match_count=request.match_count,
        )
    except ScopeValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception:
        logger.exception("Search failed")
        raise HTTPException(status_code=500, detail="Search failed")

    return SearchResponse(
        query=result.query,
        results=[
            SearchResultChunk(
                document_id=c.document_id,
                document_name=c.document_name,
                document_type=c.document_type,
                chunk_index=c.chunk_index,
                content=c.content,
                similarity=c.similarity,
            )
            for c in result.chunks
        ],
        is_fallback=result.is_fallback,
    )
