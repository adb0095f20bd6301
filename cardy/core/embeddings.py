"""OpenAI embeddings generation with validation and retry."""

import asyncio

from openai import (
    APIConnectionError,
    APIStatusError,
    InternalServerError,
    OpenAI,
    RateLimitError,
)

from cardy.core.config import get_settings
from cardy.core.errors import UpstreamServiceError
from cardy.core.logging import get_logger

logger = get_logger(__name__)

# APITimeoutError subclasses APIConnectionError
TRANSIENT_ERRORS = (APIConnectionError, InternalServerError, RateLimitError)


def _get_client() -> OpenAI:
    """Get OpenAI client instance. Retries are handled here, not by the SDK."""
    settings = get_settings()
    return OpenAI(
        api_key=settings.OPENAI_API_KEY,
        timeout=settings.OPENAI_TIMEOUT_SECONDS,
        max_retries=0,
    )


def embed_texts(texts: list[str]) -> list[list[float]]:
    """
    Generate embeddings for a list of texts using OpenAI.

    Args:
        texts: List of text strings to embed

    Returns:
        List of embedding vectors (each vector is list of floats)

    Raises:
        ValueError: If embedding dimension doesn't match expected EMBEDDING_DIM
        Exception: If OpenAI API call fails
    """
    if not texts:
        return []

    settings = get_settings()
    client = _get_client()

    try:
        # Newlines degrade embedding quality for older models
        inputs = [t.replace("\n", " ").strip() for t in texts]
        response = client.embeddings.create(
            model=settings.EMBEDDING_MODEL,
            input=inputs,
        )

        embeddings = []
        for i, embedding_obj in enumerate(response.data):
            embedding = embedding_obj.embedding

            if len(embedding) != settings.EMBEDDING_DIM:
                raise ValueError(
                    f"Embedding dimension mismatch for text {i}: "
                    f"expected {settings.EMBEDDING_DIM}, got {len(embedding)}"
                )

            embeddings.append(embedding)

        logger.info(
            f"Generated {len(embeddings)} embeddings using {settings.EMBEDDING_MODEL}",
            extra={"model": settings.EMBEDDING_MODEL, "count": len(embeddings)},
        )

        return embeddings

    except Exception as e:
        logger.error(f"Failed to generate embeddings: {e}")
        raise


async def embed_texts_async(texts: list[str]) -> list[list[float]]:
    """Async wrapper around embed_texts using thread pool."""
    return await asyncio.to_thread(embed_texts, texts)


async def embed_text_with_retry(text: str) -> list[float]:
    """Embed a single text, retrying transient provider errors with exponential backoff.

    Returns:
        The embedding vector.

    Raises:
        UpstreamServiceError: When the provider rejects the request or every
            attempt failed with a transient error.
        ValueError: On embedding dimension mismatch.
    """
    settings = get_settings()
    max_retries = settings.EMBEDDING_MAX_RETRIES
    base_delay = settings.EMBEDDING_RETRY_BASE_DELAY

    for attempt in range(max_retries + 1):
        try:
            embeddings = await embed_texts_async([text])
            return embeddings[0]

        except TRANSIENT_ERRORS as e:
            if attempt < max_retries:
                delay = base_delay * (2**attempt)
                logger.warning(
                    f"Embedding attempt {attempt + 1}/{max_retries + 1} failed "
                    f"({type(e).__name__}), retrying in {delay}s"
                )
                await asyncio.sleep(delay)
                continue
            raise UpstreamServiceError(
                "openai", f"embedding failed after {max_retries + 1} attempts: {e}"
            ) from e

        except APIStatusError as e:
            raise UpstreamServiceError("openai", e.message, e.status_code) from e

    # Loop always returns or raises
    raise UpstreamServiceError("openai", "embedding failed")
