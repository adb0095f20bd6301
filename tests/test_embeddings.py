"""Tests for embeddings generation with mocked OpenAI API."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError, BadRequestError, RateLimitError

from cardy.core.embeddings import embed_text_with_retry, embed_texts
from cardy.core.errors import UpstreamServiceError

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def _rate_limit_error() -> RateLimitError:
    return RateLimitError(
        "Rate limit reached", response=httpx.Response(429, request=_REQUEST), body=None
    )


def _bad_request_error() -> BadRequestError:
    return BadRequestError(
        "Input too long", response=httpx.Response(400, request=_REQUEST), body=None
    )


@pytest.fixture
def mock_openai_response():
    """Create a mock OpenAI embeddings response."""

    def _create_response(num_embeddings: int, dimension: int = 1536):
        mock_response = MagicMock()
        mock_response.data = []

        for _ in range(num_embeddings):
            mock_embedding = MagicMock()
            mock_embedding.embedding = [0.1] * dimension
            mock_response.data.append(mock_embedding)

        return mock_response

    return _create_response


def test_embed_texts_single(mock_openai_response):
    """Test embedding a single text."""
    with patch("cardy.core.embeddings._get_client") as mock_get_client:
        mock_client = MagicMock()
        mock_client.embeddings.create.return_value = mock_openai_response(1)
        mock_get_client.return_value = mock_client

        embeddings = embed_texts(["Hello world"])

        assert len(embeddings) == 1
        assert len(embeddings[0]) == 1536
        mock_client.embeddings.create.assert_called_once()


def test_embed_texts_multiple(mock_openai_response):
    with patch("cardy.core.embeddings._get_client") as mock_get_client:
        mock_client = MagicMock()
        mock_client.embeddings.create.return_value = mock_openai_response(3)
        mock_get_client.return_value = mock_client

        embeddings = embed_texts(["Text one", "Text two", "Text three"])

        assert len(embeddings) == 3
        for embedding in embeddings:
            assert len(embedding) == 1536


def test_embed_texts_empty():
    """Test embedding empty list."""
    assert embed_texts([]) == []


def test_embed_texts_dimension_validation(mock_openai_response):
    """Test that dimension mismatch raises ValueError."""
    with patch("cardy.core.embeddings._get_client") as mock_get_client:
        mock_client = MagicMock()
        mock_client.embeddings.create.return_value = mock_openai_response(1, dimension=512)
        mock_get_client.return_value = mock_client

        with pytest.raises(ValueError, match="Embedding dimension mismatch"):
            embed_texts(["Test text"])


def test_embed_texts_strips_newlines(mock_openai_response):
    with patch("cardy.core.embeddings._get_client") as mock_get_client:
        mock_client = MagicMock()
        mock_client.embeddings.create.return_value = mock_openai_response(1)
        mock_get_client.return_value = mock_client

        embed_texts(["line one\nline two\n"])

        call_args = mock_client.embeddings.create.call_args
        assert call_args[1]["input"] == ["line one line two"]
        assert call_args[1]["model"] == "text-embedding-3-small"


# =============================================================================
# embed_text_with_retry
# =============================================================================


class TestEmbedTextWithRetry:
    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        with patch(
            "cardy.core.embeddings.embed_texts_async",
            new=AsyncMock(return_value=[[0.5] * 1536]),
        ) as mock_embed:
            embedding = await embed_text_with_retry("hello")

        assert embedding == [0.5] * 1536
        mock_embed.assert_awaited_once_with(["hello"])

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        mock_embed = AsyncMock(
            side_effect=[
                _rate_limit_error(),
                APIConnectionError(request=_REQUEST),
                [[0.2] * 1536],
            ]
        )
        with patch("cardy.core.embeddings.embed_texts_async", new=mock_embed), patch(
            "cardy.core.embeddings.asyncio.sleep", new=AsyncMock()
        ) as mock_sleep:
            embedding = await embed_text_with_retry("hello")

        assert embedding == [0.2] * 1536
        assert mock_embed.await_count == 3
        assert mock_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_upstream_error(self):
        mock_embed = AsyncMock(side_effect=_rate_limit_error())
        with patch("cardy.core.embeddings.embed_texts_async", new=mock_embed), patch(
            "cardy.core.embeddings.asyncio.sleep", new=AsyncMock()
        ):
            with pytest.raises(UpstreamServiceError, match="after 4 attempts"):
                await embed_text_with_retry("hello")

        # Default EMBEDDING_MAX_RETRIES is 3
        assert mock_embed.await_count == 4

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        mock_embed = AsyncMock(side_effect=_bad_request_error())
        with patch("cardy.core.embeddings.embed_texts_async", new=mock_embed):
            with pytest.raises(UpstreamServiceError) as exc_info:
                await embed_text_with_retry("hello")

        assert exc_info.value.status_code == 400
        assert exc_info.value.service == "openai"
        mock_embed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_dimension_mismatch_not_retried(self):
        mock_embed = AsyncMock(side_effect=ValueError("Embedding dimension mismatch"))
        with patch("cardy.core.embeddings.embed_texts_async", new=mock_embed):
            with pytest.raises(ValueError):
                await embed_text_with_retry("hello")

        mock_embed.assert_awaited_once()
