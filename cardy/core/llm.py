"""Chat completion client for Cardy Mind and artifact generation."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from openai import APIConnectionError, APIStatusError, OpenAI, RateLimitError

from cardy.core.config import get_settings
from cardy.core.errors import UpstreamServiceError
from cardy.core.logging import get_logger

logger = get_logger(__name__)

# A 429 is rejected before any tokens are billed, so it is the only retried error
_MAX_RATE_LIMIT_RETRIES = 2
_INITIAL_DELAY = 2.0


@dataclass
class CompletionResult:
    """Generated text plus token accounting."""

    content: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)


def _get_client() -> OpenAI:
    """Get OpenAI client instance with the configured per-request timeout."""
    settings = get_settings()
    return OpenAI(
        api_key=settings.OPENAI_API_KEY,
        timeout=settings.OPENAI_TIMEOUT_SECONDS,
        max_retries=0,
    )


def _usage_dict(usage: Any) -> dict[str, int]:
    if usage is None:
        return {}
    return {
        "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
        "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
        "total_tokens": getattr(usage, "total_tokens", 0) or 0,
    }


def complete_chat(
    messages: list[dict[str, str]],
    model: str,
    temperature: float,
    max_tokens: int,
) -> CompletionResult:
    """
    Request a chat completion.

    Args:
        messages: Ordered messages with system/user/assistant roles
        model: Model name
        temperature: Sampling temperature
        max_tokens: Completion token limit

    Returns:
        CompletionResult with content and usage

    Raises:
        RateLimitError: Left to the async wrapper, which retries it
        UpstreamServiceError: On any other provider failure or an empty reply
    """
    client = _get_client()

    try:
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except RateLimitError:
        raise
    except APIStatusError as e:
        logger.error(
            f"Chat completion rejected by provider: {e.message}",
            extra={"model": model, "status_code": e.status_code},
        )
        raise UpstreamServiceError("openai", e.message, e.status_code) from e
    except APIConnectionError as e:
        logger.error(f"Chat completion connection failure: {e}", extra={"model": model})
        raise UpstreamServiceError("openai", str(e)) from e

    if not response.choices or not response.choices[0].message.content:
        logger.error("Chat completion returned no content", extra={"model": model})
        raise UpstreamServiceError("openai", "empty completion returned")

    usage = _usage_dict(response.usage)
    logger.info(
        f"Chat completion received from {model}",
        extra={"model": model, **usage},
    )

    return CompletionResult(
        content=response.choices[0].message.content,
        model=model,
        usage=usage,
    )


async def complete_chat_async(
    messages: list[dict[str, str]],
    model: str,
    temperature: float,
    max_tokens: int,
) -> CompletionResult:
    """Async wrapper around complete_chat; retries only rate-limit rejections."""
    for attempt in range(_MAX_RATE_LIMIT_RETRIES + 1):
        try:
            return await asyncio.to_thread(
                complete_chat, messages, model, temperature, max_tokens
            )
        except RateLimitError as e:
            if attempt < _MAX_RATE_LIMIT_RETRIES:
                delay = _INITIAL_DELAY * (2**attempt)
                logger.warning(
                    f"Chat completion rate limited (attempt {attempt + 1}), retrying in {delay}s"
                )
                await asyncio.sleep(delay)
                continue
            raise UpstreamServiceError("openai", e.message, e.status_code) from e

    raise UpstreamServiceError("openai", "chat completion failed")
