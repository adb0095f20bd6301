"""Text chunking utilities for document processing."""

from typing import Any

# Preferred split points, strongest first. The first one found in the back half
# of a window ends the chunk there.
BREAK_POINTS = ("\n\n", ". ", "! ", "? ", "\n", " ")


def _find_break(text: str, start: int, end: int, max_chars: int) -> int:
    """Return the end offset of the best break point inside text[start:end]."""
    floor = start + max_chars // 2
    for marker in BREAK_POINTS:
        idx = text.rfind(marker, floor, end)
        if idx != -1 and idx + len(marker) <= end:
            return idx + len(marker)
    return end


def chunk_text(
    text: str,
    max_chars: int = 1000,
    overlap: int = 200,
    metadata: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """
    Split text into overlapping, boundary-aware chunks.

    Each window is at most max_chars long. When the window does not reach the end
    of the text it is shortened to the last paragraph, sentence or word boundary in
    its back half, so chunks rarely cut words. Consecutive chunks share up to
    `overlap` characters. Whitespace-only segments are dropped and the surviving
    chunks are numbered contiguously from 0.

    Args:
        text: Text to chunk
        max_chars: Maximum characters per chunk
        overlap: Number of characters to overlap between chunks
        metadata: Optional metadata to include in each chunk

    Returns:
        List of chunk dicts with:
            - chunk_index: int (0-based, contiguous)
            - content: str (stripped)
            - start_char: int
            - end_char: int
            - metadata: dict

    Raises:
        ValueError: If max_chars <= overlap
    """
    if max_chars <= overlap:
        raise ValueError(f"max_chars ({max_chars}) must be greater than overlap ({overlap})")

    if not text:
        return []

    chunks: list[dict[str, Any]] = []
    start = 0
    text_length = len(text)

    while start < text_length:
        end = min(start + max_chars, text_length)
        if end < text_length:
            end = _find_break(text, start, end, max_chars)

        window = text[start:end]
        content = window.strip()
        if content:
            leading = len(window) - len(window.lstrip())
            chunk_start = start + leading
            chunks.append(
                {
                    "chunk_index": len(chunks),
                    "content": content,
                    "start_char": chunk_start,
                    "end_char": chunk_start + len(content),
                    "metadata": metadata or {},
                }
            )

        if end >= text_length:
            break

        # Step back by the overlap, but always move forward
        next_start = end - overlap
        start = next_start if next_start > start else end

    return chunks
