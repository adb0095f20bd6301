"""Build the document context and system prompt sent with a question.

Chunks are grouped by document, groups ordered by their best-ranked chunk, and each
group rendered between explicit boundary markers. When the context exceeds
max_chars the lowest-ranked groups are cut first.
"""

from dataclasses import dataclass, field

from cardy.core.logging import get_logger
from cardy.core.retrieval import RetrievedChunk
from cardy.db.document_access import record_access

logger = get_logger(__name__)

SYSTEM_PROMPT = """You are Cardy Mind, an assistant for software teams building case management systems.
You answer questions using the project documents provided in the context below.

Guidelines:
- Base your answer on the provided documents. Cite the document name for every fact you use, e.g. (Source: <document name>).
- Reference specific sections of the documents when possible.
- If the documents do not contain the information, say so explicitly. Do not fabricate requirements, entities or rules.
- When documents disagree, point out the conflict and name both sources.
- Be concise and use markdown formatting for lists, tables and code."""

FALLBACK_NOTE = (
    "Note: no passage matched the question closely, so whole documents from the "
    "selected scope are provided below. Relevance is not guaranteed."
)


@dataclass
class SourceDocument:
    document_id: str
    document_name: str
    document_type: str | None = None


@dataclass
class AssembledContext:
    """Rendered context plus the documents that actually made it in."""

    text: str
    sources: list[SourceDocument] = field(default_factory=list)
    truncated: bool = False


def _render_group(name: str, chunks: list[RetrievedChunk]) -> str:
    body = "\n\n".join(c.content for c in chunks)
    return f"=== Document: {name} ===\n{body}\n=== End of Document: {name} ==="


def assemble_context(chunks: list[RetrievedChunk], max_chars: int) -> AssembledContext:
    """
    Render retrieved chunks as document-bounded context.

    Args:
        chunks: Retrieved chunks in rank order (best first)
        max_chars: Maximum characters of rendered context

    Returns:
        AssembledContext; empty text when there are no chunks
    """
    if not chunks:
        return AssembledContext(text="")

    # Dict preserves first-seen order, which is best rank per document
    groups: dict[str, list[RetrievedChunk]] = {}
    for chunk in chunks:
        groups.setdefault(chunk.document_id, []).append(chunk)

    sections: list[str] = []
    sources: list[SourceDocument] = []
    chars_used = 0
    truncated = False

    for document_id, group in groups.items():
        group.sort(key=lambda c: c.chunk_index)
        name = group[0].document_name
        rendered = _render_group(name, group)

        separator = 2 if sections else 0
        remaining = max_chars - chars_used - separator
        if len(rendered) > remaining:
            truncated = True
            # Only the top group is shortened in place; lower groups are dropped
            if sections:
                break
            footer = f"\n=== End of Document: {name} ==="
            keep = remaining - len(footer)
            if keep <= 0:
                break
            rendered = rendered[:keep].rstrip() + footer

        sections.append(rendered)
        sources.append(SourceDocument(document_id, name, group[0].document_type))
        chars_used += len(rendered) + separator

    if truncated:
        logger.debug(
            f"Context truncated to {len(sources)} of {len(groups)} documents",
            extra={"max_chars": max_chars},
        )

    return AssembledContext(text="\n\n".join(sections), sources=sources, truncated=truncated)


def build_system_prompt(context: AssembledContext, is_fallback: bool = False) -> str:
    """System prompt with the assembled document context appended."""
    if not context.text:
        return (
            f"{SYSTEM_PROMPT}\n\nNo project documents are available for this question. "
            "Say that the documents do not cover it."
        )

    parts = [SYSTEM_PROMPT, ""]
    if is_fallback:
        parts.append(FALLBACK_NOTE)
        parts.append("")
    parts.append("PROJECT DOCUMENTS:")
    parts.append(context.text)
    return "\n".join(parts)


def record_document_access(sources: list[SourceDocument], query: str) -> None:
    """Log which documents contributed to an answer."""
    record_access([s.document_id for s in sources], query)
