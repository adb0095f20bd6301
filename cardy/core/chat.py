"""Cardy Mind: question answering over project documents."""

from dataclasses import dataclass, field

from cardy.core.config import get_settings
from cardy.core.context_assembly import (
    SourceDocument,
    assemble_context,
    build_system_prompt,
    record_document_access,
)
from cardy.core.data_model import render_data_model
from cardy.core.document_content import StructuredContent, content_from_record
from cardy.core.errors import NotFoundError, ScopeValidationError
from cardy.core.llm import complete_chat_async
from cardy.core.logging import get_logger
from cardy.core.retrieval import search
from cardy.core.schemas_chat import ChatMessage
from cardy.core.schemas_context import ProjectContext
from cardy.db.documents import get_document

logger = get_logger(__name__)

DATA_MODEL_PROMPT = """You are Cardy Mind, a data modeling expert.
Answer questions about the data model below: its entities, attributes and relationships.
- Refer to entities and attributes by their exact names.
- State cardinality when describing relationships (1 = one, * = many).
- If the data model does not contain the answer, say so. Do not invent entities or attributes."""


@dataclass
class ChatAnswer:
    reply: str
    sources: list[SourceDocument] = field(default_factory=list)
    is_fallback: bool = False
    usage: dict[str, int] = field(default_factory=dict)


def _latest_user_message(messages: list[ChatMessage]) -> str:
    for message in reversed(messages):
        if message.role == "user" and message.content.strip():
            return message.content
    raise ScopeValidationError("Conversation has no user message")


async def answer(messages: list[ChatMessage], context: ProjectContext) -> ChatAnswer:
    """
    Answer the latest user message using documents in the context scope.

    Args:
        messages: Conversation so far, oldest first
        context: Project and document scope

    Returns:
        ChatAnswer with the reply, contributing sources and token usage
    """
    settings = get_settings()
    query = _latest_user_message(messages)

    retrieval = await search(query, context)
    assembled = assemble_context(retrieval.chunks, settings.CONTEXT_MAX_CHARS)
    system_prompt = build_system_prompt(assembled, is_fallback=retrieval.is_fallback)

    history = messages[-settings.CHAT_HISTORY_LIMIT:]
    prompt_messages = [{"role": "system", "content": system_prompt}]
    prompt_messages.extend({"role": m.role, "content": m.content} for m in history)

    logger.info(
        "Answering chat question",
        extra={
            "project_id": context.project_id,
            "source_count": len(assembled.sources),
            "is_fallback": retrieval.is_fallback,
        },
    )

    result = await complete_chat_async(
        prompt_messages,
        model=settings.CHAT_MODEL,
        temperature=settings.CHAT_TEMPERATURE,
        max_tokens=settings.CHAT_MAX_TOKENS,
    )

    record_document_access(assembled.sources, query)

    return ChatAnswer(
        reply=result.content,
        sources=assembled.sources,
        is_fallback=retrieval.is_fallback,
        usage=result.usage,
    )


async def answer_data_model_question(
    document_id: str,
    message: str,
    context: ProjectContext | None = None,
) -> ChatAnswer:
    """
    Answer a question about one structured data-model document.

    When a context is given, related passages from the rest of the scope are added.

    Raises:
        NotFoundError: If the document does not exist
        ScopeValidationError: If the document is not a structured data model, or is
            outside the given context
    """
    settings = get_settings()

    document = get_document(document_id)
    if not document:
        raise NotFoundError("Document", document_id)

    content = content_from_record(document)
    if not isinstance(content, StructuredContent):
        raise ScopeValidationError(f"Document {document_id} is not a data model")

    if context is not None and str(document["project_id"]) != context.project_id:
        raise ScopeValidationError(
            f"Document {document_id} does not belong to project {context.project_id}"
        )

    name = document.get("title") or document.get("filename") or "Data model"
    sources = [SourceDocument(str(document["id"]), name, document.get("document_type"))]
    parts = [DATA_MODEL_PROMPT, "", f"=== Document: {name} ===",
             render_data_model(content.data_model), f"=== End of Document: {name} ==="]

    is_fallback = False
    if context is not None:
        retrieval = await search(message, context)
        related = [c for c in retrieval.chunks if c.document_id != str(document["id"])]
        assembled = assemble_context(related, settings.CONTEXT_MAX_CHARS)
        if assembled.text:
            parts.extend(["", "RELATED PROJECT DOCUMENTS:", assembled.text])
            sources.extend(assembled.sources)
            is_fallback = retrieval.is_fallback

    result = await complete_chat_async(
        [
            {"role": "system", "content": "\n".join(parts)},
            {"role": "user", "content": message},
        ],
        model=settings.CHAT_MODEL,
        temperature=settings.CHAT_TEMPERATURE,
        max_tokens=settings.CHAT_MAX_TOKENS,
    )

    record_document_access(sources, message)

    return ChatAnswer(reply=result.content, sources=sources, is_fallback=is_fallback, usage=result.usage)
