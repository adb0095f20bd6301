"""Story artifact generation (design, code, tests, test cases) per Jira ticket.

Each (ticket, artifact type) pair moves through:

    absent -> generating -> present
    present -> generating -> present     (explicit regenerate)

A failed run returns the pair to the state it started from without persisting
anything. Runs for the same pair are serialized by a per-key asyncio.Lock, and the
stored state is re-read once the lock is held so a concurrent first generation is
not repeated.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cardy.core.config import get_settings
from cardy.core.context_assembly import assemble_context, record_document_access
from cardy.core.data_model import render_data_model
from cardy.core.document_content import StructuredContent, content_from_record
from cardy.core.errors import ArtifactStateError
from cardy.core.generation_prompts import (
    PREREQUISITES,
    SYSTEM_PROMPT,
    build_generation_prompt,
)
from cardy.core.llm import complete_chat_async
from cardy.core.logging import get_logger
from cardy.core.retrieval import search
from cardy.core.schemas_artifacts import ArtifactType, JiraTicket
from cardy.core.schemas_context import ProjectContext
from cardy.core.scope import validate_scope
from cardy.db.chunks import list_scope_documents
from cardy.db.projects import get_project
from cardy.db.story_artifacts import get_story_artifacts, save_artifact_content

logger = get_logger(__name__)


class ArtifactState(str, Enum):
    ABSENT = "absent"
    GENERATING = "generating"
    PRESENT = "present"


ALLOWED_TRANSITIONS = {
    (ArtifactState.ABSENT, ArtifactState.GENERATING),
    (ArtifactState.PRESENT, ArtifactState.GENERATING),
    (ArtifactState.GENERATING, ArtifactState.PRESENT),
    # Rollback of a failed first generation
    (ArtifactState.GENERATING, ArtifactState.ABSENT),
}

ArtifactKey = tuple[str, ArtifactType]

_locks: dict[ArtifactKey, asyncio.Lock] = {}
_lock_users: dict[ArtifactKey, int] = {}
_generating: set[ArtifactKey] = set()


@dataclass
class ArtifactResult:
    story_id: str
    artifact_type: ArtifactType
    content: str
    generated: bool
    usage: dict[str, int] = field(default_factory=dict)


@asynccontextmanager
async def _key_lock(key: ArtifactKey):
    """Hold the lock for one artifact key; the entry is dropped once nobody waits on it."""
    lock = _locks.get(key)
    if lock is None:
        lock = _locks[key] = asyncio.Lock()
    _lock_users[key] = _lock_users.get(key, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _lock_users[key] -= 1
        if _lock_users[key] == 0:
            del _lock_users[key]
            del _locks[key]


def check_transition(current: ArtifactState, target: ArtifactState) -> None:
    """Raise ArtifactStateError unless current -> target is allowed."""
    if (current, target) not in ALLOWED_TRANSITIONS:
        raise ArtifactStateError(
            f"Invalid artifact transition: {current.value} -> {target.value}"
        )


def get_artifact_state(story_id: str, artifact_type: ArtifactType) -> ArtifactState:
    """Current state of one artifact."""
    if (story_id, artifact_type) in _generating:
        return ArtifactState.GENERATING
    row = get_story_artifacts(story_id)
    if row and row.get(artifact_type.content_column):
        return ArtifactState.PRESENT
    return ArtifactState.ABSENT


def get_artifacts(story_id: str) -> dict[str, Any] | None:
    """Stored artifact row for a ticket, or None."""
    return get_story_artifacts(story_id)


def _retrieval_query(ticket: JiraTicket) -> str:
    parts = [ticket.summary, ticket.description or "", ticket.acceptance_criteria or ""]
    return "\n".join(p for p in parts if p).strip() or ticket.key


def _render_scope_data_models(context: ProjectContext) -> str | None:
    rendered = []
    for doc in list_scope_documents(context.project_id, context.document_ids):
        content = content_from_record(doc)
        if isinstance(content, StructuredContent):
            rendered.append(render_data_model(content.data_model))
    return "\n\n".join(rendered) or None


async def _run_generation(
    ticket: JiraTicket,
    artifact_type: ArtifactType,
    context: ProjectContext | None,
    additional_context: str | None,
    stored_row: dict[str, Any] | None,
) -> ArtifactResult:
    settings = get_settings()

    project = None
    data_model_text = None
    documents_context = None
    sources = []
    query = _retrieval_query(ticket)

    if context is not None:
        context = validate_scope(context)
        project = get_project(context.project_id)
        data_model_text = _render_scope_data_models(context)
        retrieval = await search(query, context)
        assembled = assemble_context(retrieval.chunks, settings.CONTEXT_MAX_CHARS)
        documents_context = assembled.text or None
        sources = assembled.sources

    prior_artifacts = {}
    for prior_type in PREREQUISITES[artifact_type]:
        content = (stored_row or {}).get(prior_type.content_column)
        if content:
            prior_artifacts[prior_type] = content

    prompt = build_generation_prompt(
        ticket,
        artifact_type,
        project=project,
        data_model_text=data_model_text,
        documents_context=documents_context,
        prior_artifacts=prior_artifacts,
        additional_context=additional_context,
    )

    logger.info(
        f"Generating {artifact_type.value} for {ticket.key}",
        extra={
            "story_id": ticket.key,
            "artifact_type": artifact_type.value,
            "prior_artifacts": [t.value for t in prior_artifacts],
            "prompt_chars": len(prompt),
        },
    )

    result = await complete_chat_async(
        [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        model=settings.GENERATION_MODEL,
        temperature=settings.GENERATION_TEMPERATURE,
        max_tokens=settings.GENERATION_MAX_TOKENS,
    )

    save_artifact_content(
        ticket.key,
        artifact_type,
        result.content,
        project_id=ticket.project_id or (context.project_id if context else None),
        sprint_id=ticket.sprint_id,
    )
    if sources:
        record_document_access(sources, query)

    return ArtifactResult(
        story_id=ticket.key,
        artifact_type=artifact_type,
        content=result.content,
        generated=True,
        usage=result.usage,
    )


async def _generate_locked(
    ticket: JiraTicket,
    artifact_type: ArtifactType,
    context: ProjectContext | None,
    additional_context: str | None,
    regenerate: bool,
) -> ArtifactResult:
    key: ArtifactKey = (ticket.key, artifact_type)

    async with _key_lock(key):
        stored_row = get_story_artifacts(ticket.key)
        existing = (stored_row or {}).get(artifact_type.content_column)
        current = ArtifactState.PRESENT if existing else ArtifactState.ABSENT

        if existing and not regenerate:
            logger.info(
                f"Returning existing {artifact_type.value} for {ticket.key}",
                extra={"story_id": ticket.key, "artifact_type": artifact_type.value},
            )
            return ArtifactResult(ticket.key, artifact_type, existing, generated=False)

        if regenerate and not existing:
            raise ArtifactStateError(
                f"No {artifact_type.value} exists for {ticket.key}; generate it first"
            )

        check_transition(current, ArtifactState.GENERATING)
        _generating.add(key)
        try:
            result = await _run_generation(
                ticket, artifact_type, context, additional_context, stored_row
            )
            check_transition(ArtifactState.GENERATING, ArtifactState.PRESENT)
            return result
        except Exception:
            logger.error(
                f"Generation of {artifact_type.value} for {ticket.key} failed; "
                f"state stays {current.value}",
                extra={"story_id": ticket.key, "artifact_type": artifact_type.value},
            )
            raise
        finally:
            _generating.discard(key)


async def generate_artifact(
    ticket: JiraTicket,
    artifact_type: ArtifactType,
    context: ProjectContext | None = None,
    additional_context: str | None = None,
) -> ArtifactResult:
    """
    Return the stored artifact, generating it first if it does not exist.

    Existing content is returned unchanged and no completion is requested.

    Args:
        ticket: Ticket fields
        artifact_type: Artifact to produce
        context: Optional project/document scope for retrieval
        additional_context: Extra requester instructions

    Returns:
        ArtifactResult; generated is False when stored content was returned

    Raises:
        ScopeValidationError, NotFoundError: If the context is invalid
        UpstreamServiceError: If the completion fails (nothing is persisted)
    """
    return await _generate_locked(ticket, artifact_type, context, additional_context, False)


async def regenerate_artifact(
    ticket: JiraTicket,
    artifact_type: ArtifactType,
    context: ProjectContext | None = None,
    additional_context: str | None = None,
) -> ArtifactResult:
    """
    Replace existing artifact content with a fresh completion.

    Raises:
        ArtifactStateError: If no content exists yet
        UpstreamServiceError: If the completion fails (stored content is kept)
    """
    return await _generate_locked(ticket, artifact_type, context, additional_context, True)
