"""Resolution and validation of the project/document scope of a request."""

from cardy.core.errors import NotFoundError, ScopeValidationError
from cardy.core.logging import get_logger
from cardy.core.schemas_context import ProjectContext
from cardy.db.documents import get_documents
from cardy.db.project_context import get_context
from cardy.db.projects import get_project

logger = get_logger(__name__)


def resolve_context(context: ProjectContext | None, session_id: str | None) -> ProjectContext:
    """
    Return the inline context, or the one saved under session_id.

    Raises:
        ScopeValidationError: If neither or both are given
        NotFoundError: If no context is saved for the session
    """
    if context is not None and session_id:
        raise ScopeValidationError("Provide either 'context' or 'session_id', not both")

    if context is not None:
        return context

    if not session_id:
        raise ScopeValidationError("Provide either 'context' or 'session_id'")

    row = get_context(session_id)
    if not row:
        raise NotFoundError("Project context", session_id)

    return ProjectContext(
        project_id=str(row["project_id"]),
        document_ids=row.get("document_ids") or None,
    )


def validate_scope(context: ProjectContext) -> ProjectContext:
    """
    Check that a scope is well formed before any external call.

    The project must exist. An explicit document list must be non-empty and every
    listed document must exist and belong to the project.

    Returns:
        The validated context, with duplicate document ids removed

    Raises:
        ScopeValidationError: If the scope is malformed
        NotFoundError: If the project does not exist
    """
    if context.document_ids is not None and len(context.document_ids) == 0:
        raise ScopeValidationError("document_ids must not be empty when provided")

    if not get_project(context.project_id):
        raise NotFoundError("Project", context.project_id)

    if context.document_ids is None:
        return context

    document_ids = list(dict.fromkeys(context.document_ids))
    found = {str(doc["id"]): doc for doc in get_documents(document_ids)}

    missing = [d for d in document_ids if d not in found]
    if missing:
        raise ScopeValidationError(f"Unknown document ids: {', '.join(missing)}")

    foreign = [d for d in document_ids if str(found[d]["project_id"]) != context.project_id]
    if foreign:
        logger.warning(
            "Rejected scope with documents from another project",
            extra={"project_id": context.project_id, "document_ids": foreign},
        )
        raise ScopeValidationError(
            f"Documents do not belong to project {context.project_id}: {', '.join(foreign)}"
        )

    return ProjectContext(project_id=context.project_id, document_ids=document_ids)
