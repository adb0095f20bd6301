"""Error taxonomy shared by the pipeline and the API layer.

- UpstreamServiceError: an external provider (OpenAI, Jira, Google) returned non-success.
- ScopeValidationError: a request scope is malformed; raised before any external call.
- NotFoundError: a referenced project, document or artifact does not exist.
- ArtifactStateError: an artifact state transition is not allowed.
- DocumentStateError: a document is already being processed or not claimable.

Partial document processing is a status, and empty retrieval is a fallback path;
neither is modelled as an exception.
"""


class UpstreamServiceError(Exception):
    """Raised when an external service call fails."""

    def __init__(self, service: str, message: str, status_code: int | None = None):
        super().__init__(f"{service} error: {message}")
        self.service = service
        self.message = message
        self.status_code = status_code


class ScopeValidationError(ValueError):
    """Raised when a project/document scope is malformed."""


class NotFoundError(LookupError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ArtifactStateError(Exception):
    """Raised when an artifact state transition is invalid."""


class DocumentStateError(Exception):
    """Raised when a document cannot be claimed for processing."""
