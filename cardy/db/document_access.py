"""Log of which documents contributed to answers."""

from cardy.core.logging import get_logger
from cardy.db.supabase_client import get_supabase

logger = get_logger(__name__)


def record_access(document_ids: list[str], query_text: str, access_type: str = "query") -> None:
    """Insert one access row per document. Failures are logged, not raised."""
    if not document_ids:
        return

    supabase = get_supabase()

    rows = [
        {"document_id": doc_id, "access_type": access_type, "query_text": query_text}
        for doc_id in document_ids
    ]

    try:
        supabase.table("document_access").insert(rows).execute()
    except Exception as e:
        # Access logging is non-critical
        logger.warning(f"Failed to record document access: {e}")
