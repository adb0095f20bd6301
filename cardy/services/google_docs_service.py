"""Google Docs export of story artifacts.

Uses the Docs REST API directly over httpx with an OAuth access token.
"""

from __future__ import annotations

import httpx

from cardy.core.config import get_settings
from cardy.core.errors import UpstreamServiceError
from cardy.core.generation_prompts import ARTIFACT_HEADINGS
from cardy.core.logging import get_logger
from cardy.core.schemas_artifacts import ArtifactType
from cardy.db.story_artifacts import save_gdoc_id

logger = get_logger(__name__)

DOCS_API = "https://docs.googleapis.com/v1/documents"


def document_url(document_id: str) -> str:
    return f"https://docs.google.com/document/d/{document_id}/edit"


def format_export_content(content: str, artifact_type: ArtifactType) -> str:
    """Prefix content with the artifact's heading."""
    return f"# {ARTIFACT_HEADINGS[artifact_type]}\n\n{content}"


class GoogleDocsService:
    """Creates Google Docs from artifact content."""

    def __init__(self, access_token: str, timeout: float | None = None):
        self.timeout = timeout or get_settings().HTTP_TIMEOUT_SECONDS
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def _post(self, client: httpx.AsyncClient, url: str, payload: dict) -> dict:
        try:
            resp = await client.post(url, headers=self._headers, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Google Docs request failed: {e}")
            raise UpstreamServiceError("google", str(e)) from e

        if resp.status_code >= 400:
            try:
                message = resp.json().get("error", {}).get("message") or resp.text
            except ValueError:
                message = resp.text
            logger.error(
                f"Google Docs returned {resp.status_code}: {message}",
                extra={"status_code": resp.status_code},
            )
            raise UpstreamServiceError("google", message, resp.status_code)

        return resp.json()

    async def create_document(self, title: str, content: str) -> str:
        """Create a document with the given text. Returns the document id."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            created = await self._post(client, DOCS_API, {"title": title})
            document_id = created["documentId"]

            await self._post(
                client,
                f"{DOCS_API}/{document_id}:batchUpdate",
                {"requests": [{"insertText": {"location": {"index": 1}, "text": content}}]},
            )

        logger.info(f"Created Google Doc {document_id}: {title}")
        return document_id


async def export_to_google_doc(
    story_id: str,
    artifact_type: ArtifactType,
    content: str,
    access_token: str,
    title: str | None = None,
) -> str:
    """
    Export one artifact to a new Google Doc and record its id on the artifact row.

    Returns:
        The Google document id
    """
    service = GoogleDocsService(access_token)
    doc_title = title or f"{story_id} - {ARTIFACT_HEADINGS[artifact_type]}"
    document_id = await service.create_document(
        doc_title, format_export_content(content, artifact_type)
    )
    save_gdoc_id(story_id, artifact_type, document_id)
    return document_id
