"""API tests for story artifacts, exports and the Jira proxy."""

import json
from io import BytesIO
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from docx import Document
from fastapi.testclient import TestClient

from cardy.core import generation
from cardy.core.errors import UpstreamServiceError
from cardy.core.llm import CompletionResult
from cardy.core.schemas_artifacts import ArtifactType, JiraTicket
from cardy.main import app
from cardy.services.google_docs_service import GoogleDocsService, export_to_google_doc
from tests.fakes.fake_db import fake_db, patched_db

client = TestClient(app)

TICKET = {"key": "CW-9", "summary": "Close a case", "description": "Workers close cases."}


@pytest.fixture(autouse=True)
def reset_state():
    fake_db.reset()
    generation._locks.clear()
    generation._lock_users.clear()
    generation._generating.clear()
    with patched_db():
        yield


def _completion(content: str) -> CompletionResult:
    return CompletionResult(content=content, model="gpt-4o", usage={"total_tokens": 10})


# =============================================================================
# Generate / regenerate
# =============================================================================


class TestGenerateEndpoints:
    def test_generate_then_idempotent(self):
        mock_complete = AsyncMock(return_value=_completion("# Design"))
        with patch("cardy.core.generation.complete_chat_async", new=mock_complete):
            first = client.post("/v1/artifacts/CW-9/lld/generate", json={"ticket": TICKET})
            second = client.post("/v1/artifacts/CW-9/lld/generate", json={"ticket": TICKET})

        assert first.status_code == 200
        assert first.json()["generated"] is True
        assert second.json()["generated"] is False
        assert second.json()["content"] == "# Design"
        assert mock_complete.await_count == 1

    def test_ticket_key_must_match_path(self):
        response = client.post("/v1/artifacts/CW-1/lld/generate", json={"ticket": TICKET})
        assert response.status_code == 400

    def test_unknown_artifact_type(self):
        response = client.post("/v1/artifacts/CW-9/poem/generate", json={"ticket": TICKET})
        assert response.status_code == 422

    def test_regenerate_absent_is_conflict(self):
        response = client.post("/v1/artifacts/CW-9/code/regenerate", json={"ticket": TICKET})
        assert response.status_code == 409

    def test_regenerate_replaces(self):
        fake_db.story_artifacts["CW-9"] = {"story_id": "CW-9", "code_content": "old"}
        with patch(
            "cardy.core.generation.complete_chat_async",
            new=AsyncMock(return_value=_completion("new")),
        ):
            response = client.post("/v1/artifacts/CW-9/code/regenerate", json={"ticket": TICKET})

        assert response.status_code == 200
        assert response.json()["content"] == "new"

    def test_completion_failure_is_bad_gateway(self):
        with patch(
            "cardy.core.generation.complete_chat_async",
            new=AsyncMock(side_effect=UpstreamServiceError("openai", "timeout")),
        ):
            response = client.post("/v1/artifacts/CW-9/tests/generate", json={"ticket": TICKET})

        assert response.status_code == 502
        assert "CW-9" not in fake_db.story_artifacts

    def test_invalid_scope_is_bad_request(self):
        fake_db.add_project("p1")
        response = client.post(
            "/v1/artifacts/CW-9/lld/generate",
            json={"ticket": TICKET, "context": {"project_id": "p1", "document_ids": []}},
        )
        assert response.status_code == 400

    def test_context_and_session_together_is_bad_request(self):
        fake_db.add_project("p1")
        fake_db.contexts["s1"] = {"session_id": "s1", "project_id": "p1", "document_ids": []}

        with patch("cardy.core.generation.complete_chat_async", new=AsyncMock()) as mock_complete:
            response = client.post(
                "/v1/artifacts/CW-9/lld/generate",
                json={"ticket": TICKET, "context": {"project_id": "p1"}, "session_id": "s1"},
            )

        assert response.status_code == 400
        mock_complete.assert_not_awaited()
        assert "CW-9" not in fake_db.story_artifacts


# =============================================================================
# Read and export
# =============================================================================


class TestReadAndExport:
    def test_get_artifacts(self):
        fake_db.story_artifacts["CW-9"] = {
            "story_id": "CW-9", "lld_content": "design", "lld_gdoc_id": "g1",
        }
        response = client.get("/v1/artifacts/CW-9")

        assert response.status_code == 200
        data = response.json()
        assert data["artifacts"]["lld"] == "design"
        assert data["artifacts"]["code"] is None
        assert data["gdoc_ids"]["lld"] == "g1"

    def test_get_artifacts_missing(self):
        assert client.get("/v1/artifacts/CW-404").status_code == 404

    def test_export_docx(self):
        fake_db.story_artifacts["CW-9"] = {"story_id": "CW-9", "lld_content": "# Design\n\nBody"}

        response = client.get("/v1/artifacts/CW-9/lld/export?format=docx")

        assert response.status_code == 200
        assert 'filename="CW-9_lld.docx"' in response.headers["content-disposition"]
        doc = Document(BytesIO(response.content))
        assert doc.paragraphs[0].text == "CW-9 - Low-Level Design Document"

    def test_export_missing_artifact(self):
        assert client.get("/v1/artifacts/CW-9/code/export").status_code == 404

    def test_export_rejects_unknown_format(self):
        fake_db.story_artifacts["CW-9"] = {"story_id": "CW-9", "lld_content": "x"}
        assert client.get("/v1/artifacts/CW-9/lld/export?format=rtf").status_code == 422

    def test_gdoc_requires_token(self):
        fake_db.story_artifacts["CW-9"] = {"story_id": "CW-9", "lld_content": "x"}
        response = client.post("/v1/artifacts/CW-9/lld/gdoc", json={})
        assert response.status_code == 400

    def test_gdoc_export(self):
        fake_db.story_artifacts["CW-9"] = {"story_id": "CW-9", "lld_content": "x"}
        with patch(
            "cardy.api.artifacts.export_to_google_doc", new=AsyncMock(return_value="gdoc-1")
        ) as mock_export:
            response = client.post("/v1/artifacts/CW-9/lld/gdoc", json={"access_token": "tok"})

        assert response.status_code == 200
        assert response.json()["url"] == "https://docs.google.com/document/d/gdoc-1/edit"
        assert mock_export.call_args[0][3] == "tok"


# =============================================================================
# Google Docs service
# =============================================================================


class TestGoogleDocsService:
    @pytest.mark.asyncio
    async def test_export_creates_doc_inserts_text_and_records_id(self):
        real_client = httpx.AsyncClient
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path.endswith(":batchUpdate"):
                return httpx.Response(200, json={"replies": []})
            return httpx.Response(200, json={"documentId": "doc-123"})

        def factory(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        with patch(
            "cardy.services.google_docs_service.httpx.AsyncClient", side_effect=factory
        ), patch("cardy.services.google_docs_service.save_gdoc_id") as mock_save:
            document_id = await export_to_google_doc("CW-9", ArtifactType.TESTS, "body", "tok")

        assert document_id == "doc-123"
        assert json.loads(requests[0].content) == {"title": "CW-9 - Test Code"}
        inserted = json.loads(requests[1].content)["requests"][0]["insertText"]["text"]
        assert inserted == "# Test Code\n\nbody"
        assert requests[0].headers["authorization"] == "Bearer tok"
        mock_save.assert_called_once_with("CW-9", ArtifactType.TESTS, "doc-123")

    @pytest.mark.asyncio
    async def test_google_error_raises_upstream_error(self):
        real_client = httpx.AsyncClient

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})

        def factory(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        with patch("cardy.services.google_docs_service.httpx.AsyncClient", side_effect=factory):
            with pytest.raises(UpstreamServiceError) as exc_info:
                await GoogleDocsService("bad").create_document("t", "c")

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Invalid Credentials"


# =============================================================================
# Jira proxy
# =============================================================================

JIRA_HEADERS = {
    "X-Jira-Domain": "acme.atlassian.net",
    "X-Jira-Email": "dev@acme.test",
    "X-Jira-Token": "token",
}


class TestJiraEndpoints:
    def test_headers_required(self):
        assert client.get("/v1/jira/projects").status_code == 422

    def test_get_ticket(self):
        with patch(
            "cardy.api.jira.JiraService.get_ticket",
            new=AsyncMock(return_value=JiraTicket(key="CW-9", summary="Close a case")),
        ):
            response = client.get("/v1/jira/tickets/CW-9", headers=JIRA_HEADERS)

        assert response.status_code == 200
        assert response.json()["summary"] == "Close a case"

    def test_jira_auth_failure_passed_through(self):
        with patch(
            "cardy.api.jira.JiraService.list_projects",
            new=AsyncMock(side_effect=UpstreamServiceError("jira", "Unauthorized", 401)),
        ):
            response = client.get("/v1/jira/projects", headers=JIRA_HEADERS)
        assert response.status_code == 401

    def test_jira_server_error_is_bad_gateway(self):
        with patch(
            "cardy.api.jira.JiraService.list_tickets",
            new=AsyncMock(side_effect=UpstreamServiceError("jira", "oops", 500)),
        ):
            response = client.get("/v1/jira/sprints/42/tickets", headers=JIRA_HEADERS)
        assert response.status_code == 502
