"""API tests for project endpoints, including the delete cascade."""

from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from cardy.main import app

client = TestClient(app)


class TestProjectEndpoints:
    def test_create_project(self):
        with patch(
            "cardy.api.projects.create_project",
            return_value={"id": "p1", "name": "County Intake", "type": "Child Welfare"},
        ) as mock_create:
            response = client.post(
                "/v1/projects", json={"name": "County Intake", "type": "Child Welfare"}
            )

        assert response.status_code == 201
        assert response.json()["id"] == "p1"
        assert mock_create.call_args[1]["project_type"] == "Child Welfare"

    def test_create_project_rejects_unknown_type(self):
        response = client.post("/v1/projects", json={"name": "X", "type": "Adult Services"})
        assert response.status_code == 422

    def test_get_missing_project(self):
        with patch("cardy.api.projects.get_project", return_value=None):
            assert client.get("/v1/projects/p404").status_code == 404


class TestProjectDelete:
    def test_delete_removes_documents_before_project(self):
        calls = MagicMock()
        calls.delete_project_documents.return_value = 3
        calls.delete_project.return_value = True

        with patch("cardy.api.projects.get_project", return_value={"id": "p1"}), patch(
            "cardy.api.projects.delete_project_documents", new=calls.delete_project_documents
        ), patch("cardy.api.projects.delete_project", new=calls.delete_project):
            response = client.delete("/v1/projects/p1")

        assert response.status_code == 200
        assert response.json() == {"success": True, "deleted_documents": 3}
        assert [c[0] for c in calls.mock_calls] == ["delete_project_documents", "delete_project"]
        calls.delete_project_documents.assert_called_once_with("p1")

    def test_delete_missing_project(self):
        with patch("cardy.api.projects.get_project", return_value=None), patch(
            "cardy.api.projects.delete_project_documents"
        ) as mock_cascade:
            response = client.delete("/v1/projects/p404")

        assert response.status_code == 404
        mock_cascade.assert_not_called()

    def test_cascade_failure_keeps_project(self):
        with patch("cardy.api.projects.get_project", return_value={"id": "p1"}), patch(
            "cardy.api.projects.delete_project_documents", side_effect=RuntimeError("storage down")
        ), patch("cardy.api.projects.delete_project") as mock_delete:
            response = client.delete("/v1/projects/p1")

        assert response.status_code == 500
        mock_delete.assert_not_called()
