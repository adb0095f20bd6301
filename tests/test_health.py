"""Test health check endpoint."""

from fastapi.testclient import TestClient

from cardy.main import app

client = TestClient(app)


def test_health_check():
    """Test that /health returns 200 with status ok."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"


def test_v1_routes_mounted():
    paths = set(app.openapi()["paths"])
    assert "/v1/search" in paths
    assert "/v1/chat" in paths
    assert "/v1/artifacts/{ticket_key}/{artifact_type}/generate" in paths


def test_cors_preflight_allowed():
    response = client.options(
        "/v1/search",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
