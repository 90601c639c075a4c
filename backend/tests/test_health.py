from __future__ import annotations


def test_health_endpoint(client):
    """GET /api/health should return 200 with status=healthy."""
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "kitadoc-backend"
    assert data["version"] == "0.1.0"
    assert data["checks"]["database"] == "ok"


def test_health_response_fields(client):
    resp = client.get("/api/health")
    data = resp.json()
    assert set(data) == {"status", "service", "version", "checks"}
    assert "database" in data["checks"]
