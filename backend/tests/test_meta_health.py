from pathlib import Path
import sys

from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

from career_ai.core.config import settings
from career_ai.main import app


def test_meta_health_endpoint_shape(monkeypatch):
    monkeypatch.setattr(settings, "anthropic_api_key", "k")
    monkeypatch.setattr(settings, "openai_api_key", None)
    client = TestClient(app)
    response = client.get("/api/meta/health")
    assert response.status_code == 200
    payload = response.json()
    assert "ok" in payload
    assert "database" in payload
    assert payload["ai"]["anthropic"] == {"enabled": True, "model": settings.anthropic_model}
    assert payload["ai"]["openai"]["enabled"] is False


def test_request_id_is_echoed():
    client = TestClient(app)
    response = client.get("/api/meta/health", headers={"X-Request-Id": "abc123"})
    assert response.headers["X-Request-Id"] == "abc123"
    assert client.get("/api/meta/health").headers["X-Request-Id"]


def test_unknown_route_uses_error_envelope():
    client = TestClient(app)
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert "error" in response.json()
