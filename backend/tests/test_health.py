from fastapi.testclient import TestClient

import app.routers.health as health_router
from app.main import create_app


def test_health_ok():
    app = create_app()
    client = TestClient(app)

    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("status") == "ok"


def test_health_live():
    app = create_app()
    client = TestClient(app)

    r = client.get("/health/live")
    assert r.status_code == 200
    assert r.json().get("status") == "live"


def test_health_ready(client):
    r = client.get("/health/ready")
    assert r.status_code == 200
    assert r.json() == {"status": "ready", "storage": "sql"}


def test_health_ready_without_redis(client, monkeypatch):
    class _Down:
        def ping(self):
            raise ConnectionError("redis down")

    monkeypatch.setattr(health_router, "get_redis", lambda: _Down())

    r = client.get("/health/ready")
    assert r.status_code == 503
    assert r.json()["error_message"] == "redis not ready"


def test_health_ai_unconfigured(client):
    body = client.get("/health/ai").json()
    assert body["ok"] is False
    assert body["reason"] == "missing_key"


def test_security_headers_and_request_id(client):
    r = client.get("/health", headers={"X-Request-ID": "rid-123"})
    assert r.headers["X-Request-ID"] == "rid-123"
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"


def test_foreign_origin_writes_are_refused(client):
    r = client.post("/auth/token", data={}, headers={"Origin": "https://evil.example"})
    assert r.status_code == 403
    assert r.json()["error_message"] == "invalid origin"
