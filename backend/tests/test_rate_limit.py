from app.core.config import settings


def test_login_is_rate_limited(client, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_enabled", True)
    form = {"username": "nobody", "password": "whatever1"}

    statuses = [client.post("/auth/token", data=form).status_code for _ in range(21)]

    assert statuses[:20] == [401] * 20
    assert statuses[20] == 429


def test_rate_limit_reports_retry_after(client, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_enabled", True)
    form = {"username": "nobody", "password": "whatever1"}

    for _ in range(20):
        client.post("/auth/token", data=form)
    r = client.post("/auth/token", data=form)

    assert r.status_code == 429
    assert r.json()["error_code"] == "rate_limited"
    assert int(r.headers["Retry-After"]) > 0


def test_redis_outage_fails_open(client, monkeypatch):
    import app.core.rate_limit as rate_limit_module

    class _Down:
        def incr(self, key):
            raise ConnectionError("redis down")

    monkeypatch.setattr(settings, "rate_limit_enabled", True)
    monkeypatch.setattr(rate_limit_module, "get_redis", lambda: _Down())

    r = client.post("/auth/token", data={"username": "nobody", "password": "whatever1"})
    assert r.status_code == 401
