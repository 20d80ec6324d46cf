from __future__ import annotations


def test_health_ok(app_client):
    _app, client = app_client
    res = client.get("/health")
    assert res.status_code == 200
    data = res.get_json()
    assert data["status"] == "ok"
    assert data["db"] == "ok"
    assert "time" in data
    assert "version" in data


def test_version(app_client):
    _app, client = app_client
    res = client.get("/version")
    assert res.status_code == 200
    data = res.get_json()
    assert data["env"] == "testing"
    assert "version" in data


def test_request_id_is_echoed(app_client):
    _app, client = app_client
    res = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Request-ID"] == "abc123"
    assert res.headers["X-Content-Type-Options"] == "nosniff"


def test_unknown_route_uses_error_envelope(app_client):
    _app, client = app_client
    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    body = res.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "HTTP_404"
    assert body["request_id"]


def test_health_reports_calendar_backlog(app_client):
    _app, client = app_client
    data = client.get("/health").get_json()
    assert data["calendarSync"] == {"pending": 0, "failed": 0}
    assert client.get("/version").get_json()["calendarSyncMode"] == "inline"


def test_api_responses_are_not_cached(app_client):
    _app, client = app_client
    res = client.get("/api/v1/drives")
    assert res.headers["Cache-Control"] == "no-store"


def test_login_is_rate_limited(make_client):
    _app, client = make_client(RATE_LIMIT_LOGIN="2 per minute")
    body = {"email": "nobody@example.com", "password": "password123"}
    assert client.post("/api/v1/auth/login", json=body).status_code == 401
    assert client.post("/api/v1/auth/login", json=body).status_code == 401

    res = client.post("/api/v1/auth/login", json=body)
    assert res.status_code == 429
    assert res.get_json()["error"]["code"] == "RATE_LIMITED"
    assert int(res.headers["Retry-After"]) >= 1
