"""
Health checks and app-wide middleware behaviour.
"""

from unittest.mock import MagicMock

import redis

from app.middleware.timing import reset_metrics, summarize_recent


def test_live(client):
    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok"}


def test_ready_without_redis(client):
    res = client.get("/api/v1/health/ready")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "ok"
    assert body["checks"]["redis"]["status"] == "skipped"
    assert body["checks"]["app"]["testing"] is True


def test_redis_failure_does_not_fail_readiness(app, client, monkeypatch):
    broken = MagicMock()
    broken.ping.side_effect = redis.ConnectionError("refused")
    monkeypatch.setitem(app.config, "REDIS_URL", "redis://localhost:6399/0")
    monkeypatch.setattr(redis, "from_url", lambda url, **kw: broken)

    res = client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.get_json()["checks"]["redis"]["status"] == "error"


def test_request_metrics_summary(client):
    reset_metrics()
    client.get("/api/v1/health/live")
    client.get("/api/v1/health/live")
    summary = summarize_recent()
    assert summary["requests"] == 2
    assert summary["errors"] == 0


def test_response_headers(client):
    res = client.get("/api/v1/health/live", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Request-ID"] == "abc123"
    assert "X-Request-Duration-Ms" in res.headers
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["Content-Security-Policy"].startswith("default-src 'none'")
    assert "Strict-Transport-Security" not in res.headers
