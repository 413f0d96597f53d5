"""Health endpoint and cross-cutting HTTP behaviour."""

from __future__ import annotations

import fakeredis
import pytest

from sessionguard.core import extensions

pytestmark = pytest.mark.integration


def test_health_reports_db_and_store(client):
    resp = client.get("/api/v1/health")

    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "db": "ok", "store": "sqlalchemy"}


def test_health_includes_redis_when_configured(client, monkeypatch, fake_redis):
    monkeypatch.setattr(extensions, "redis_client", fake_redis)

    assert client.get("/api/v1/health").get_json()["redis"] == "ok"


def test_health_reports_unreachable_redis(client, monkeypatch):
    server = fakeredis.FakeServer()
    server.connected = False
    monkeypatch.setattr(extensions, "redis_client", fakeredis.FakeRedis(server=server))

    body = client.get("/api/v1/health").get_json()
    assert body["redis"] == "fail"
    assert body["db"] == "ok"


def test_request_id_is_echoed_from_the_caller(client):
    resp = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"

    fresh = client.get("/api/v1/health")
    assert fresh.headers["X-Request-ID"] not in ("", "req-123")


def test_unknown_route_is_problem_json(client):
    resp = client.get("/api/v1/nope")

    assert resp.status_code == 404
    assert resp.mimetype == "application/problem+json"
    body = resp.get_json()
    assert body["code"] == "not_found"
    assert body["instance"] == "/api/v1/nope"
