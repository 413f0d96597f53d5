# tests/unit/infra/test_redis_refresh_token_store.py
"""
Redis-specific behaviour of RedisRefreshTokenStore, using fakeredis.

The shared contract lives in ``test_refresh_token_store.py``; this module
covers what only the Redis layout has: key naming, TTLs, index cleanup and
connectivity failures.
"""

from __future__ import annotations

from datetime import timedelta

import fakeredis
import pytest

from sessionguard.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from sessionguard.services._shared.errors import StoreUnavailableError
from sessionguard.services._shared.ports import RotationResult
from tests.helpers.tokens import make_record, utcnow


@pytest.fixture
def store(fake_redis):
    """Provide a RedisRefreshTokenStore backed by FakeRedis."""
    return RedisRefreshTokenStore(r=fake_redis, retention=timedelta(hours=1))


def test_issue_writes_hash_and_user_index(store, fake_redis):
    rec = make_record("user-1", token="tok-1", device_name="Linux - Firefox")
    store.issue(rec)

    h = fake_redis.hgetall("rt:tok-1")
    assert h[b"user_id"] == b"user-1"
    assert h[b"device_name"] == b"Linux - Firefox"
    assert b"revoked_reason" not in h  # None fields are not stored
    assert fake_redis.smembers("rt:u:user-1") == {b"tok-1"}


def test_hash_ttl_covers_lifetime_plus_retention(store, fake_redis):
    rec = make_record(token="tok-ttl", expires_in=timedelta(minutes=30))
    store.issue(rec)

    ttl = fake_redis.ttl("rt:tok-ttl")
    # 30 minutes of life + 1 hour retention, minus test runtime
    assert 5300 < ttl <= 5400


def test_recently_expired_token_is_reported_expired_not_missing(store):
    now = utcnow()
    rec = make_record(now=now, expires_in=timedelta(minutes=-5))
    store.issue(rec)

    assert store.find_by_token(rec.token) is not None
    assert store.rotate(old_token=rec.token, replacement=make_record(), now=now) is (
        RotationResult.EXPIRED
    )


def test_find_active_drops_index_entries_whose_hash_is_gone(store, fake_redis):
    alive = make_record("u1", token="alive")
    gone = make_record("u1", token="gone")
    store.issue(alive)
    store.issue(gone)
    fake_redis.delete("rt:gone")  # simulate TTL eviction

    active = store.find_active_by_user("u1", now=utcnow())

    assert [r.token for r in active] == ["alive"]
    assert fake_redis.smembers("rt:u:u1") == {b"alive"}


def test_issue_clears_current_flag_and_stale_index_entries(store, fake_redis):
    first = make_record("u1", token="first", is_current=True)
    store.issue(first)
    fake_redis.sadd("rt:u:u1", "evicted")

    store.issue(make_record("u1", token="second", is_current=True))

    assert fake_redis.hget("rt:first", "is_current") == b"0"
    assert fake_redis.hget("rt:second", "is_current") == b"1"
    assert b"evicted" not in fake_redis.smembers("rt:u:u1")


def test_rotate_keeps_old_hash_for_audit(store, fake_redis):
    now = utcnow()
    old = make_record("u1", token="old", now=now)
    store.issue(old)

    assert store.rotate(old_token="old", replacement=make_record("u1", token="new"), now=now) is (
        RotationResult.OK
    )
    assert fake_redis.hget("rt:old", "replaced_by_token") == b"new"
    assert fake_redis.smembers("rt:u:u1") == {b"old", b"new"}


def test_connection_failure_maps_to_store_unavailable():
    server = fakeredis.FakeServer()
    server.connected = False
    store = RedisRefreshTokenStore(r=fakeredis.FakeRedis(server=server))

    with pytest.raises(StoreUnavailableError):
        store.find_by_token("anything")
    with pytest.raises(StoreUnavailableError):
        store.issue(make_record())
    with pytest.raises(StoreUnavailableError):
        store.revoke("anything", reason="x")
