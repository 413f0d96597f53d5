# tests/unit/infra/test_refresh_token_store.py
"""
Behavioural contract shared by every refresh token store adapter.

The same scenarios run against the in-memory store, the SQLAlchemy store
(transactional SQLite session) and the Redis store (fakeredis):

- issue / lookup / ``is_current`` bookkeeping
- active listing, ordering and the ``except`` variant
- rotation outcomes (OK, NOT_FOUND, REVOKED, EXPIRED)
- single and bulk revocation (monotonic flag, first reason wins)
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from sessionguard.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from sessionguard.infra.sqlalchemy.refresh_token_store import SQLAlchemyRefreshTokenStore
from sessionguard.services._shared.ports import (
    REPLACED_BY_NEW_TOKEN,
    InMemoryRefreshTokenStore,
    RotationResult,
)
from tests.helpers.tokens import make_record, utcnow


@pytest.fixture(params=["memory", "sqlalchemy", "redis"])
def store(request, session, fake_redis):
    """One store per adapter; the SQL one writes through the test session."""
    if request.param == "memory":
        return InMemoryRefreshTokenStore()
    if request.param == "sqlalchemy":
        return SQLAlchemyRefreshTokenStore()
    return RedisRefreshTokenStore(r=fake_redis)


# ------------------------------ issue / read ------------------------------ #


def test_issue_then_find_by_token_returns_equal_record(store):
    rec = make_record(device_name="Windows - Chrome", ip_address="10.0.0.1", is_current=True)
    store.issue(rec)

    loaded = store.find_by_token(rec.token)
    assert loaded == rec
    assert store.exists(rec.token) is True


def test_find_unknown_token_returns_none(store):
    assert store.find_by_token("nope") is None
    assert store.exists("nope") is False


def test_issue_moves_current_flag_within_user_only(store):
    first = make_record("u1", is_current=True)
    other_user = make_record("u2", is_current=True)
    store.issue(first)
    store.issue(other_user)

    second = make_record("u1", is_current=True)
    store.issue(second)

    assert store.find_by_token(first.token).is_current is False
    assert store.find_by_token(second.token).is_current is True
    assert store.find_by_token(other_user.token).is_current is True
    # Clearing the flag never revokes
    assert store.find_by_token(first.token).is_revoked is False


def test_find_active_by_user_filters_and_orders(store):
    now = utcnow()
    older = make_record("u1", now=now, last_used_at=now - timedelta(hours=2))
    newer = make_record("u1", now=now, last_used_at=now - timedelta(minutes=5))
    expired = make_record("u1", now=now, expires_in=timedelta(seconds=-10))
    revoked = make_record("u1", now=now)
    foreign = make_record("u2", now=now)
    for rec in (older, newer, expired, revoked, foreign):
        store.issue(rec)
    store.revoke(revoked.token, reason="Manually revoked")

    active = store.find_active_by_user("u1", now=utcnow())
    assert [r.token for r in active] == [newer.token, older.token]


def test_find_active_by_user_except_skips_matching_jti(store):
    keep = make_record("u1", jti="jti-keep")
    other = make_record("u1", jti="jti-other")
    store.issue(keep)
    store.issue(other)

    result = store.find_active_by_user_except("u1", "jti-keep", now=utcnow())
    assert [r.token for r in result] == [other.token]


# -------------------------------- rotation -------------------------------- #


def test_rotate_success_revokes_old_and_links_replacement(store):
    now = utcnow()
    old = make_record("u1", now=now - timedelta(minutes=10), is_current=True)
    store.issue(old)
    replacement = make_record("u1", now=now, is_current=True)

    result = store.rotate(old_token=old.token, replacement=replacement, now=now)

    assert result is RotationResult.OK
    consumed = store.find_by_token(old.token)
    assert consumed.is_revoked is True
    assert consumed.revoked_reason == REPLACED_BY_NEW_TOKEN
    assert consumed.replaced_by_token == replacement.token
    assert consumed.last_used_at == now
    assert consumed.is_current is False
    assert store.find_by_token(replacement.token) == replacement


def test_rotate_unknown_token_is_not_found(store):
    result = store.rotate(old_token="missing", replacement=make_record(), now=utcnow())
    assert result is RotationResult.NOT_FOUND


def test_rotate_twice_second_call_sees_revoked(store):
    now = utcnow()
    old = make_record("u1", now=now)
    store.issue(old)
    assert store.rotate(old_token=old.token, replacement=make_record("u1"), now=now) is (
        RotationResult.OK
    )

    loser = make_record("u1")
    assert store.rotate(old_token=old.token, replacement=loser, now=now) is RotationResult.REVOKED
    assert store.find_by_token(loser.token) is None


def test_rotate_expired_token_is_expired_and_not_written(store):
    now = utcnow()
    old = make_record("u1", now=now, expires_in=timedelta(seconds=-1))
    store.issue(old)
    replacement = make_record("u1")

    assert store.rotate(old_token=old.token, replacement=replacement, now=now) is (
        RotationResult.EXPIRED
    )
    assert store.find_by_token(old.token).is_revoked is False
    assert store.exists(replacement.token) is False


def test_rotate_revoked_and_expired_reports_revoked(store):
    now = utcnow()
    old = make_record("u1", now=now, expires_in=timedelta(seconds=-1))
    store.issue(old)
    store.revoke(old.token, reason="Manually revoked")

    assert store.rotate(old_token=old.token, replacement=make_record("u1"), now=now) is (
        RotationResult.REVOKED
    )


# ------------------------------- revocation ------------------------------- #


def test_revoke_flips_once_and_keeps_first_reason(store):
    rec = make_record("u1", is_current=True)
    store.issue(rec)

    assert store.revoke(rec.token, reason="first") is True
    assert store.revoke(rec.token, reason="second") is False

    loaded = store.find_by_token(rec.token)
    assert loaded.is_revoked is True
    assert loaded.revoked_reason == "first"
    assert loaded.is_current is False
    assert loaded.replaced_by_token is None


def test_revoke_unknown_token_returns_false(store):
    assert store.revoke("missing", reason="x") is False


def test_revoke_with_foreign_owner_changes_nothing(store):
    rec = make_record("owner")
    store.issue(rec)

    assert store.revoke(rec.token, reason="x", owner_id="intruder") is False
    assert store.find_by_token(rec.token).is_revoked is False
    assert store.revoke(rec.token, reason="x", owner_id="owner") is True


def test_revoke_for_user_counts_active_tokens_only(store):
    now = utcnow()
    a = make_record("u1", now=now)
    b = make_record("u1", now=now)
    already = make_record("u1", now=now)
    expired = make_record("u1", now=now, expires_in=timedelta(seconds=-5))
    foreign = make_record("u2", now=now)
    for rec in (a, b, already, expired, foreign):
        store.issue(rec)
    store.revoke(already.token, reason="earlier")

    count = store.revoke_for_user("u1", reason="All tokens revoked", now=utcnow())

    assert count == 2
    assert store.find_by_token(a.token).revoked_reason == "All tokens revoked"
    assert store.find_by_token(b.token).revoked_reason == "All tokens revoked"
    assert store.find_by_token(already.token).revoked_reason == "earlier"
    assert store.find_by_token(expired.token).is_revoked is False
    assert store.find_by_token(foreign.token).is_revoked is False


def test_revoke_for_user_except_jti_keeps_that_session(store):
    keep = make_record("u1", jti="keep")
    drop = make_record("u1", jti="drop")
    store.issue(keep)
    store.issue(drop)

    count = store.revoke_for_user(
        "u1", reason="Other tokens revoked", now=utcnow(), except_jti="keep"
    )

    assert count == 1
    assert store.find_by_token(keep.token).is_revoked is False
    assert store.find_by_token(drop.token).is_revoked is True


def test_revoke_for_user_without_tokens_returns_zero(store):
    assert store.revoke_for_user("ghost", reason="x", now=utcnow()) == 0
