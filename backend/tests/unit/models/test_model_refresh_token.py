"""Tests for the RefreshToken model."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

from sqlalchemy import select

from sessionguard.models.refresh_token import RefreshToken
from tests.factories.user import RefreshTokenFactory


def test_defaults_are_active_and_not_current(session):
    now = datetime.now(UTC)
    row = RefreshToken(
        token="t-defaults",
        user_id="u-1",
        expires_at=now + timedelta(days=1),
        created_at=now,
        last_used_at=now,
    )
    session.add(row)
    session.flush()

    assert row.is_revoked is False
    assert row.is_current is False
    assert row.revoked_reason is None
    assert row.replaced_by_token is None


def test_timestamps_round_trip_as_aware_utc(session):
    row = RefreshTokenFactory(token="t-utc")
    session.expire_all()

    loaded = session.execute(
        select(RefreshToken).where(RefreshToken.token == "t-utc")
    ).scalar_one()
    assert loaded.expires_at.tzinfo is not None
    assert loaded.expires_at.utcoffset() == timedelta(0)
    assert loaded.expires_at == row.expires_at


def test_non_utc_input_is_normalized(session):
    plus_two = timezone(timedelta(hours=2))
    local = datetime(2026, 1, 1, 12, 0, tzinfo=plus_two)
    RefreshTokenFactory(token="t-tz", created_at=local)
    session.expire_all()

    loaded = session.get(RefreshToken, "t-tz")
    assert loaded.created_at == datetime(2026, 1, 1, 10, 0, tzinfo=UTC)


def test_repr_mentions_owner_and_state():
    row = RefreshToken(token="t", user_id="u-9", access_token_jti="j-1", is_revoked=True)
    assert repr(row) == "<RefreshToken user_id=u-9 jti=j-1 revoked=True>"
