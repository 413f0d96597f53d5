"""Unit tests for RefreshTokenRepository conditional writes."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from sessionguard.models.refresh_token import RefreshToken
from sessionguard.repositories.refresh_token import RefreshTokenRepository
from tests.factories.user import RefreshTokenFactory

NOW = datetime(2026, 5, 1, 9, 0, tzinfo=UTC)


@pytest.fixture()
def repo():
    return RefreshTokenRepository()


def _reload(session, token: str) -> RefreshToken:
    session.expire_all()
    return session.get(RefreshToken, token)


def test_get_uses_token_as_primary_key(repo, session):
    row = RefreshTokenFactory()
    assert repo.get(row.token) is row
    assert repo.get("missing") is None


def test_list_active_for_user_orders_by_last_use(repo, session):
    old = RefreshTokenFactory(user_id="u1", created_at=NOW, last_used_at=NOW - timedelta(days=1))
    new = RefreshTokenFactory(user_id="u1", created_at=NOW, last_used_at=NOW)
    RefreshTokenFactory(user_id="u1", created_at=NOW, is_revoked=True)
    RefreshTokenFactory(user_id="u1", created_at=NOW - timedelta(days=30))
    RefreshTokenFactory(user_id="u2", created_at=NOW)

    rows = repo.list_active_for_user("u1", now=NOW)

    assert [r.token for r in rows] == [new.token, old.token]


def test_list_active_except_keeps_rows_without_jti(repo, session):
    mine = RefreshTokenFactory(user_id="u1", created_at=NOW, access_token_jti="mine")
    legacy = RefreshTokenFactory(user_id="u1", created_at=NOW, access_token_jti=None)

    rows = repo.list_active_for_user("u1", now=NOW, except_jti="mine")

    assert [r.token for r in rows] == [legacy.token]
    assert mine.token not in {r.token for r in rows}


def test_revoke_if_active_flips_exactly_once(repo, session):
    row = RefreshTokenFactory(is_current=True)

    assert repo.revoke_if_active(row.token, reason="first") == 1
    assert repo.revoke_if_active(row.token, reason="second") == 0

    loaded = _reload(session, row.token)
    assert loaded.is_revoked is True
    assert loaded.revoked_reason == "first"
    assert loaded.is_current is False


def test_revoke_if_active_respects_owner_and_expiry(repo, session):
    row = RefreshTokenFactory(user_id="owner", created_at=NOW)

    assert repo.revoke_if_active(row.token, reason="x", owner_id="someone") == 0
    assert (
        repo.revoke_if_active(row.token, reason="x", not_expired_at=NOW + timedelta(days=8)) == 0
    )
    assert _reload(session, row.token).is_revoked is False


def test_revoke_if_active_records_rotation_fields(repo, session):
    row = RefreshTokenFactory(created_at=NOW)
    later = NOW + timedelta(hours=1)

    flipped = repo.revoke_if_active(
        row.token,
        reason="Replaced by new token",
        not_expired_at=later,
        replaced_by="successor",
        last_used_at=later,
    )

    assert flipped == 1
    loaded = _reload(session, row.token)
    assert loaded.replaced_by_token == "successor"
    assert loaded.last_used_at == later


def test_clear_current_flag_only_touches_that_user(repo, session):
    a = RefreshTokenFactory(user_id="u1", is_current=True)
    b = RefreshTokenFactory(user_id="u2", is_current=True)

    assert repo.clear_current_flag("u1") == 1
    assert _reload(session, a.token).is_current is False
    assert _reload(session, b.token).is_current is True


def test_revoke_active_for_user_counts_flipped_rows(repo, session):
    keep = RefreshTokenFactory(user_id="u1", created_at=NOW, access_token_jti="keep")
    RefreshTokenFactory(user_id="u1", created_at=NOW)
    RefreshTokenFactory(user_id="u1", created_at=NOW)
    RefreshTokenFactory(user_id="u1", created_at=NOW, is_revoked=True, revoked_reason="old")

    assert repo.revoke_active_for_user("u1", reason="bulk", now=NOW, except_jti="keep") == 2
    assert _reload(session, keep.token).is_revoked is False
    assert repo.revoke_active_for_user("u1", reason="bulk", now=NOW) == 1


def test_lock_owner_reports_whether_the_user_row_exists(repo, session):
    from tests.factories.user import UserFactory

    user = UserFactory()

    assert repo.lock_owner(user.id) is True
    assert repo.lock_owner("ghost") is False


def test_owner_lock_statement_selects_for_update():
    from sqlalchemy.dialects import postgresql

    from sessionguard.repositories.refresh_token import owner_lock_statement

    sql = str(owner_lock_statement("u-1").compile(dialect=postgresql.dialect()))

    assert "FROM users" in sql
    assert sql.rstrip().endswith("FOR UPDATE")
