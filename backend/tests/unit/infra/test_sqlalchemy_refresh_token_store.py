"""SQLAlchemy store specifics: per-user write serialization."""

from __future__ import annotations

import pytest

from sessionguard.infra.sqlalchemy.refresh_token_store import SQLAlchemyRefreshTokenStore
from sessionguard.repositories.refresh_token import RefreshTokenRepository
from sessionguard.services._shared.ports import RotationResult
from tests.factories.user import UserFactory
from tests.helpers.tokens import make_record, utcnow


@pytest.fixture()
def calls(monkeypatch):
    """Record the order of the repository writes a store operation issues."""
    seen: list[tuple[str, str]] = []
    for name in ("lock_owner", "clear_current_flag", "revoke_if_active"):
        original = getattr(RefreshTokenRepository, name)

        def spy(self, key, *args, _name=name, _original=original, **kwargs):
            seen.append((_name, key))
            return _original(self, key, *args, **kwargs)

        monkeypatch.setattr(RefreshTokenRepository, name, spy)
    return seen


def test_issue_locks_the_owner_before_moving_the_current_flag(session, calls):
    user = UserFactory()
    store = SQLAlchemyRefreshTokenStore()

    store.issue(make_record(user.id, is_current=True))

    assert calls == [("lock_owner", user.id), ("clear_current_flag", user.id)]


def test_rotate_locks_the_owner_before_consuming_the_old_token(session, calls):
    user = UserFactory()
    store = SQLAlchemyRefreshTokenStore()
    old = make_record(user.id, is_current=True)
    store.issue(old)
    calls.clear()

    result = store.rotate(
        old_token=old.token,
        replacement=make_record(user.id, is_current=True),
        now=utcnow(),
    )

    assert result is RotationResult.OK
    assert [name for name, _ in calls] == [
        "lock_owner",
        "revoke_if_active",
        "clear_current_flag",
    ]
    assert calls[0] == ("lock_owner", user.id)


def test_sequential_logins_leave_one_current_token(session):
    user = UserFactory()
    store = SQLAlchemyRefreshTokenStore()
    for _ in range(3):
        store.issue(make_record(user.id, is_current=True))

    active = store.find_active_by_user(user.id, now=utcnow())

    assert len(active) == 3
    assert sum(rec.is_current for rec in active) == 1
