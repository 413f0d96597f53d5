"""In-memory store specifics not covered by the shared contract."""

from __future__ import annotations

import pytest

from sessionguard.services._shared.ports import InMemoryRefreshTokenStore
from tests.helpers.tokens import make_record, utcnow


def test_rotate_onto_an_existing_token_leaves_the_old_one_usable():
    store = InMemoryRefreshTokenStore()
    old = make_record("u1", is_current=True)
    taken = make_record("u1")
    store.issue(old)
    store.issue(taken)

    with pytest.raises(ValueError, match="already stored"):
        store.rotate(
            old_token=old.token,
            replacement=make_record("u1", token=taken.token),
            now=utcnow(),
        )

    assert store.find_by_token(old.token).is_revoked is False
    assert store.find_by_token(old.token).replaced_by_token is None
    assert store.find_by_token(taken.token) == taken
