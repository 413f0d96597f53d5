"""
Unit tests for SQLAlchemyUnitOfWork (writer), using factories.
"""

from __future__ import annotations

import pytest

from sessionguard.models import RefreshToken, User
from sessionguard.uow import SQLAlchemyUnitOfWork
from tests.factories.user import RefreshTokenFactory, UserFactory


class TestSQLAlchemyUnitOfWorkWriter:
    def test_writer_uow_commits_on_success(self, app, db, session):
        """
        GIVEN a writer UoW
        WHEN we create a user via repo inside the context and leave without exception
        THEN the transaction is committed and the row is visible afterwards.
        """
        initial = db.session.query(User).count()

        with SQLAlchemyUnitOfWork() as uow:
            u = UserFactory.build()
            uow.users.add(u)

        after = db.session.query(User).count()
        assert after == initial + 1

    def test_writer_uow_rolls_back_on_exception(self, app, db, session):
        """
        GIVEN a writer UoW
        WHEN an exception is raised inside the context
        THEN the transaction is rolled back and no rows are persisted.
        """
        initial = db.session.query(User).count()

        with pytest.raises(RuntimeError), SQLAlchemyUnitOfWork() as uow:
            u = UserFactory.build()
            uow.users.add(u)
            raise RuntimeError("boom")

        after = db.session.query(User).count()
        assert after == initial

    def test_repositories_share_one_transaction(self, app, db, session):
        """A failure after two repository writes undoes both of them."""
        owner = UserFactory()
        row = RefreshTokenFactory(user_id=owner.id)
        session.commit()

        with pytest.raises(RuntimeError), SQLAlchemyUnitOfWork() as uow:
            assert uow.refresh_tokens.revoke_if_active(row.token, reason="x") == 1
            uow.users.set_roles(owner, ["admin"])
            raise RuntimeError("boom")

        session.expire_all()
        assert db.session.get(RefreshToken, row.token).is_revoked is False
        assert db.session.get(User, owner.id).roles == []
