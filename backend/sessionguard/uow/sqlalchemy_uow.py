"""
SQLAlchemy implementation of UnitOfWork for Flask.
"""

from __future__ import annotations

from contextlib import suppress

from sqlalchemy import event
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.orm import Session, SessionTransaction

from sessionguard.core.extensions import db
from sessionguard.repositories import RefreshTokenRepository, UserRepository
from sessionguard.uow.base import UnitOfWork


class SQLAlchemyRepositoryContainer:
    """Provide repository instances that share a SQLAlchemy session."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=self.session)
        self.refresh_tokens = RefreshTokenRepository(session=self.session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    SQLAlchemy-backed UoW using the Flask-scoped session.

    The same session is shared across all repositories, so every conditional
    write issued inside one ``with`` block commits or rolls back together.
    """

    def __init__(self) -> None:
        super().__init__(session=db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # No-op: the session is lazily started on the first statement.
        return self

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-only Unit of Work backed by the Flask-scoped SQLAlchemy session.

    This UoW:
    - Works on the thread's concrete :class:`Session` behind ``db.session``,
      so the flush guard is never installed on other threads' sessions.
    - Owns a fresh transaction when none is running and rolls it back on exit.
    - Attaches to an already running transaction otherwise (leaving it open).
    - Blocks ORM flushes while active and disallows ``commit()``.
    """

    def __init__(self) -> None:
        super().__init__(session=db.session())
        self._txn: SessionTransaction | None = None

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        try:
            self._txn = self.session.begin()
        except InvalidRequestError:
            # Already begun (autobegin or an outer scope): attach, do not own.
            self._txn = None
        event.listen(self.session, "before_flush", self._block_flush)
        return self

    @property
    def owns_transaction(self) -> bool:
        return self._txn is not None

    def __exit__(self, exc_type, exc, tb) -> None:
        with suppress(Exception):
            event.remove(self.session, "before_flush", self._block_flush)
        if self._txn is not None:
            try:
                self.rollback()
            finally:
                self._txn = None

    def commit(self) -> None:
        """
        Disallow commit in read-only Unit of Work.

        :raises RuntimeError: always, to prevent accidental writes.
        """
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

    @staticmethod
    def _block_flush(session, flush_context, instances) -> None:
        if session.new or session.dirty or session.deleted:
            raise RuntimeError(
                "Read-only UnitOfWork: ORM flush blocked (new/dirty/deleted objects present)."
            )
