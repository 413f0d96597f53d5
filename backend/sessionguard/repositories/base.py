"""Shared persistence plumbing for the SQLAlchemy 2.x repositories.

Repositories here are deliberately thin: lookups by key, whitelisted equality
filters and staging of new rows. They never begin, commit or roll back; the
unit of work wrapping them decides what becomes durable.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Select, select, true
from sqlalchemy.orm import InstrumentedAttribute, Session

from sessionguard.core.extensions import db

E = TypeVar("E")


class BaseRepository(Generic[E]):
    """Key lookups and existence checks for one mapped class.

    Subclasses set ``model`` and may override :meth:`_pk_attr` (when the key
    is not ``id``) and :meth:`_filterable_fields` (columns usable as
    ``exists(column=value)`` filters; other keyword names are ignored).
    """

    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        """The injected session, else the Flask-scoped ``db.session``."""
        return self._session if self._session is not None else cast(Session, db.session)

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        return cast(InstrumentedAttribute[Any], self.model.id)  # type: ignore[attr-defined]

    def _filterable_fields(self) -> Mapping[str, InstrumentedAttribute[Any]]:
        return {}

    def _where_equal(self, stmt: Select[Any], filters: Mapping[str, Any]) -> Select[Any]:
        columns = self._filterable_fields()
        for name, value in filters.items():
            column = columns.get(name)
            if column is not None:
                stmt = stmt.where(column == value)
        return stmt

    # ------------------------------ Public API -------------------------------

    def get(self, key: Any) -> E | None:
        """Return the row whose primary key equals ``key``, or ``None``."""
        stmt = select(self.model).where(self._pk_attr() == key)
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def exists(self, **filters: Any) -> bool:
        """``True`` when at least one row matches the whitelisted ``filters``."""
        stmt = self._where_equal(select(true()).select_from(self.model), filters)
        return self.session.execute(stmt.limit(1)).first() is not None

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so defaults and keys are populated."""
        self.session.add(instance)
        self.flush()
        return instance

    def flush(self) -> None:
        self.session.flush()
