"""Refresh-token repository: reads plus conditional (compare-and-set) writes."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Select, or_, select, update
from sqlalchemy.orm import InstrumentedAttribute

from sessionguard.models.refresh_token import RefreshToken
from sessionguard.models.user import User
from sessionguard.repositories.base import BaseRepository


def owner_lock_statement(user_id: str) -> Select[tuple[str]]:
    """``SELECT users.id ... FOR UPDATE`` for the owner of a token family."""
    return select(User.id).where(User.id == user_id).with_for_update()


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken`.

    Every revocation is an ``UPDATE ... WHERE is_revoked = false`` whose
    affected-row count tells the caller whether *this* statement flipped the
    row. Nothing here ever writes ``is_revoked = False``.
    """

    model = RefreshToken

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        return RefreshToken.token

    def _filterable_fields(self):
        return {
            "token": RefreshToken.token,
            "user_id": RefreshToken.user_id,
            "access_token_jti": RefreshToken.access_token_jti,
        }

    # ---------------------------- Reads ----------------------------

    def list_active_for_user(
        self,
        user_id: str,
        *,
        now: datetime,
        except_jti: str | None = None,
    ) -> list[RefreshToken]:
        """Return unrevoked, unexpired tokens of ``user_id``, most recently used first.

        :param except_jti: Leave out the token issued with this access-token ``jti``.
        """
        stmt = select(RefreshToken).where(
            RefreshToken.user_id == user_id,
            RefreshToken.is_revoked.is_(False),
            RefreshToken.expires_at > now,
        )
        if except_jti is not None:
            stmt = stmt.where(
                or_(
                    RefreshToken.access_token_jti.is_(None),
                    RefreshToken.access_token_jti != except_jti,
                )
            )
        stmt = stmt.order_by(RefreshToken.last_used_at.desc(), RefreshToken.created_at.desc())
        return list(self.session.execute(stmt).scalars().all())

    # ---------------------------- Conditional writes ----------------------------

    def lock_owner(self, user_id: str) -> bool:
        """Row-lock the ``users`` row of ``user_id`` until the transaction ends.

        Writers for the same user queue here, so one writer's ``is_current``
        reset and insert never interleave with another's. SQLite ignores
        ``FOR UPDATE``; its database-level write lock already serializes them.

        :returns: ``False`` when no such user exists (nothing was locked).
        """
        return self.session.execute(owner_lock_statement(user_id)).first() is not None


    def _rowcount(self, stmt) -> int:
        # No identity-map sync: the row count must come from the UPDATE alone.
        result = self.session.execute(stmt.execution_options(synchronize_session=False))
        return int(result.rowcount or 0)

    def clear_current_flag(self, user_id: str) -> int:
        """Set ``is_current = False`` on every token of ``user_id``; returns rows touched."""
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.is_current.is_(True))
            .values(is_current=False)
        )
        return self._rowcount(stmt)

    def revoke_if_active(
        self,
        token: str,
        *,
        reason: str,
        owner_id: str | None = None,
        not_expired_at: datetime | None = None,
        replaced_by: str | None = None,
        last_used_at: datetime | None = None,
    ) -> int:
        """Revoke one token only if it is still unrevoked.

        :param owner_id: Additionally require this owner.
        :param not_expired_at: Additionally require ``expires_at`` after this instant.
        :param replaced_by: Successor token (rotation only).
        :param last_used_at: New ``last_used_at`` value (rotation only).
        :returns: ``1`` when this statement flipped the row, else ``0``.
        """
        stmt = update(RefreshToken).where(
            RefreshToken.token == token,
            RefreshToken.is_revoked.is_(False),
        )
        if owner_id is not None:
            stmt = stmt.where(RefreshToken.user_id == owner_id)
        if not_expired_at is not None:
            stmt = stmt.where(RefreshToken.expires_at > not_expired_at)

        values: dict[str, Any] = {
            "is_revoked": True,
            "revoked_reason": reason,
            "is_current": False,
        }
        if replaced_by is not None:
            values["replaced_by_token"] = replaced_by
        if last_used_at is not None:
            values["last_used_at"] = last_used_at
        return self._rowcount(stmt.values(**values))

    def revoke_active_for_user(
        self,
        user_id: str,
        *,
        reason: str,
        now: datetime,
        except_jti: str | None = None,
    ) -> int:
        """Revoke every unrevoked, unexpired token of ``user_id``; returns rows flipped."""
        stmt = update(RefreshToken).where(
            RefreshToken.user_id == user_id,
            RefreshToken.is_revoked.is_(False),
            RefreshToken.expires_at > now,
        )
        if except_jti is not None:
            stmt = stmt.where(
                or_(
                    RefreshToken.access_token_jti.is_(None),
                    RefreshToken.access_token_jti != except_jti,
                )
            )
        stmt = stmt.values(is_revoked=True, revoked_reason=reason, is_current=False)
        return self._rowcount(stmt)
