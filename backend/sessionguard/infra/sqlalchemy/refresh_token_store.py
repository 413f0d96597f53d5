# sessionguard/infra/sqlalchemy/refresh_token_store.py
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy.exc import OperationalError

from sessionguard.models.refresh_token import RefreshToken
from sessionguard.services._shared.errors import StoreUnavailableError
from sessionguard.services._shared.ports import (
    REPLACED_BY_NEW_TOKEN,
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
)
from sessionguard.uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork


def to_record(row: RefreshToken) -> RefreshTokenRecord:
    """Detach an ORM row into an immutable record."""
    return RefreshTokenRecord(
        token=row.token,
        user_id=row.user_id,
        access_token_jti=row.access_token_jti,
        expires_at=row.expires_at,
        created_at=row.created_at,
        last_used_at=row.last_used_at,
        is_revoked=row.is_revoked,
        revoked_reason=row.revoked_reason,
        replaced_by_token=row.replaced_by_token,
        is_current=row.is_current,
        device_name=row.device_name,
        user_agent=row.user_agent,
        ip_address=row.ip_address,
        platform=row.platform,
        browser=row.browser,
    )


def to_row(record: RefreshTokenRecord) -> RefreshToken:
    return RefreshToken(
        token=record.token,
        user_id=record.user_id,
        access_token_jti=record.access_token_jti,
        expires_at=record.expires_at,
        created_at=record.created_at,
        last_used_at=record.last_used_at,
        is_revoked=record.is_revoked,
        revoked_reason=record.revoked_reason,
        replaced_by_token=record.replaced_by_token,
        is_current=record.is_current,
        device_name=record.device_name,
        user_agent=record.user_agent,
        ip_address=record.ip_address,
        platform=record.platform,
        browser=record.browser,
    )


class SQLAlchemyRefreshTokenStore(RefreshTokenStore):
    """
    Relational refresh token store.

    Each write method runs in its own :class:`SQLAlchemyUnitOfWork`, so the
    ``is_current`` reset and the insert of a new token share one transaction.
    Rotation is a single ``UPDATE ... WHERE token = ? AND is_revoked = false
    AND expires_at > now``; a zero row count means another caller (or an
    earlier revocation) got there first.

    .. note::
       Requires an active Flask app context (Flask-SQLAlchemy session).
    """

    @contextmanager
    def _write(self) -> Iterator[SQLAlchemyUnitOfWork]:
        try:
            with SQLAlchemyUnitOfWork() as uow:
                yield uow
        except OperationalError as exc:
            raise StoreUnavailableError() from exc

    @contextmanager
    def _read(self) -> Iterator[SQLAlchemyReadOnlyUnitOfWork]:
        try:
            with SQLAlchemyReadOnlyUnitOfWork() as uow:
                yield uow
        except OperationalError as exc:
            raise StoreUnavailableError() from exc

    # -------------------- reads ------------------------

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        with self._read() as uow:
            row = uow.refresh_tokens.get(token)
            return to_record(row) if row is not None else None

    def exists(self, token: str) -> bool:
        with self._read() as uow:
            return uow.refresh_tokens.exists(token=token)

    def find_active_by_user(self, user_id: str, *, now: datetime) -> list[RefreshTokenRecord]:
        with self._read() as uow:
            rows = uow.refresh_tokens.list_active_for_user(user_id, now=now)
            return [to_record(r) for r in rows]

    def find_active_by_user_except(
        self, user_id: str, jti: str, *, now: datetime
    ) -> list[RefreshTokenRecord]:
        with self._read() as uow:
            rows = uow.refresh_tokens.list_active_for_user(user_id, now=now, except_jti=jti)
            return [to_record(r) for r in rows]

    # -------------------- writes -----------------------

    def issue(self, record: RefreshTokenRecord) -> None:
        with self._write() as uow:
            uow.refresh_tokens.lock_owner(record.user_id)
            uow.refresh_tokens.clear_current_flag(record.user_id)
            uow.refresh_tokens.add(to_row(record))

    def rotate(
        self,
        *,
        old_token: str,
        replacement: RefreshTokenRecord,
        now: datetime,
    ) -> RotationResult:
        with self._write() as uow:
            repo = uow.refresh_tokens
            repo.lock_owner(replacement.user_id)
            flipped = repo.revoke_if_active(
                old_token,
                reason=REPLACED_BY_NEW_TOKEN,
                not_expired_at=now,
                replaced_by=replacement.token,
                last_used_at=now,
            )
            if not flipped:
                # Nothing was written; classify the loss for the caller.
                row = repo.session.get(RefreshToken, old_token, populate_existing=True)
                if row is None:
                    return RotationResult.NOT_FOUND
                if row.is_revoked:
                    return RotationResult.REVOKED
                return RotationResult.EXPIRED

            repo.clear_current_flag(replacement.user_id)
            repo.add(to_row(replacement))
            return RotationResult.OK

    def revoke(self, token: str, *, reason: str, owner_id: str | None = None) -> bool:
        with self._write() as uow:
            return bool(uow.refresh_tokens.revoke_if_active(token, reason=reason, owner_id=owner_id))

    def revoke_for_user(
        self,
        user_id: str,
        *,
        reason: str,
        now: datetime,
        except_jti: str | None = None,
    ) -> int:
        with self._write() as uow:
            return uow.refresh_tokens.revoke_active_for_user(
                user_id, reason=reason, now=now, except_jti=except_jti
            )
