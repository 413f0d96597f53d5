"""Builders for refresh-token records shared by store and service tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from sessionguard.services._shared.ports import RefreshTokenRecord


def utcnow() -> datetime:
    return datetime.now(UTC)


def make_record(
    user_id: str = "user-1",
    *,
    now: datetime | None = None,
    token: str | None = None,
    jti: str | None = None,
    expires_in: timedelta = timedelta(days=7),
    last_used_at: datetime | None = None,
    **fields,
) -> RefreshTokenRecord:
    """Return an active record; ``expires_in`` may be negative for expired ones."""
    now = now or utcnow()
    return RefreshTokenRecord(
        token=token or f"rt-{uuid4().hex}",
        user_id=user_id,
        access_token_jti=jti if jti is not None else uuid4().hex,
        expires_at=now + expires_in,
        created_at=now,
        last_used_at=last_used_at or now,
        **fields,
    )
