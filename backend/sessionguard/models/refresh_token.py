"""Persistent refresh-token record (one row per issued refresh token)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Index, String, false
from sqlalchemy.orm import Mapped, mapped_column

from sessionguard.core.extensions import db

from .base import UTCDateTime


class RefreshToken(db.Model):
    """
    Opaque refresh token plus the device metadata captured at issuance.

    Fields
    ------
    token : str
        Opaque URL-safe random string, primary key.
    user_id : str
        Owner identity id.
    access_token_jti : str | None
        ``jti`` of the access token minted alongside this refresh token.
    expires_at, created_at, last_used_at : datetime
        UTC timestamps. Expiry is computed from ``expires_at``; it is never a
        stored state.
    is_revoked : bool
        Monotonic flag, only ever flipped ``False -> True``.
    revoked_reason : str | None
        Written once, together with the flip.
    replaced_by_token : str | None
        Set only when revoked by rotation.
    is_current : bool
        ``True`` for the most recently issued token across all of the user's
        devices. Unrelated to "the session making this request".
    device_name, user_agent, ip_address, platform, browser : str | None
        Device metadata copied verbatim from the issuing request.
    """

    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(String(200), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(450), nullable=False)
    access_token_jti: Mapped[str | None] = mapped_column(String(64), nullable=True)

    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    last_used_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    is_revoked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    revoked_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    replaced_by_token: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_current: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    device_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(50), nullable=True)
    platform: Mapped[str | None] = mapped_column(String(50), nullable=True)
    browser: Mapped[str | None] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        Index("ix_refresh_tokens_user_id", "user_id"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
        Index("ix_refresh_tokens_is_revoked", "is_revoked"),
        Index("ix_refresh_tokens_user_id_is_revoked", "user_id", "is_revoked"),
    )

    def __repr__(self) -> str:
        return (
            f"<RefreshToken user_id={self.user_id} jti={self.access_token_jti} "
            f"revoked={self.is_revoked}>"
        )
