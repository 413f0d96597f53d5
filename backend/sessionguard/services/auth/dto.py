# sessionguard/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

BEARER = "Bearer"

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    """
    Device metadata captured from the issuing request.

    Every field is optional and copied verbatim onto the refresh-token record.

    :param user_agent: Raw ``User-Agent`` header.
    :type user_agent: str | None
    :param ip_address: Client address as resolved behind proxies.
    :type ip_address: str | None
    :param device_name: Human label, e.g. ``"Windows - Chrome"``.
    :type device_name: str | None
    :param platform: Operating system family.
    :type platform: str | None
    :param browser: Browser family.
    :type browser: str | None
    """

    user_agent: str | None = None
    ip_address: str | None = None
    device_name: str | None = None
    platform: str | None = None
    browser: str | None = None


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenBundle:
    """
    Credentials handed to the client after login or refresh.

    :param access_token: Signed access JWT.
    :type access_token: str
    :param refresh_token: Opaque refresh secret (cookie-bound).
    :type refresh_token: str
    :param expires_at: Access-token expiry (UTC).
    :type expires_at: datetime
    :param token_type: Always ``"Bearer"``.
    :type token_type: str
    """

    access_token: str
    refresh_token: str
    expires_at: datetime
    token_type: str = BEARER


@dataclass(frozen=True, slots=True)
class DeviceSession:
    """
    Read-only projection of one active refresh token.

    ``is_current`` answers "is this the session making the request", computed
    from the caller's access-token ``jti``; it is unrelated to the stored
    ``is_current`` column.
    """

    token: str
    device_name: str | None
    user_agent: str | None
    ip_address: str | None
    platform: str | None
    browser: str | None
    created_at: datetime
    last_used_at: datetime
    expires_at: datetime
    is_current: bool


# ------------------------------ Config DTO -------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthTokenConfig:
    """
    Token emission configuration.

    :param access_expires: Access token lifetime.
    :type access_expires: timedelta
    :param refresh_expires: Refresh token lifetime.
    :type refresh_expires: timedelta
    :param refresh_token_bytes: Random bytes behind each refresh token.
    :type refresh_token_bytes: int
    """

    access_expires: timedelta
    refresh_expires: timedelta
    refresh_token_bytes: int = 64

    def __post_init__(self) -> None:
        if self.refresh_token_bytes < 32:
            raise ValueError("refresh_token_bytes must be at least 32 (256 bits).")
