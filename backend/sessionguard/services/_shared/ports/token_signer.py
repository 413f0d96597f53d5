from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class AccessTokenClaims:
    """
    Verified claim set of an access token.

    :ivar subject: User id (``sub``).
    :ivar jti: Token identifier, correlates to the refresh token minted alongside.
    :ivar roles: Role names carried in the ``roles`` claim.
    :ivar issuer: ``iss`` claim.
    :ivar audience: ``aud`` claim.
    :ivar issued_at: ``iat`` as an aware UTC datetime.
    :ivar expires_at: ``exp`` as an aware UTC datetime.
    :ivar raw: Full decoded payload.
    """

    subject: str
    jti: str
    roles: tuple[str, ...]
    issuer: str | None
    audience: str | list[str] | None
    issued_at: datetime
    expires_at: datetime
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


class TokenSigner(Protocol):
    """
    Port for minting and verifying short-lived access tokens.

    Implementations hold no per-call state; the signing key is fixed for the
    process lifetime, so every method is safe to call concurrently.
    """

    def issue_access_token(
        self,
        *,
        subject: str,
        roles: Iterable[str],
        jti: str,
        expires_delta: timedelta,
    ) -> str:
        """Return a signed token carrying ``sub``, ``jti`` and ``roles``.

        ``iss``, ``aud``, ``iat``, ``nbf`` and ``exp`` are added by the signer.
        """

    def validate_access_token(self, token: str) -> AccessTokenClaims:
        """
        Verify signature, algorithm, issuer, audience and expiry (no leeway).

        :raises TokenInvalidError: On any verification failure.
        """

    def get_expires_at(self, token: str) -> datetime:
        """Return the ``exp`` claim of a token minted by this signer."""
