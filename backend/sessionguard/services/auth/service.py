# sessionguard/services/auth/service.py
from __future__ import annotations

import secrets
from collections.abc import Iterator
from datetime import datetime, timedelta
from uuid import uuid4

from sessionguard.services._shared.base import BaseService, ServiceContext
from sessionguard.services._shared.errors import (
    TokenError,
    TokenExpiredError,
    TokenInvalidError,
    TokenRevokedError,
    UserNotFoundError,
)
from sessionguard.services._shared.ports.refresh_token_store import (
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
)
from sessionguard.services._shared.ports.token_signer import AccessTokenClaims, TokenSigner
from sessionguard.services._shared.ports.user_directory import UserDirectory, UserIdentity
from sessionguard.services.auth.dto import (
    AuthTokenConfig,
    DeviceInfo,
    DeviceSession,
    TokenBundle,
)

MANUALLY_REVOKED = "Manually revoked"
ALL_TOKENS_REVOKED = "All tokens revoked"
OTHER_TOKENS_REVOKED = "Other tokens revoked"

_ROTATION_ERRORS: dict[RotationResult, type[TokenError]] = {
    RotationResult.NOT_FOUND: TokenInvalidError,
    RotationResult.REVOKED: TokenRevokedError,
    RotationResult.EXPIRED: TokenExpiredError,
}


class TokenLifecycleManager(BaseService):
    """
    Issue, rotate, validate and revoke session credentials.

    A session is a short-lived signed access token paired with a long-lived
    opaque refresh token. The manager is the only writer of refresh-token
    state transitions; it keeps no mutable state of its own, so one instance
    may serve concurrent requests.

    Collaborators
    -------------
    signer : TokenSigner
        Mints and verifies access tokens (no storage access).
    store : RefreshTokenStore
        Persists refresh tokens; rotation is a conditional write.
    users : UserDirectory
        Identity lookup and the authoritative role assignment.
    """

    def __init__(
        self,
        *,
        signer: TokenSigner,
        store: RefreshTokenStore,
        users: UserDirectory,
        token_cfg: AuthTokenConfig | None = None,
        ctx: ServiceContext | None = None,
    ) -> None:
        super().__init__(ctx=ctx)
        self.signer = signer
        self.store = store
        self.users = users
        self.cfg = token_cfg or AuthTokenConfig(
            access_expires=timedelta(minutes=15),
            refresh_expires=timedelta(days=7),
        )

    # ------------------------------------------------------------------ #
    # Issuance
    # ------------------------------------------------------------------ #

    def generate_tokens(self, user: UserIdentity, device: DeviceInfo | None = None) -> TokenBundle:
        """
        Issue a fresh access/refresh pair for ``user``.

        The new refresh token becomes the user's ``is_current`` token; every
        other token of the user loses that flag (without being revoked).

        :raises StoreUnavailableError: When the store cannot be reached.
        """
        bundle, record = self._mint(user.id, device, self.now_utc())
        self.store.issue(record)
        self.log.info(
            "Issued tokens",
            extra={"event": "tokens.issued", "user_id": user.id, "jti": record.access_token_jti},
        )
        return bundle

    def _mint(
        self, user_id: str, device: DeviceInfo | None, now: datetime
    ) -> tuple[TokenBundle, RefreshTokenRecord]:
        jti = uuid4().hex
        roles = self.users.get_roles_for_user(user_id)
        access_token = self.signer.issue_access_token(
            subject=user_id,
            roles=sorted(roles),
            jti=jti,
            expires_delta=self.cfg.access_expires,
        )
        device = device or DeviceInfo()
        record = RefreshTokenRecord(
            token=self._new_refresh_token(),
            user_id=user_id,
            access_token_jti=jti,
            expires_at=now + self.cfg.refresh_expires,
            created_at=now,
            last_used_at=now,
            is_current=True,
            device_name=device.device_name,
            user_agent=device.user_agent,
            ip_address=device.ip_address,
            platform=device.platform,
            browser=device.browser,
        )
        bundle = TokenBundle(
            access_token=access_token,
            refresh_token=record.token,
            expires_at=self.signer.get_expires_at(access_token),
        )
        return bundle, record

    def _new_refresh_token(self) -> str:
        while True:
            token = secrets.token_urlsafe(self.cfg.refresh_token_bytes)
            if not self.store.exists(token):
                return token
            self.log.warning("Refresh token collision", extra={"event": "tokens.collision"})

    # ------------------------------------------------------------------ #
    # Rotation
    # ------------------------------------------------------------------ #

    def refresh_tokens(self, presented_token: str, device: DeviceInfo | None = None) -> TokenBundle:
        """
        Redeem ``presented_token`` exactly once for a new bundle.

        Security
        --------
        - The old token is revoked with reason ``"Replaced by new token"`` and
          points at its successor through ``replaced_by_token``.
        - Roles are re-read from the directory, so a role removed since the
          last issuance is absent from the new access token.
        - When two callers race on the same token the store lets one win; the
          loser gets :class:`TokenRevokedError`.

        :raises TokenInvalidError: Unknown token.
        :raises TokenRevokedError: Token already revoked (or lost the race).
        :raises TokenExpiredError: Token past ``expires_at``.
        :raises UserNotFoundError: Owner no longer exists.
        """
        try:
            bundle, user_id = self._rotate(presented_token, device)
        except (TokenError, UserNotFoundError) as exc:
            reason = exc.kind if isinstance(exc, TokenError) else "user_not_found"
            self.log.warning(
                "Refresh failed",
                extra={"event": "tokens.refresh_failed", "reason": reason},
            )
            raise
        self.log.info("Rotated tokens", extra={"event": "tokens.rotated", "user_id": user_id})
        return bundle

    def _rotate(self, presented_token: str, device: DeviceInfo | None) -> tuple[TokenBundle, str]:
        now = self.now_utc()
        current = self.store.find_by_token(presented_token)
        if current is None:
            raise TokenInvalidError("Unknown refresh token")
        if current.is_revoked:
            raise TokenRevokedError("Refresh token has been revoked")
        if current.expires_at <= now:
            raise TokenExpiredError("Refresh token has expired")

        user = self.users.find_user_by_id(current.user_id)
        if user is None:
            raise UserNotFoundError(current.user_id)

        bundle, replacement = self._mint(user.id, device, now)
        result = self.store.rotate(old_token=presented_token, replacement=replacement, now=now)
        if result is not RotationResult.OK:
            raise _ROTATION_ERRORS[result]()
        return bundle, user.id

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def validate_access_token(self, token: str) -> AccessTokenClaims:
        """Verify an access token without touching the store.

        :raises TokenInvalidError: On any signature, claim or expiry failure.
        """
        return self.signer.validate_access_token(token)

    # ------------------------------------------------------------------ #
    # Revocation
    # ------------------------------------------------------------------ #

    def revoke_refresh_token(self, token: str) -> None:
        """Revoke ``token``; unknown or already revoked tokens are a silent no-op."""
        if self.store.revoke(token, reason=MANUALLY_REVOKED):
            self.log.info("Revoked refresh token", extra={"event": "tokens.revoked"})

    def revoke_all_user_refresh_tokens(self, user_id: str) -> int:
        """Revoke every active refresh token of ``user_id``; returns the number flipped."""
        count = self.store.revoke_for_user(user_id, reason=ALL_TOKENS_REVOKED, now=self.now_utc())
        self.log.info(
            "Revoked all refresh tokens",
            extra={"event": "tokens.revoked_all", "user_id": user_id, "count": count},
        )
        return count

    def revoke_other_user_refresh_tokens(self, user_id: str, keep_jti: str) -> int:
        """
        Revoke every active token of ``user_id`` except the one issued with ``keep_jti``.

        Already revoked tokens keep their original reason.
        """
        count = self.store.revoke_for_user(
            user_id, reason=OTHER_TOKENS_REVOKED, now=self.now_utc(), except_jti=keep_jti
        )
        self.log.info(
            "Revoked other refresh tokens",
            extra={"event": "tokens.revoked_others", "user_id": user_id, "count": count},
        )
        return count

    def revoke_device_session(self, token: str, requesting_user_id: str) -> bool:
        """
        Revoke one device session owned by ``requesting_user_id``.

        :returns: ``True`` only if the token existed, belonged to the caller and
            was still unrevoked. ``False`` means nothing changed.
        """
        revoked = self.store.revoke(token, reason=MANUALLY_REVOKED, owner_id=requesting_user_id)
        if revoked:
            self.log.info(
                "Revoked device session",
                extra={"event": "tokens.revoked", "user_id": requesting_user_id},
            )
        else:
            self.log.info(
                "Device session revoke denied",
                extra={"event": "tokens.device_revoke_denied", "user_id": requesting_user_id},
            )
        return revoked

    # ------------------------------------------------------------------ #
    # Session enumeration
    # ------------------------------------------------------------------ #

    def get_user_device_sessions(
        self, user_id: str, current_jti: str | None = None
    ) -> Iterator[DeviceSession]:
        """
        Yield the user's active sessions, most recently used first.

        ``is_current`` marks the session whose access-token ``jti`` equals
        ``current_jti``. Each call re-reads the store.
        """
        for rec in self.store.find_active_by_user(user_id, now=self.now_utc()):
            yield DeviceSession(
                token=rec.token,
                device_name=rec.device_name,
                user_agent=rec.user_agent,
                ip_address=rec.ip_address,
                platform=rec.platform,
                browser=rec.browser,
                created_at=rec.created_at,
                last_used_at=rec.last_used_at,
                expires_at=rec.expires_at,
                is_current=current_jti is not None and rec.access_token_jti == current_jti,
            )
