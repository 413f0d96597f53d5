from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, auto
from typing import Protocol

REPLACED_BY_NEW_TOKEN = "Replaced by new token"


class RotationResult(Enum):
    """Outcome of an atomic refresh rotation attempt."""

    OK = auto()
    NOT_FOUND = auto()
    REVOKED = auto()
    EXPIRED = auto()


@dataclass(frozen=True, slots=True)
class RefreshTokenRecord:
    """
    Storage-neutral snapshot of one refresh token.

    :ivar token: Opaque URL-safe secret, unique across all records ever created.
    :ivar user_id: Owner user id.
    :ivar access_token_jti: ``jti`` of the access token issued alongside.
    :ivar expires_at: Absolute expiration (UTC).
    :ivar created_at: Issuance time (UTC).
    :ivar last_used_at: Last issuance/rotation touch (UTC).
    :ivar is_revoked: Monotonic revocation flag.
    :ivar revoked_reason: Reason written together with the first revocation.
    :ivar replaced_by_token: Successor token, set only by rotation.
    :ivar is_current: Most recently issued token across the user's devices.
    """

    token: str
    user_id: str
    access_token_jti: str | None
    expires_at: datetime
    created_at: datetime
    last_used_at: datetime
    is_revoked: bool = False
    revoked_reason: str | None = None
    replaced_by_token: str | None = None
    is_current: bool = False
    device_name: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    platform: str | None = None
    browser: str | None = None

    def is_active(self, now: datetime) -> bool:
        return not self.is_revoked and self.expires_at > now


class RefreshTokenStore(Protocol):
    """
    Persistence contract for refresh tokens.

    Every state transition is a conditional write: ``is_revoked`` only ever
    goes ``False -> True`` and ``revoked_reason`` / ``replaced_by_token`` are
    written only together with that flip. ``rotate`` MUST be atomic so that
    exactly one of several concurrent callers presenting the same token wins.
    """

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        """Fetch a single record (revoked and expired ones included)."""

    def exists(self, token: str) -> bool:
        """Return ``True`` if ``token`` was ever stored."""

    def find_active_by_user(self, user_id: str, *, now: datetime) -> list[RefreshTokenRecord]:
        """Unrevoked, unexpired records of ``user_id``, newest ``last_used_at`` first."""

    def find_active_by_user_except(
        self, user_id: str, jti: str, *, now: datetime
    ) -> list[RefreshTokenRecord]:
        """Like :meth:`find_active_by_user`, minus the record holding ``jti``."""

    def issue(self, record: RefreshTokenRecord) -> None:
        """
        Clear ``is_current`` on the owner's records and insert ``record``.

        Both writes happen in one consistency boundary.
        """

    def rotate(
        self,
        *,
        old_token: str,
        replacement: RefreshTokenRecord,
        now: datetime,
    ) -> RotationResult:
        """
        Atomically consume ``old_token`` and insert ``replacement``.

        :returns: ``RotationResult.OK`` on success, otherwise the specific failure.
        """

    def revoke(self, token: str, *, reason: str, owner_id: str | None = None) -> bool:
        """Revoke one record. :returns: ``True`` only if this call flipped it."""

    def revoke_for_user(
        self,
        user_id: str,
        *,
        reason: str,
        now: datetime,
        except_jti: str | None = None,
    ) -> int:
        """
        Revoke every active record of ``user_id``.

        :param except_jti: Keep the record issued with this access-token ``jti``.
        :returns: Number of records flipped.
        """


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh token store with atomic rotation behavior.

    .. note::
       A single lock serializes writers, which gives the same single-winner
       guarantee as a conditional ``UPDATE``.
    """

    def __init__(self) -> None:
        self._by_token: dict[str, RefreshTokenRecord] = {}
        self._by_user: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    def _user_records(self, user_id: str) -> list[RefreshTokenRecord]:
        return [self._by_token[t] for t in self._by_user.get(user_id, set())]

    def _insert(self, record: RefreshTokenRecord) -> None:
        if record.token in self._by_token:
            raise ValueError("Refresh token already stored.")
        for rec in self._user_records(record.user_id):
            if rec.is_current:
                self._by_token[rec.token] = replace(rec, is_current=False)
        self._by_token[record.token] = record
        self._by_user.setdefault(record.user_id, set()).add(record.token)

    @staticmethod
    def _revoked(rec: RefreshTokenRecord, reason: str) -> RefreshTokenRecord:
        return replace(rec, is_revoked=True, revoked_reason=reason, is_current=False)

    # -------------------------- reads ---------------------------

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        return self._by_token.get(token)

    def exists(self, token: str) -> bool:
        return token in self._by_token

    def find_active_by_user(self, user_id: str, *, now: datetime) -> list[RefreshTokenRecord]:
        with self._lock:
            active = [r for r in self._user_records(user_id) if r.is_active(now)]
        return sorted(active, key=lambda r: r.last_used_at, reverse=True)

    def find_active_by_user_except(
        self, user_id: str, jti: str, *, now: datetime
    ) -> list[RefreshTokenRecord]:
        return [r for r in self.find_active_by_user(user_id, now=now) if r.access_token_jti != jti]

    # -------------------------- writes --------------------------

    def issue(self, record: RefreshTokenRecord) -> None:
        with self._lock:
            self._insert(record)

    def rotate(
        self,
        *,
        old_token: str,
        replacement: RefreshTokenRecord,
        now: datetime,
    ) -> RotationResult:
        with self._lock:
            rec = self._by_token.get(old_token)
            if rec is None:
                return RotationResult.NOT_FOUND
            if rec.is_revoked:
                return RotationResult.REVOKED
            if rec.expires_at <= now:
                return RotationResult.EXPIRED
            if replacement.token in self._by_token:
                raise ValueError("Refresh token already stored.")

            self._by_token[old_token] = replace(
                self._revoked(rec, REPLACED_BY_NEW_TOKEN),
                replaced_by_token=replacement.token,
                last_used_at=now,
            )
            self._insert(replacement)
            return RotationResult.OK

    def revoke(self, token: str, *, reason: str, owner_id: str | None = None) -> bool:
        with self._lock:
            rec = self._by_token.get(token)
            if rec is None or rec.is_revoked:
                return False
            if owner_id is not None and rec.user_id != owner_id:
                return False
            self._by_token[token] = self._revoked(rec, reason)
            return True

    def revoke_for_user(
        self,
        user_id: str,
        *,
        reason: str,
        now: datetime,
        except_jti: str | None = None,
    ) -> int:
        count = 0
        with self._lock:
            for rec in self._user_records(user_id):
                if not rec.is_active(now):
                    continue
                if except_jti is not None and rec.access_token_jti == except_jti:
                    continue
                self._by_token[rec.token] = self._revoked(rec, reason)
                count += 1
        return count
