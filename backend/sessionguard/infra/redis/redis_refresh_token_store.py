# comments in English; reST docstrings
from __future__ import annotations

import functools
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar, cast

import redis  # type: ignore[import-untyped]
from redis.exceptions import ConnectionError as RedisConnectionError  # type: ignore[import-untyped]
from redis.exceptions import TimeoutError as RedisTimeoutError  # type: ignore[import-untyped]

from sessionguard.services._shared.errors import StoreUnavailableError
from sessionguard.services._shared.ports import (
    REPLACED_BY_NEW_TOKEN,
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
)

F = TypeVar("F", bound=Callable[..., Any])

_DATETIME_FIELDS = frozenset({"expires_at", "created_at", "last_used_at"})
_BOOL_FIELDS = frozenset({"is_revoked", "is_current"})
_RECORD_FIELDS = tuple(f.name for f in fields(RefreshTokenRecord))


def _unavailable_on_connection_error(fn: F) -> F:
    """Translate driver connectivity failures into :class:`StoreUnavailableError`."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise StoreUnavailableError() from exc

    return cast(F, wrapper)


def _s(value: Any) -> str:
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


def _encode(record: RefreshTokenRecord) -> dict[str, str]:
    """Flatten a record into a Redis hash mapping (``None`` fields are omitted)."""
    mapping: dict[str, str] = {}
    for name in _RECORD_FIELDS:
        value = getattr(record, name)
        if value is None:
            continue
        if name in _DATETIME_FIELDS:
            mapping[name] = value.astimezone(UTC).isoformat()
        elif name in _BOOL_FIELDS:
            mapping[name] = "1" if value else "0"
        else:
            mapping[name] = str(value)
    return mapping


def _decode(raw: Mapping[Any, Any]) -> RefreshTokenRecord | None:
    h = {_s(k): _s(v) for k, v in raw.items()}
    if "token" not in h or "user_id" not in h:
        return None
    kwargs: dict[str, Any] = {}
    for name in _RECORD_FIELDS:
        if name not in h:
            continue
        if name in _DATETIME_FIELDS:
            kwargs[name] = datetime.fromisoformat(h[name])
        elif name in _BOOL_FIELDS:
            kwargs[name] = h[name] == "1"
        else:
            kwargs[name] = h[name]
    kwargs.setdefault("access_token_jti", None)
    return RefreshTokenRecord(**kwargs)


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh token store with atomic rotation.

    Layout: one hash ``rt:{token}`` per refresh token and one set
    ``rt:u:{user_id}`` indexing a user's tokens. Multi-key writes run as
    WATCH/MULTI/EXEC transactions and are retried on :class:`redis.WatchError`.

    Hashes expire ``retention`` after the token itself does, so a token that
    just expired is still reported as ``EXPIRED`` rather than ``NOT_FOUND``.

    :param r: A Redis client (already connected).
    :param retention: Extra lifetime kept after ``expires_at``.
    """

    r: redis.Redis
    retention: timedelta = timedelta(days=1)

    # -------------------- helpers --------------------

    @staticmethod
    def _k(token: str) -> str:
        return f"rt:{token}"

    @staticmethod
    def _ku(user_id: str) -> str:
        return f"rt:u:{user_id}"

    def _ttl(self, expires_at: datetime, now: datetime) -> int:
        return max(1, int((expires_at - now + self.retention).total_seconds()))

    def _members(self, client: Any, user_id: str) -> list[str]:
        return sorted(_s(m) for m in client.smembers(self._ku(user_id)))

    def _stage_clear_current(self, p: Any, user_id: str, snapshot: Mapping[str, str | None]) -> None:
        """Queue ``is_current=0`` for current tokens and drop index entries whose hash is gone."""
        stale = [t for t, flag in snapshot.items() if flag is None]
        for token, flag in snapshot.items():
            if flag == "1":
                p.hset(self._k(token), "is_current", "0")
        if stale:
            p.srem(self._ku(user_id), *stale)

    def _watch_user(self, p: Any, user_id: str) -> dict[str, str | None]:
        """WATCH the user's index and token hashes; return ``{token: is_current}``."""
        p.watch(self._ku(user_id))
        members = self._members(p, user_id)
        snapshot: dict[str, str | None] = {}
        if members:
            p.watch(*(self._k(t) for t in members))
            for token in members:
                flag, owner = p.hmget(self._k(token), "is_current", "user_id")
                snapshot[token] = None if owner is None else _s(flag or b"0")
        return snapshot

    def _stage_insert(self, p: Any, record: RefreshTokenRecord, now: datetime) -> None:
        key = self._k(record.token)
        p.hset(key, mapping=_encode(record))
        p.expire(key, self._ttl(record.expires_at, now))
        p.sadd(self._ku(record.user_id), record.token)

    # -------------------- reads ------------------------

    @_unavailable_on_connection_error
    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        return _decode(self.r.hgetall(self._k(token)))

    @_unavailable_on_connection_error
    def exists(self, token: str) -> bool:
        return bool(self.r.exists(self._k(token)))

    @_unavailable_on_connection_error
    def find_active_by_user(self, user_id: str, *, now: datetime) -> list[RefreshTokenRecord]:
        members = self._members(self.r, user_id)
        if not members:
            return []
        pipe = self.r.pipeline(transaction=False)
        for token in members:
            pipe.hgetall(self._k(token))
        hashes = pipe.execute()

        active: list[RefreshTokenRecord] = []
        stale: list[str] = []
        for token, raw in zip(members, hashes, strict=True):
            rec = _decode(raw) if raw else None
            if rec is None:
                # Underlying hash expired -> drop it from the user's index
                stale.append(token)
            elif rec.is_active(now):
                active.append(rec)
        if stale:
            self.r.srem(self._ku(user_id), *stale)
        return sorted(active, key=lambda rec: rec.last_used_at, reverse=True)

    def find_active_by_user_except(
        self, user_id: str, jti: str, *, now: datetime
    ) -> list[RefreshTokenRecord]:
        return [r for r in self.find_active_by_user(user_id, now=now) if r.access_token_jti != jti]

    # -------------------- writes -----------------------

    @_unavailable_on_connection_error
    def issue(self, record: RefreshTokenRecord) -> None:
        while True:
            try:
                with self.r.pipeline() as p:
                    snapshot = self._watch_user(p, record.user_id)
                    p.multi()
                    self._stage_clear_current(p, record.user_id, snapshot)
                    self._stage_insert(p, record, record.created_at)
                    p.execute()
                return
            except redis.WatchError:
                # Concurrent modification detected; retry loop
                continue

    @_unavailable_on_connection_error
    def rotate(
        self,
        *,
        old_token: str,
        replacement: RefreshTokenRecord,
        now: datetime,
    ) -> RotationResult:
        """
        Atomically consume ``old_token`` and insert ``replacement``.

        The old hash is WATCHed while it is classified; if another client
        revokes or rotates it before EXEC, the transaction aborts and the
        retry observes the new state.
        """
        k_old = self._k(old_token)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_old)
                    current = _decode(p.hgetall(k_old))
                    if current is None:
                        p.unwatch()
                        return RotationResult.NOT_FOUND
                    if current.is_revoked:
                        p.unwatch()
                        return RotationResult.REVOKED
                    if current.expires_at <= now:
                        p.unwatch()
                        return RotationResult.EXPIRED

                    snapshot = self._watch_user(p, current.user_id)
                    snapshot.pop(old_token, None)

                    p.multi()
                    p.hset(
                        k_old,
                        mapping={
                            "is_revoked": "1",
                            "revoked_reason": REPLACED_BY_NEW_TOKEN,
                            "replaced_by_token": replacement.token,
                            "is_current": "0",
                            "last_used_at": now.astimezone(UTC).isoformat(),
                        },
                    )
                    self._stage_clear_current(p, current.user_id, snapshot)
                    self._stage_insert(p, replacement, now)
                    p.execute()
                return RotationResult.OK
            except redis.WatchError:
                continue

    @_unavailable_on_connection_error
    def revoke(self, token: str, *, reason: str, owner_id: str | None = None) -> bool:
        key = self._k(token)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    owner, revoked = p.hmget(key, "user_id", "is_revoked")
                    if owner is None or _s(revoked or b"0") == "1":
                        p.unwatch()
                        return False
                    if owner_id is not None and _s(owner) != owner_id:
                        p.unwatch()
                        return False
                    p.multi()
                    p.hset(
                        key,
                        mapping={"is_revoked": "1", "revoked_reason": reason, "is_current": "0"},
                    )
                    p.execute()
                return True
            except redis.WatchError:
                continue

    @_unavailable_on_connection_error
    def revoke_for_user(
        self,
        user_id: str,
        *,
        reason: str,
        now: datetime,
        except_jti: str | None = None,
    ) -> int:
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(self._ku(user_id))
                    members = self._members(p, user_id)
                    if not members:
                        p.unwatch()
                        return 0
                    p.watch(*(self._k(t) for t in members))
                    targets: list[str] = []
                    for token in members:
                        rec = _decode(p.hgetall(self._k(token)))
                        if rec is None or not rec.is_active(now):
                            continue
                        if except_jti is not None and rec.access_token_jti == except_jti:
                            continue
                        targets.append(token)

                    if not targets:
                        p.unwatch()
                        return 0
                    p.multi()
                    for token in targets:
                        p.hset(
                            self._k(token),
                            mapping={"is_revoked": "1", "revoked_reason": reason, "is_current": "0"},
                        )
                    p.execute()
                return len(targets)
            except redis.WatchError:
                continue
