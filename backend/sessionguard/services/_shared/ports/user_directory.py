from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class UserIdentity:
    """
    Minimal, non-secret view of a user as seen by the token lifecycle.

    :ivar id: Opaque user id, used as JWT ``sub`` and refresh-token owner.
    :ivar email: Login email.
    :ivar username: Login username.
    """

    id: str
    email: str
    username: str


class UserDirectory(Protocol):
    """
    Identity and role collaborator.

    ``get_roles_for_user`` is authoritative at call time; callers must not
    cache its result across token issuances.
    """

    def find_user_by_id(self, user_id: str) -> UserIdentity | None: ...

    def get_roles_for_user(self, user_id: str) -> frozenset[str]: ...

    def authenticate(self, login_identifier: str, password: str) -> UserIdentity | None: ...


class InMemoryUserDirectory(UserDirectory):
    """Dictionary-backed directory for unit tests and the in-memory profile."""

    def __init__(self) -> None:
        self._users: dict[str, UserIdentity] = {}
        self._passwords: dict[str, str] = {}
        self._roles: dict[str, frozenset[str]] = {}
        self._lock = threading.Lock()

    def add(
        self,
        user: UserIdentity,
        *,
        password: str = "",
        roles: Iterable[str] = (),
    ) -> UserIdentity:
        with self._lock:
            self._users[user.id] = user
            self._passwords[user.id] = password
            self._roles[user.id] = frozenset(roles)
        return user

    def remove(self, user_id: str) -> None:
        with self._lock:
            self._users.pop(user_id, None)
            self._passwords.pop(user_id, None)
            self._roles.pop(user_id, None)

    def set_roles(self, user_id: str, roles: Iterable[str]) -> None:
        with self._lock:
            self._roles[user_id] = frozenset(roles)

    def find_user_by_id(self, user_id: str) -> UserIdentity | None:
        return self._users.get(user_id)

    def get_roles_for_user(self, user_id: str) -> frozenset[str]:
        return self._roles.get(user_id, frozenset())

    def authenticate(self, login_identifier: str, password: str) -> UserIdentity | None:
        ident = login_identifier.strip().lower()
        for user in list(self._users.values()):
            if ident in (user.email.lower(), user.username.lower()):
                if password and self._passwords.get(user.id) == password:
                    return user
                return None
        return None
