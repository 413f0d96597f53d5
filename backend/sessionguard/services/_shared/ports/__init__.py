"""
sessionguard.services._shared.ports
===================================

Collection of *ports* (hexagonal interfaces) that define the contracts
for token management and its collaborators.

These ports decouple the token lifecycle manager from concrete implementations
of access-token signing, refresh-token persistence and identity lookup.

Modules
-------
- :mod:`token_signer`:
    Defines :class:`~.TokenSigner` and :class:`~.AccessTokenClaims`.

- :mod:`refresh_token_store`:
    Defines :class:`~.RefreshTokenStore`, :class:`~.RefreshTokenRecord` and
    :class:`~.RotationResult`, plus the lock-based
    :class:`~.InMemoryRefreshTokenStore`.

- :mod:`user_directory`:
    Defines :class:`~.UserDirectory` and :class:`~.UserIdentity`.

Concrete adapters (SQLAlchemy, Redis, Flask-JWT-Extended) live under
``sessionguard.infra``.
"""

from __future__ import annotations

from .refresh_token_store import (
    REPLACED_BY_NEW_TOKEN,
    InMemoryRefreshTokenStore,
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
)
from .token_signer import AccessTokenClaims, TokenSigner
from .user_directory import InMemoryUserDirectory, UserDirectory, UserIdentity

__all__ = [
    "AccessTokenClaims",
    "TokenSigner",
    "REPLACED_BY_NEW_TOKEN",
    "RefreshTokenRecord",
    "RefreshTokenStore",
    "RotationResult",
    "InMemoryRefreshTokenStore",
    "UserDirectory",
    "UserIdentity",
    "InMemoryUserDirectory",
]
