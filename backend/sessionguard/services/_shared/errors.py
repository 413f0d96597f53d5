"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and must never import or depend
on Flask, HTTP, or SQLAlchemy. They are the stable contract between the token
lifecycle manager, its store adapters, and the delivery layer.

The translation to HTTP responses (RFC 7807) is handled by
``sessionguard/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from store adapters or domain logic.
    - The API layer translates them to ``APIError`` through ``BaseService``.
    """

    pass


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"


class UserNotFoundError(NotFoundError):
    """The owner of a refresh token no longer exists in the identity store."""

    def __init__(self, user_id: str) -> None:
        super().__init__("User", user_id)


# --------------------------------------------------------------------------- #
# Token failures
# --------------------------------------------------------------------------- #


class TokenError(ServiceError):
    """
    Base class for credential failures.

    ``kind`` is a stable, log-friendly discriminator. Callers that must not
    leak which case applied (the refresh endpoint) catch ``TokenError`` as a
    whole and log ``kind`` internally.
    """

    kind = "invalid"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or f"Token {self.kind}")


class TokenInvalidError(TokenError):
    """Unknown, malformed or wrongly signed token."""

    kind = "invalid"


class TokenExpiredError(TokenError):
    """Refresh token whose ``expires_at`` is not in the future."""

    kind = "expired"


class TokenRevokedError(TokenError):
    """Refresh token that was already revoked (including by a concurrent rotation)."""

    kind = "revoked"


# --------------------------------------------------------------------------- #
# Infrastructure
# --------------------------------------------------------------------------- #


class StoreUnavailableError(ServiceError):
    """
    The refresh-token store could not be reached.

    Adapters raise this from driver-level connectivity errors so the service
    layer stays independent of the storage technology.
    """

    def __init__(self, message: str = "Refresh token store unavailable") -> None:
        super().__init__(message)
