# sessionguard/services/_shared/base.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sessionguard.core import errors as api_errors
from sessionguard.services._shared.errors import (
    NotFoundError,
    ServiceError,
    StoreUnavailableError,
    TokenError,
)


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data (auth, request ids, etc.).

    :param actor_id: Authenticated user identifier (JWT ``sub``).
    :param request_id: Correlation id for logging/tracing.
    """

    actor_id: str | None = None
    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Centralize error translation and logging.
    * Provide a single clock source so tests can freeze time.
    * Keep services thin, orchestration-only, no web/ORM leakage.

    Notes
    -----
    Services never open database sessions themselves; persistence is reached
    through injected ports whose adapters own their transactions.
    """

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        """
        Initialize the base service.

        :param ctx: Optional request-scoped context (auth, tracing).
        :type ctx: ServiceContext | None
        """
        self.ctx = ctx or ServiceContext()
        self.log = logging.getLogger(type(self).__module__)

    # -------------------------- Clock ---------------------------------------

    @staticmethod
    def now_utc() -> datetime:
        """Return the current timezone-aware UTC time."""
        return datetime.now(UTC)

    # -------------------------- Error handling ------------------------------

    @staticmethod
    def translate_exceptions(exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, TokenError):
            # → 401 Unauthorized
            return api_errors.Unauthorized(str(exc), code=f"token_{exc.kind}")

        if isinstance(exc, NotFoundError):
            # → 404 Not Found
            return api_errors.NotFound(str(exc))

        if isinstance(exc, StoreUnavailableError):
            # → 503 Service Unavailable
            return api_errors.ServiceUnavailable(str(exc))

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(
                message=str(exc),
                status_code=400,
                code="bad_request",
            )

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
