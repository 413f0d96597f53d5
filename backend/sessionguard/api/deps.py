"""Shared API helpers: service wiring, bearer authentication and refresh cookies."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any, TypeVar, cast

from flask import Flask, Response, current_app, g, jsonify, request

from sessionguard.core.errors import Unauthorized
from sessionguard.core.extensions import get_redis
from sessionguard.core.logger import ensure_request_id
from sessionguard.infra.jwt.flask_jwt_token_signer import JWTTokenSigner
from sessionguard.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from sessionguard.infra.sqlalchemy.refresh_token_store import SQLAlchemyRefreshTokenStore
from sessionguard.infra.sqlalchemy.user_directory import SQLAlchemyUserDirectory
from sessionguard.services import (
    AuthTokenConfig,
    DeviceInfo,
    DeviceInfoResolver,
    ServiceContext,
    TokenLifecycleManager,
)
from sessionguard.services._shared.errors import TokenError
from sessionguard.services._shared.ports import (
    AccessTokenClaims,
    InMemoryRefreshTokenStore,
    RefreshTokenStore,
)

F = TypeVar("F", bound=Callable[..., Any])

_MEMORY_STORE_KEY = "sessionguard.refresh_token_store"


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def get_refresh_token_store(app: Flask | None = None) -> RefreshTokenStore:
    """Return the refresh token store selected by ``REFRESH_TOKEN_STORE``.

    ``memory`` keeps one store per application in ``app.extensions`` so every
    request sees the same state.

    :raises RuntimeError: For an unknown store name, or ``redis`` without a client.
    """
    app = app or current_app
    kind = str(app.config.get("REFRESH_TOKEN_STORE", "sqlalchemy")).strip().lower()
    if kind == "sqlalchemy":
        return SQLAlchemyRefreshTokenStore()
    if kind == "redis":
        return RedisRefreshTokenStore(
            r=get_redis(), retention=app.config["REDIS_REFRESH_RETENTION"]
        )
    if kind == "memory":
        store = app.extensions.setdefault(_MEMORY_STORE_KEY, InMemoryRefreshTokenStore())
        return cast(RefreshTokenStore, store)
    raise RuntimeError(f"Unknown REFRESH_TOKEN_STORE {kind!r}")


def build_token_manager(app: Flask | None = None) -> TokenLifecycleManager:
    """Assemble a :class:`TokenLifecycleManager` from application config."""
    app = app or current_app
    cfg = app.config
    return TokenLifecycleManager(
        signer=JWTTokenSigner(),
        store=get_refresh_token_store(app),
        users=SQLAlchemyUserDirectory(),
        token_cfg=AuthTokenConfig(
            access_expires=cfg["JWT_ACCESS_TOKEN_EXPIRES"],
            refresh_expires=cfg["REFRESH_TOKEN_EXPIRES"],
            refresh_token_bytes=int(cfg["REFRESH_TOKEN_BYTES"]),
        ),
        ctx=ServiceContext(request_id=ensure_request_id()),
    )


def get_token_manager() -> TokenLifecycleManager:
    """Return a token manager for the current request."""
    return build_token_manager()


def resolve_device() -> DeviceInfo:
    """Describe the client behind the current request."""
    return DeviceInfoResolver().resolve(request.headers, request.remote_addr)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def bearer_token() -> str | None:
    """Extract the bearer credential from the ``Authorization`` header."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def current_claims() -> AccessTokenClaims:
    """Return the claims verified by :func:`require_auth` for this request."""
    return cast(AccessTokenClaims, g.access_claims)


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token.

    Validation is stateless: signature, issuer, audience, lifetime and type.
    The verified claims are stored on ``g.access_claims``.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = bearer_token()
        if token is None:
            raise Unauthorized("Missing bearer token", code="missing_token")
        try:
            g.access_claims = get_token_manager().validate_access_token(token)
        except TokenError as exc:
            raise Unauthorized("Invalid or expired access token", code="invalid_token") from exc
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Refresh cookie
# ---------------------------------------------------------------------------


def refresh_cookie_value() -> str | None:
    return request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"]) or None


def set_refresh_cookie(response: Response, token: str, *, remember_me: bool = False) -> None:
    """Attach the refresh token as an HTTP-only cookie.

    Without ``remember_me`` the cookie lives for the browser session; with it
    the cookie persists for ``REMEMBER_ME_DAYS``.
    """
    cfg = current_app.config
    max_age = int(timedelta(days=cfg["REMEMBER_ME_DAYS"]).total_seconds()) if remember_me else None
    response.set_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        token,
        max_age=max_age,
        path="/",
        secure=bool(cfg["REFRESH_COOKIE_SECURE"]),
        httponly=True,
        samesite=cfg["REFRESH_COOKIE_SAMESITE"],
    )


def clear_refresh_cookie(response: Response) -> None:
    cfg = current_app.config
    response.delete_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        path="/",
        secure=bool(cfg["REFRESH_COOKIE_SECURE"]),
        httponly=True,
        samesite=cfg["REFRESH_COOKIE_SAMESITE"],
    )


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""
    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            current_app.logger.debug(
                "request.elapsed",
                extra={
                    "endpoint": getattr(request, "endpoint", None),
                    "elapsed_ms": round(elapsed_ms, 2),
                },
            )

    return wrapper  # type: ignore[return-value]
