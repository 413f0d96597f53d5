"""Logging setup: one stdout handler, records stamped with the request id.

Every record leaving the process carries ``request_id`` so that a refresh
failure logged by the token manager can be tied to the HTTP exchange that
caused it. Structured extras (``extra={"event": ...}``) listed in
:data:`EXTRA_KEYS` are copied into the JSON payload; anything else stays out.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = (REQUEST_ID_HEADER, "X-Correlation-ID")

EXTRA_KEYS = ("event", "user_id", "reason", "count", "jti", "endpoint", "elapsed_ms")

# Extras that may hold credentials; masked even if a caller passes them.
REDACTED_KEYS = frozenset({"token", "refresh_token", "access_token", "password"})

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.now(UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update({key: getattr(record, key) for key in EXTRA_KEYS if hasattr(record, key)})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp ``request_id`` on the record and mask credential-like extras."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = ensure_request_id() if has_request_context() else None
        for key in REDACTED_KEYS.intersection(record.__dict__):
            setattr(record, key, "***")
        return True


def _incoming_request_id() -> str | None:
    for header in CORRELATION_HEADERS:
        value = request.headers.get(header, "").strip()
        if value:
            return value
    return None


def ensure_request_id() -> str:
    """Return the id of the current request, assigning one on first use.

    Outside a request every call yields a fresh UUID4, which is what CLI
    commands and background callers get in their service context.
    """
    if not has_request_context():
        return str(uuid4())
    rid = g.get("request_id")
    if rid is None:
        rid = _incoming_request_id() or str(uuid4())
        g.request_id = rid
    return rid


def configure_logging(level: str | int = "INFO", fmt: str = "json") -> None:
    """Replace the root handlers with a single stdout handler.

    :param level: Level name or number for the root logger.
    :param fmt: ``"json"`` (default) or ``"text"`` for a human-readable line.
    """
    handler = logging.StreamHandler(sys.stdout)
    if str(fmt).lower() == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    root.setLevel(level if isinstance(level, int) else logging.INFO)


def init_app(app: Flask) -> None:
    """Assign a request id per request and echo it in ``X-Request-ID``."""
    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _assign_request_id() -> None:
        g.pop("request_id", None)
        ensure_request_id()

    @app.after_request
    def _echo_request_id(response):
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["JSONFormatter", "RequestIdFilter", "configure_logging", "ensure_request_id", "init_app"]
