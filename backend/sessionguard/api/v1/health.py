"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from sessionguard.api.deps import json_response, timing
from sessionguard.core import extensions

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Report database and (when configured) Redis reachability."""
    payload = {"status": "ok", "db": "ok", "store": current_app.config["REFRESH_TOKEN_STORE"]}
    try:
        extensions.db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        current_app.logger.exception("healthcheck.db_error")
        payload["db"] = "fail"
    client = extensions.redis_client
    if client is not None:
        try:
            client.ping()
            payload["redis"] = "ok"
        except RedisError:
            current_app.logger.exception("healthcheck.redis_error")
            payload["redis"] = "fail"
    return json_response(payload)
