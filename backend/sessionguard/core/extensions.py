"""Extension singletons (database, migrations, JWT, Redis) and their wiring."""

from __future__ import annotations

import redis  # type: ignore[import-untyped]
from flask import Flask
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

# Deterministic constraint names keep Alembic autogenerate diffs stable.
metadata = MetaData(
    naming_convention={
        "ix": "ix_%(table_name)s_%(column_0_name)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()
redis_client: redis.Redis | None = None


def init_app(app: Flask) -> None:
    """Bind SQLAlchemy, Flask-Migrate and Flask-JWT-Extended, then Redis.

    Importing :mod:`sessionguard.models` here registers every table on
    ``metadata`` before migrations inspect it.
    """
    db.init_app(app)

    from sessionguard import models as _models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)
    init_redis(app)


def init_redis(app: Flask) -> None:
    """Connect the module-level Redis client when ``REDIS_URL`` is set.

    :raises RuntimeError: When the server does not answer ``PING``, or when
        ``REFRESH_TOKEN_STORE`` is ``redis`` but no URL is configured.
    """
    global redis_client
    url = app.config.get("REDIS_URL")
    if not url:
        redis_client = None
        app.extensions.pop("redis_client", None)
        if str(app.config.get("REFRESH_TOKEN_STORE", "")).lower() == "redis":
            raise RuntimeError("REFRESH_TOKEN_STORE=redis requires REDIS_URL")
        return

    timeout = app.config.get("REDIS_SOCKET_TIMEOUT")
    client = redis.Redis.from_url(
        url,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
        health_check_interval=30,
    )
    try:
        client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {url!r}") from exc
    redis_client = client
    app.extensions["redis_client"] = client


def get_redis() -> redis.Redis:
    """Return the connected Redis client.

    :raises RuntimeError: If :func:`init_redis` did not connect one.
    """
    if redis_client is None:
        raise RuntimeError("Redis client is not initialized; set REDIS_URL.")
    return redis_client
