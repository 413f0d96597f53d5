"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import timedelta
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Load .env in development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing.
    JWT_SECRET_KEY: str
        HMAC secret used by ``flask-jwt-extended`` to sign access tokens. It is
        read once at startup and never rotated while the process runs.
    JWT_ALGORITHM: str
        Signing algorithm. Decoding accepts this algorithm only.
    JWT_ENCODE_ISSUER / JWT_DECODE_ISSUER: str
        ``iss`` claim written on issuance and required on validation.
    JWT_ENCODE_AUDIENCE / JWT_DECODE_AUDIENCE: str
        ``aud`` claim written on issuance and required on validation.
    JWT_DECODE_LEEWAY: int
        Clock-skew tolerance in seconds; ``0`` so an access token expired by
        one second is rejected.
    JWT_ACCESS_TOKEN_EXPIRES: timedelta
        Access-token lifetime.
    REFRESH_TOKEN_EXPIRES: timedelta
        Refresh-token lifetime.
    REFRESH_TOKEN_BYTES: int
        Random bytes per opaque refresh token (URL-safe base64 encoded).
    REFRESH_TOKEN_STORE: str
        Store adapter: ``"sqlalchemy"``, ``"redis"`` or ``"memory"``.
    REFRESH_COOKIE_NAME / REFRESH_COOKIE_SECURE / REFRESH_COOKIE_SAMESITE: str | bool
        Transport settings for the HTTP-only refresh cookie.
    REMEMBER_ME_DAYS: int
        Persistent cookie lifetime when the client asks to be remembered.
    REDIS_URL: str | None
        Redis connection string; required when ``REFRESH_TOKEN_STORE="redis"``.
    REDIS_SOCKET_TIMEOUT: float
        Socket timeout (seconds) applied to every Redis round trip.
    REDIS_REFRESH_RETENTION: timedelta
        Extra time refresh-token hashes stay in Redis after expiry, so an
        expired token is reported as expired rather than unknown. Set in
        whole days through ``REDIS_REFRESH_RETENTION_DAYS`` (default 1).
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    LOG_FORMAT: str
        ``"json"`` (default) for one JSON object per line, ``"text"`` for
        plain lines in a terminal.
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_DECODE_ALGORITHMS = [JWT_ALGORITHM]
    JWT_ENCODE_ISSUER = os.getenv("JWT_ISSUER", "sessionguard")
    JWT_DECODE_ISSUER = JWT_ENCODE_ISSUER
    JWT_ENCODE_AUDIENCE = os.getenv("JWT_AUDIENCE", "sessionguard-clients")
    JWT_DECODE_AUDIENCE = JWT_ENCODE_AUDIENCE
    JWT_DECODE_LEEWAY = 0
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=env_int("JWT_ACCESS_MINUTES", 15))

    # Refresh tokens
    REFRESH_TOKEN_EXPIRES = timedelta(days=env_int("REFRESH_TOKEN_DAYS", 7))
    REFRESH_TOKEN_BYTES = env_int("REFRESH_TOKEN_BYTES", 64)
    REFRESH_TOKEN_STORE = os.getenv("REFRESH_TOKEN_STORE", "sqlalchemy")
    REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "session")
    REFRESH_COOKIE_SECURE = env_bool("REFRESH_COOKIE_SECURE", True)
    REFRESH_COOKIE_SAMESITE = os.getenv("REFRESH_COOKIE_SAMESITE", "Strict")
    REMEMBER_ME_DAYS = env_int("REMEMBER_ME_DAYS", 30)

    # Redis
    REDIS_URL = os.getenv("REDIS_URL")
    REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))
    REDIS_REFRESH_RETENTION = timedelta(days=env_int("REDIS_REFRESH_RETENTION_DAYS", 1))

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_timeout": env_int("DB_POOL_TIMEOUT", 10),
    }

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and allows the refresh cookie over plain
    HTTP unless ``REFRESH_COOKIE_SECURE`` says otherwise.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    REFRESH_COOKIE_SECURE = env_bool("REFRESH_COOKIE_SECURE", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = "testing-secret-key-with-enough-entropy-for-hs256"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS: dict[str, object] = {}
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled while relying on WSGI-level log
    configuration for noise control.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
