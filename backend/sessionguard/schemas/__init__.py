"""Marshmallow schemas exposed for the HTTP layer."""

from __future__ import annotations

from .auth import (
    DeviceSessionSchema,
    LoginSchema,
    RevokeDeviceSchema,
    TokenResponseSchema,
    WhoAmISchema,
)

__all__ = [
    "LoginSchema",
    "TokenResponseSchema",
    "DeviceSessionSchema",
    "RevokeDeviceSchema",
    "WhoAmISchema",
]
