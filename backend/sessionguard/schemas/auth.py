"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class LoginSchema(Schema):
    """Input payload for authenticating a user by email or username."""

    login_identifier = fields.String(required=True, validate=validate.Length(min=1, max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    remember_me = fields.Boolean(load_default=False)


class TokenResponseSchema(Schema):
    """Response payload containing an access token (the refresh token travels in a cookie)."""

    access_token = fields.String(required=True)
    expires_at = fields.AwareDateTime(required=True, format="iso", default_timezone=None)
    token_type = fields.String(load_default="Bearer")


class DeviceSessionSchema(Schema):
    """One active device session of the authenticated user."""

    token = fields.String(required=True)
    device_name = fields.String(allow_none=True)
    user_agent = fields.String(allow_none=True)
    ip_address = fields.String(allow_none=True)
    platform = fields.String(allow_none=True)
    browser = fields.String(allow_none=True)
    created_at = fields.AwareDateTime(format="iso")
    last_used_at = fields.AwareDateTime(format="iso")
    expires_at = fields.AwareDateTime(format="iso")
    is_current = fields.Boolean(required=True)


class RevokeDeviceSchema(Schema):
    """Input payload naming the device session to revoke."""

    refresh_token = fields.String(required=True, validate=validate.Length(min=1, max=200))


class WhoAmISchema(Schema):
    """Response payload exposing the verified access-token claims."""

    sub = fields.String(required=True, attribute="subject")
    jti = fields.String(required=True)
    roles = fields.List(fields.String(), required=True)
    expires_at = fields.AwareDateTime(format="iso")
