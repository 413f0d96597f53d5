"""Authentication and session-management endpoints."""

from __future__ import annotations

from flask import Blueprint, request

from sessionguard.api.deps import (
    clear_refresh_cookie,
    current_claims,
    get_token_manager,
    json_response,
    refresh_cookie_value,
    require_auth,
    resolve_device,
    set_refresh_cookie,
    timing,
)
from sessionguard.core.errors import BadRequest, Unauthorized, problem_response
from sessionguard.schemas import (
    DeviceSessionSchema,
    LoginSchema,
    RevokeDeviceSchema,
    TokenResponseSchema,
    WhoAmISchema,
)
from sessionguard.services._shared.errors import TokenError, UserNotFoundError

bp = Blueprint("auth", __name__, url_prefix="/auth")

login_schema = LoginSchema()
token_schema = TokenResponseSchema()
device_sessions_schema = DeviceSessionSchema(many=True)
revoke_device_schema = RevokeDeviceSchema()
whoami_schema = WhoAmISchema()


@bp.post("/login")
@timing
def login():
    """Authenticate credentials, issue tokens and set the refresh cookie."""
    data = login_schema.load(request.get_json(silent=True) or {})
    manager = get_token_manager()
    user = manager.users.authenticate(data["login_identifier"], data["password"])
    if user is None:
        raise Unauthorized("Invalid credentials", code="invalid_credentials")

    bundle = manager.generate_tokens(user, resolve_device())
    response = json_response({"data": token_schema.dump(bundle)})
    set_refresh_cookie(response, bundle.refresh_token, remember_me=data["remember_me"])
    return response


@bp.post("/refresh")
@timing
def refresh():
    """Rotate the refresh cookie into a new token pair.

    Any failure answers 401 ``refresh_failed`` and clears the cookie so the
    client stops presenting a dead credential.
    """
    presented = refresh_cookie_value()
    if presented is None:
        return _refresh_failed()
    try:
        bundle = get_token_manager().refresh_tokens(presented, resolve_device())
    except (TokenError, UserNotFoundError):
        return _refresh_failed()

    response = json_response({"data": token_schema.dump(bundle)})
    set_refresh_cookie(response, bundle.refresh_token)
    return response


def _refresh_failed():
    response = problem_response(Unauthorized("Refresh failed", code="refresh_failed"))
    clear_refresh_cookie(response)
    return response


@bp.post("/logout")
@require_auth
@timing
def logout():
    """Revoke the presented refresh cookie (if any) and clear it."""
    presented = refresh_cookie_value()
    if presented is not None:
        get_token_manager().revoke_refresh_token(presented)
    response = json_response({"message": "Logged out successfully"})
    clear_refresh_cookie(response)
    return response


@bp.post("/revoke-all")
@require_auth
@timing
def revoke_all():
    """Sign the caller out everywhere, including this session."""
    count = get_token_manager().revoke_all_user_refresh_tokens(current_claims().subject)
    response = json_response({"message": "All sessions revoked", "count": count})
    clear_refresh_cookie(response)
    return response


@bp.post("/revoke-others")
@require_auth
@timing
def revoke_others():
    """Revoke every session of the caller except the one making this request."""
    claims = current_claims()
    count = get_token_manager().revoke_other_user_refresh_tokens(claims.subject, claims.jti)
    return json_response({"message": "Other sessions revoked", "count": count})


@bp.get("/devices")
@require_auth
@timing
def devices():
    """List the caller's active device sessions, newest activity first."""
    claims = current_claims()
    sessions = list(
        get_token_manager().get_user_device_sessions(claims.subject, current_jti=claims.jti)
    )
    return json_response({"data": device_sessions_schema.dump(sessions)})


@bp.post("/devices/revoke")
@require_auth
@timing
def revoke_device():
    """Revoke one of the caller's own device sessions."""
    data = revoke_device_schema.load(request.get_json(silent=True) or {})
    revoked = get_token_manager().revoke_device_session(
        data["refresh_token"], current_claims().subject
    )
    if not revoked:
        raise BadRequest("Device session not found or already revoked.")
    return json_response({"message": "Device session revoked"})


@bp.get("/whoami")
@require_auth
@timing
def whoami():
    """Return the verified access-token claims."""
    return json_response({"data": whoami_schema.dump(current_claims())})
