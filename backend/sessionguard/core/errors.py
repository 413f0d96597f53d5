"""RFC 7807 problem responses for every error the API can surface.

Handlers registered by :func:`init_app` funnel into :func:`_render`, which
logs once (WARNING for 4xx, ERROR with traceback for 5xx) and answers with
``application/problem+json``. Every problem body carries ``code`` (stable,
snake_case) and ``request_id``.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from sessionguard.core.logger import ensure_request_id

log = logging.getLogger(__name__)

PROBLEM_MIMETYPE = "application/problem+json"


def status_code_name(status: int) -> str:
    """Return the canonical snake_case code for ``status`` (``"error"`` if unknown)."""
    try:
        return HTTPStatus(status).phrase.lower().replace(" ", "_").replace("-", "_")
    except ValueError:
        return "error"


def build_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a Problem Details body for the current request.

    :param status: HTTP status code.
    :param code: Machine-readable error code.
    :param message: Client-safe description, rendered as ``detail``.
    :param details: Optional structured payload (validation messages).
    """
    problem: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path if request else None,
        "code": code,
    }
    if details:
        problem["details"] = details
    problem["request_id"] = ensure_request_id()
    return problem


class APIError(Exception):
    """
    Represent a JSON-serializable API error.

    Parameters
    ----------
    message : str
        Human-readable description presented to clients.
    status_code : int, optional
        HTTP status code to return. Defaults to ``400``.
    code : str, optional
        Machine-readable identifier. Defaults to ``"bad_request"``.
    details : dict[str, Any] | None, optional
        Optional structured payload included in the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        return build_problem(
            status=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details or None,
        )


class BadRequest(APIError):
    def __init__(self, message: str = "Bad request") -> None:
        super().__init__(message, status_code=HTTPStatus.BAD_REQUEST, code="bad_request")


class NotFound(APIError):
    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, status_code=HTTPStatus.NOT_FOUND, code="not_found")


class Unauthorized(APIError):
    """401; ``code`` tells clients whether to refresh or to log in again."""

    def __init__(self, message: str = "Unauthorized", code: str = "unauthorized") -> None:
        super().__init__(message, status_code=HTTPStatus.UNAUTHORIZED, code=code)


class ServiceUnavailable(APIError):
    def __init__(self, message: str = "Service temporarily unavailable") -> None:
        super().__init__(
            message, status_code=HTTPStatus.SERVICE_UNAVAILABLE, code="service_unavailable"
        )


def _respond(problem: dict[str, Any]) -> Response:
    resp = jsonify(problem)
    resp.mimetype = PROBLEM_MIMETYPE
    resp.status_code = int(problem["status"])
    if resp.status_code == HTTPStatus.UNAUTHORIZED:
        resp.headers["WWW-Authenticate"] = "Bearer"
    return resp


def problem_response(err: APIError) -> Response:
    """Render ``err`` directly, for views that must still alter the response (cookies)."""
    return _respond(err.to_problem())


def _render(problem: dict[str, Any], *, exc_info: bool = False) -> Response:
    status = int(problem["status"])
    level = logging.ERROR if status >= 500 else logging.WARNING
    log.log(
        level,
        "%s %s: %s",
        status,
        problem["code"],
        problem["detail"],
        exc_info=exc_info,
        extra={"request_id": problem["request_id"]},
    )
    return _respond(problem)


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Domain ``ServiceError`` instances are translated through
    :meth:`BaseService.translate_exceptions` before rendering; anything not
    recognised ends up as a 500 with the traceback logged.
    """
    from sessionguard.services._shared.base import BaseService
    from sessionguard.services._shared.errors import ServiceError

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        return _render(err.to_problem())

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        translated = BaseService.translate_exceptions(err)
        if not isinstance(translated, APIError):
            raise err
        return _render(translated.to_problem())

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        message = (err.description or HTTPStatus(status).phrase).strip()
        if status == HTTPStatus.NOT_FOUND:
            message = f"Route '{request.path}' not found"
        return _render(build_problem(status=status, code=status_code_name(status), message=message))

    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        return _render(
            build_problem(
                status=HTTPStatus.UNPROCESSABLE_ENTITY,
                code="validation_error",
                message="Validation failed",
                details={"errors": err.messages},
            )
        )

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        problem = build_problem(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="service_unavailable",
            message="Service temporarily unavailable",
        )
        return _render(problem, exc_info=True)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        problem = build_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
        )
        return _render(problem, exc_info=True)
