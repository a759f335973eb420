# Overview: Translation of service exceptions into JSON error responses.

"""
Every API error body is {"error": message, "code": class}.

    validation_error   400
    auth_error         401
    permission_denied  403
    not_found          404
    conflict           409
    server_error       500
"""

from flask import jsonify, current_app

from .extensions import db
from .validation import ValidationError, NotFoundError, ConflictError
from .services.permission_service import PermissionDeniedError
from .services.auth_service import AuthError, PasswordValidationError


# Order matters: subclasses of ValueError must be matched before it
_STATUS_BY_ERROR = (
    (PermissionDeniedError, 403, "permission_denied"),
    (AuthError, 401, "auth_error"),
    (NotFoundError, 404, "not_found"),
    (ConflictError, 409, "conflict"),
    (ValidationError, 400, "validation_error"),
    (PasswordValidationError, 400, "validation_error"),
)

SERVICE_ERRORS = tuple(cls for cls, _, _ in _STATUS_BY_ERROR)


def json_error(message: str, status: int, code: str):
    return jsonify({"error": message, "code": code}), status


def error_response(exc: Exception):
    """Roll back the request's transaction and describe a known service error."""
    db.session.rollback()
    for cls, status, code in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return json_error(str(exc), status, code)
    raise exc


def server_error(message: str):
    """Call from inside an except block; logs the active exception."""
    db.session.rollback()
    current_app.logger.exception(message)
    return json_error("Internal server error", 500, "server_error")
