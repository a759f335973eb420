# Overview: Request authentication and role decorators for API routes.

from functools import wraps

from flask import request, g

from .services import session_service
from .errors import json_error


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user and g.session_token. Returns 401 when the header is
    missing, or the token is unknown, expired, revoked, or belongs to a
    deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return json_error("Authentication required", 401, "auth_error")

        user = session_service.validate_session(token)
        if not user:
            return json_error("Invalid or expired token", 401, "auth_error")

        g.current_user = user
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require one of the given roles. Must be stacked under @require_auth."""
    allowed = {r.lower() for r in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return json_error("Authentication required", 401, "auth_error")
            if (user.role or "").lower() not in allowed:
                return json_error(
                    f"Requires role: {', '.join(sorted(allowed))}",
                    403,
                    "permission_denied",
                )
            return f(*args, **kwargs)

        return decorated_function
    return decorator
