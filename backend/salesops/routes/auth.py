# Overview: Flask API routes for login, logout and account management; returns JSON responses.

# backend/salesops/routes/auth.py
"""
Authentication API routes

- Token-based sessions; the token goes in the Authorization header
- Self-registration is disabled; admins create accounts
"""

from flask import Blueprint, request, jsonify, g

from ..services import auth_service, session_service
from ..decorators import require_auth, require_role
from ..errors import SERVICE_ERRORS, error_response, server_error, json_error


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body:
    {
        "username": "office1",
        "password": "..."
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return json_error("username and password required", 400, "validation_error")

        user = auth_service.authenticate(username, password)
        session, token = session_service.create_session(user.id)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": session.to_dict()["expires_at"],
        }), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Login failed")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.post("/users")
@require_auth
@require_role("admin")
def create_user_route():
    """
    Create a back-office account (admin only).

    Request body:
    {
        "username": "clerk2",
        "password": "...",
        "role": "clerk"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            username=data.get("username"),
            password=data.get("password"),
            role=data.get("role") or "clerk",
        )
        return jsonify({"user": user.to_dict()}), 201

    except SERVICE_ERRORS as e:
        return error_response(e)
    except ValueError as e:
        return json_error(str(e), 400, "validation_error")
    except Exception:
        return server_error("Failed to create user")
