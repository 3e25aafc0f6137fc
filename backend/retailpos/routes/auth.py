# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/retailpos/routes/auth.py
"""
Authentication API routes

Users are created by administrators (CLI: flask users create, or
POST /api/auth/users). There is no self-registration.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import LedgerError
from ..services import identity_service, session_service
from ..decorators import bearer_token, require_auth, require_role


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included as "Authorization: Bearer <token>" on
    protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        user = identity_service.authenticate(username, password)
        session, token = session_service.create_session(user)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({
        "user": g.current_user.to_dict(),
        "acting_user": g.acting_user.to_dict(),
    }), 200


@auth_bp.get("/users")
@require_auth
@require_role("ADMIN", "MANAGER")
def list_users_route():
    return jsonify({"users": [u.to_dict() for u in identity_service.list_users()]}), 200


@auth_bp.post("/users")
@require_auth
@require_role("ADMIN")
def create_user_route():
    """
    Request body:
    {
        "username": "ana",
        "password": "Password123!",
        "display_name": "Ana",   (optional)
        "role": "SELLER"          (ADMIN, MANAGER, SELLER)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        user = identity_service.create_user(
            username=data.get("username"),
            password=data.get("password"),
            display_name=data.get("display_name"),
            role=data.get("role") or "SELLER",
        )
        return jsonify({"user": user.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500
