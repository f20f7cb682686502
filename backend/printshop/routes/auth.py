# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on registration
- Session management with token-based auth
- Blocked customers can log in; redemption and checkout refuse them
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError
from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Customer self-registration.

    Body: username, password, branch_id, optional profile
    {faculty_id, track_id, year_id, module_id, group_id}.
    Returns the new user and a session token.
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.register_customer(
            username=data.get("username"),
            password=data.get("password"),
            branch_id=data.get("branch_id"),
            profile=data.get("profile") or {},
        )
        session, token = session_service.create_session(user)
        current_app.logger.info("Customer registered: user_id=%s branch_id=%s", user.id, user.branch_id)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
        }), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "CREDENTIALS_REQUIRED", "message": "username and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.warning("Failed login for username=%s", username)
            return jsonify({"error": "INVALID_CREDENTIALS", "message": "Invalid credentials"}), 401

        session, token = session_service.create_session(user)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """
    Revoke session token (logout).

    WHY: Explicit logout prevents token reuse.
    """
    try:
        session_service.revoke_session(g.session_token)
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
