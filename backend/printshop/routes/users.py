# Overview: Flask API routes for accounts; customer listings, lockout management, staff and profile.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError
from ..models.auth import ROLE_BRANCH_STAFF, ROLE_CUSTOMER, ROLE_OWNER
from ..services import auth_service
from ..services import catalog_service
from ..services import lockout_service
from ..decorators import require_auth, require_role


users_bp = Blueprint("users", __name__, url_prefix="/api")


@users_bp.get("/users")
@require_auth
@require_role(ROLE_BRANCH_STAFF, ROLE_OWNER)
def list_users_route():
    """Customers with balance and lockout state. Staff: own branch only."""
    try:
        users = auth_service.list_customers(g.current_user)
        return jsonify({"users": [u.to_dict() for u in users]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@users_bp.post("/users/<int:user_id>/unblock")
@require_auth
@require_role(ROLE_BRANCH_STAFF, ROLE_OWNER)
def unblock_route(user_id: int):
    try:
        user = lockout_service.unblock(g.current_user, user_id)
        current_app.logger.info("Customer unblocked: user_id=%s by user_id=%s", user.id, g.current_user.id)
        return jsonify({"user": user.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to unblock user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.get("/block-events")
@require_auth
@require_role(ROLE_BRANCH_STAFF, ROLE_OWNER)
def block_events_route():
    try:
        events = lockout_service.list_block_events(g.current_user)
        return jsonify({"events": [e.to_dict() for e in events]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@users_bp.post("/staff")
@require_auth
@require_role(ROLE_OWNER)
def create_staff_route():
    """Body: username, password, branch_id."""
    try:
        data = request.get_json(silent=True) or {}
        staff = auth_service.create_staff(
            g.current_user,
            username=data.get("username"),
            password=data.get("password"),
            branch_id=data.get("branch_id"),
        )
        current_app.logger.info("Staff account created: user_id=%s branch_id=%s", staff.id, staff.branch_id)
        return jsonify({"user": staff.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create staff account")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.post("/profile")
@require_auth
@require_role(ROLE_CUSTOMER)
def update_profile_route():
    """Replace the caller's curriculum profile; ids are checked against the catalog."""
    try:
        data = request.get_json(silent=True) or {}
        user = catalog_service.update_profile(g.current_user, data)
        return jsonify({"user": user.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500
