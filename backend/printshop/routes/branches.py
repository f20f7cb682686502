# Overview: Flask API routes for branches and branch pricing configuration.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError
from ..models.auth import ROLE_BRANCH_STAFF, ROLE_OWNER
from ..services import branch_service
from ..decorators import require_auth, require_role


branches_bp = Blueprint("branches", __name__, url_prefix="/api/branches")


@branches_bp.get("")
def list_branches_route():
    """Public: the registration form needs the branch list."""
    branches = branch_service.list_branches()
    return jsonify({"branches": [b.to_dict() for b in branches]}), 200


@branches_bp.post("")
@require_auth
@require_role(ROLE_OWNER)
def create_branch_route():
    try:
        data = request.get_json(silent=True) or {}
        branch = branch_service.create_branch(g.current_user, data.get("name"))
        current_app.logger.info("Branch created: branch_id=%s by user_id=%s", branch.id, g.current_user.id)
        return jsonify({"branch": branch.to_dict(), "pricing": branch.pricing_config.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create branch")
        return jsonify({"error": "Internal server error"}), 500


@branches_bp.get("/<int:branch_id>/pricing")
@require_auth
def get_pricing_route(branch_id: int):
    try:
        branch = branch_service.get_branch(branch_id)
        config = branch_service.get_pricing_config(branch.id)
        return jsonify({"pricing": config.to_dict() if config else None}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@branches_bp.put("/<int:branch_id>/pricing")
@require_auth
@require_role(ROLE_BRANCH_STAFF, ROLE_OWNER)
def update_pricing_route(branch_id: int):
    """
    Update price per page, listing defaults and the four extras.

    Staff: own branch only. Owner: any branch.
    """
    try:
        data = request.get_json(silent=True) or {}
        config = branch_service.update_pricing_config(g.current_user, branch_id, data)
        current_app.logger.info("Pricing updated: branch_id=%s by user_id=%s", branch_id, g.current_user.id)
        return jsonify({"pricing": config.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update pricing")
        return jsonify({"error": "Internal server error"}), 500
