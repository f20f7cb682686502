# Overview: Flask API routes for products; listings, price preview and management.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError
from ..models.auth import ROLE_BRANCH_STAFF, ROLE_CUSTOMER, ROLE_OWNER
from ..services import product_service
from ..decorators import require_auth, require_role


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_role(ROLE_CUSTOMER)
def list_products_route():
    """
    Customer listing: newest first, filtered by branch and profile.

    Query params: limit (1..50, default from branch config), offset.
    """
    try:
        result = product_service.list_for_customer(
            g.current_user,
            limit=request.args.get("limit"),
            offset=request.args.get("offset", 0),
        )
        return jsonify(result), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/manage")
@require_auth
@require_role(ROLE_BRANCH_STAFF, ROLE_OWNER)
def manage_products_route():
    try:
        branch_id = request.args.get("branch_id", type=int)
        items = product_service.list_for_management(g.current_user, branch_id=branch_id)
        return jsonify({"items": items}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/<int:product_id>/price")
@require_auth
def price_preview_route(product_id: int):
    try:
        return jsonify({"product": product_service.price_preview(g.current_user, product_id)}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("")
@require_auth
@require_role(ROLE_BRANCH_STAFF, ROLE_OWNER)
def create_product_route():
    """
    Register an uploaded document.

    The upload pipeline has already stored the files and counted the pages;
    the body carries title, pages, pricing fields, placement and file paths.
    """
    try:
        data = request.get_json(silent=True) or {}
        product = product_service.create_product(g.current_user, data)
        current_app.logger.info(
            "Product created: product_id=%s branch_id=%s by user_id=%s",
            product.id, product.branch_id, g.current_user.id,
        )
        return jsonify({"product": product_service.price_preview(g.current_user, product.id)}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_BRANCH_STAFF, ROLE_OWNER)
def update_product_route(product_id: int):
    try:
        data = request.get_json(silent=True) or {}
        product = product_service.update_product(g.current_user, product_id, data)
        return jsonify({"product": product_service.price_preview(g.current_user, product.id)}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_BRANCH_STAFF, ROLE_OWNER)
def delete_product_route(product_id: int):
    try:
        product_service.delete_product(g.current_user, product_id)
        current_app.logger.info("Product deleted: product_id=%s by user_id=%s", product_id, g.current_user.id)
        return jsonify({"message": "Product deleted"}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
