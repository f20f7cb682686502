# Overview: Flask API routes for orders; checkout, listings and print status.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError
from ..models.auth import ROLE_BRANCH_STAFF, ROLE_CUSTOMER, ROLE_OWNER
from ..services import order_service
from ..decorators import require_auth, require_role


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
@require_role(ROLE_CUSTOMER)
def create_order_route():
    """
    Checkout the cart against the caller's credit balance.

    Body: {"items": [{"product_id": 1, "qty": 2}, ...]}
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.create_order(g.current_user, data.get("items"))
        current_app.logger.info(
            "Order created: order_id=%s user_id=%s sum=%s lines=%s",
            order.id, order.user_id, order.total, len(order.lines),
        )
        return jsonify({
            "order": order.to_dict(),
            "credit_balance": order.user.credit_balance,
        }), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
def list_orders_route():
    try:
        orders = order_service.list_orders(g.current_user)
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.post("/<int:order_id>/printed")
@require_auth
@require_role(ROLE_BRANCH_STAFF, ROLE_OWNER)
def mark_printed_route(order_id: int):
    try:
        order = order_service.mark_printed(g.current_user, order_id)
        current_app.logger.info("Order printed: order_id=%s by user_id=%s", order.id, g.current_user.id)
        return jsonify({"order": order.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark order printed")
        return jsonify({"error": "Internal server error"}), 500
