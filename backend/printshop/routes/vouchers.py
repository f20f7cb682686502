# Overview: Flask API routes for the voucher ledger; generation, release, sale and redemption.

"""
Voucher API routes

Every transition is logged: codes are money. Plaintext codes only appear
in the owner's listing and in the response to the sale that reveals them.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError
from ..models.auth import ROLE_BRANCH_STAFF, ROLE_CUSTOMER, ROLE_OWNER
from ..services import voucher_service
from ..decorators import require_auth, require_role


vouchers_bp = Blueprint("vouchers", __name__, url_prefix="/api/codes")


@vouchers_bp.post("/generate")
@require_auth
@require_role(ROLE_OWNER)
def generate_codes_route():
    """Body: amount (500/1000/2000), staff_id, count (1..50)."""
    try:
        data = request.get_json(silent=True) or {}
        codes = voucher_service.generate_codes(
            g.current_user,
            amount=data.get("amount"),
            staff_id=data.get("staff_id"),
            count=data.get("count", 1),
        )
        current_app.logger.info(
            "Voucher batch generated: count=%s amount=%s staff_id=%s by user_id=%s",
            len(codes), codes[0].amount, codes[0].assigned_staff_id, g.current_user.id,
        )
        return jsonify({"codes": [c.to_dict() for c in codes]}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to generate voucher codes")
        return jsonify({"error": "Internal server error"}), 500


@vouchers_bp.get("")
@require_auth
@require_role(ROLE_BRANCH_STAFF, ROLE_OWNER)
def list_codes_route():
    try:
        return jsonify({"codes": voucher_service.list_codes(g.current_user)}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@vouchers_bp.get("/stats")
@require_auth
@require_role(ROLE_OWNER)
def code_stats_route():
    try:
        return jsonify(voucher_service.code_stats(g.current_user)), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@vouchers_bp.post("/<int:code_id>/visibility")
@require_auth
@require_role(ROLE_OWNER)
def set_visibility_route(code_id: int):
    """Body: staff_id (null withdraws the code)."""
    try:
        data = request.get_json(silent=True) or {}
        voucher = voucher_service.set_visibility(g.current_user, code_id, data.get("staff_id"))
        current_app.logger.info(
            "Voucher visibility changed: code_id=%s visible_to=%s by user_id=%s",
            voucher.id, voucher.visible_to_staff_id, g.current_user.id,
        )
        return jsonify({"code": voucher.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change voucher visibility")
        return jsonify({"error": "Internal server error"}), 500


@vouchers_bp.post("/<int:code_id>/sell")
@require_auth
@require_role(ROLE_BRANCH_STAFF)
def mark_sold_route(code_id: int):
    """Mark a code sold and reveal it to the seller."""
    try:
        voucher = voucher_service.mark_sold(g.current_user, code_id)
        current_app.logger.info(
            "Voucher sold: code_id=%s amount=%s by user_id=%s",
            voucher.id, voucher.amount, g.current_user.id,
        )
        return jsonify({"code": voucher.code, "amount": voucher.amount, "voucher": voucher.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to sell voucher code")
        return jsonify({"error": "Internal server error"}), 500


@vouchers_bp.post("/redeem")
@require_auth
@require_role(ROLE_CUSTOMER)
def redeem_route():
    """
    Redeem a sold code into the caller's credit balance.

    SECURITY: Unknown, unsold, used and other-branch codes all answer with
    the same INVALID_CODE error and count towards the lockout.
    """
    try:
        data = request.get_json(silent=True) or {}
        voucher, user = voucher_service.redeem(g.current_user, data.get("code"))
        current_app.logger.info(
            "Voucher redeemed: code_id=%s amount=%s user_id=%s",
            voucher.id, voucher.amount, user.id,
        )
        return jsonify({
            "added": voucher.amount,
            "credit_balance": user.credit_balance,
        }), 200

    except ServiceError as e:
        if e.code == "INVALID_CODE":
            if e.details.get("blocked"):
                current_app.logger.warning(
                    "Account blocked after failed redemptions: user_id=%s", g.current_user.id,
                )
            else:
                current_app.logger.info("Failed redemption: user_id=%s", g.current_user.id)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to redeem voucher code")
        return jsonify({"error": "Internal server error"}), 500
