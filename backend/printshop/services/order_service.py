# Overview: Checkout against the credit balance and print status tracking.

"""
Order Settlement Service

WHY: Checkout moves money. The debit of the buyer's credit balance and the
creation of the order must land in the same transaction: no observer may
see one without the other.

CHECKOUT FLOW:
1. Reject blocked buyers (before anything else) and empty carts
2. Resolve each cart line; silently drop lines whose product is gone,
   hidden, or outside the buyer's branch/profile
3. Snapshot unit prices through the pricing engine; qty clamps to >= 1
4. Require credit_balance >= sum (no mutation otherwise)
5. Debit and append the PAID order, then commit once

The buyer row is read through lock_for_update and carries a version
counter, so two concurrent checkouts cannot both spend the same credit.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import (
    AccountBlockedError,
    AuthorizationError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from ..models import Order, OrderLine, Product, User
from ..models.orders import ORDER_PAID, ORDER_PRINTED
from printshop.time_utils import utcnow
from . import pricing_service
from .branch_service import get_pricing_config, require_branch_access
from .concurrency import lock_for_update, run_with_retry
from .profile_service import is_visible


# Largest quantity accepted per cart line
MAX_QTY = 1000


def _clamp_qty(value) -> int:
    """Unreadable or non-positive quantities count as 1; above MAX_QTY is rejected."""
    if isinstance(value, bool):
        return 1
    try:
        qty = int(value)
    except OverflowError:
        qty = MAX_QTY + 1
    except (TypeError, ValueError):
        return 1
    if qty > MAX_QTY:
        raise ValidationError("INVALID_QTY", f"qty must not exceed {MAX_QTY}")
    return max(1, qty)


def _product_id(item) -> int | None:
    if not isinstance(item, dict):
        return None
    raw = item.get("product_id", item.get("productId"))
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def price_cart(user: User, items: list) -> list[dict]:
    """
    Resolve cart lines into priced snapshots, dropping the unbuyable ones.

    Never mutates anything.
    """
    config = get_pricing_config(user.branch_id) if user.branch_id is not None else None
    lines = []
    for item in items:
        product_id = _product_id(item)
        if product_id is None:
            continue
        product = db.session.query(Product).filter_by(id=product_id).first()
        if product is None or product.hidden or not is_visible(product, user):
            continue

        qty = _clamp_qty(item.get("qty", item.get("count", 1)))
        unit_price = pricing_service.price(product, config).final_price
        lines.append({
            "product_id": product.id,
            "title": product.title,
            "qty": qty,
            "unit_price": unit_price,
            "line_total": unit_price * qty,
        })
    return lines


def create_order(user: User, items) -> Order:
    """
    Settle a cart against the buyer's credit balance.

    Raises:
        AccountBlockedError: buyer is blocked
        ValidationError: EMPTY_CART, NO_VALID_ITEMS or INVALID_QTY
        InsufficientFundsError: balance below the order sum (nothing changes)
    """
    if user.blocked:
        raise AccountBlockedError("USER_BLOCKED", "Account blocked. Purchases are disabled.")
    if not isinstance(items, list) or not items:
        raise ValidationError("EMPTY_CART", "Cart is empty")

    def _op():
        buyer = lock_for_update(db.session.query(User).filter_by(id=user.id)).first()
        if buyer.blocked:
            raise AccountBlockedError("USER_BLOCKED", "Account blocked. Purchases are disabled.")

        lines = price_cart(buyer, items)
        if not lines:
            raise ValidationError("NO_VALID_ITEMS", "No valid products in cart")

        total = sum(line["line_total"] for line in lines)
        balance = buyer.credit_balance or 0
        if balance < total:
            raise InsufficientFundsError(
                "INSUFFICIENT_CREDIT",
                "Not enough credit",
                {"balance": balance, "sum": total},
            )

        order = Order(
            user_id=buyer.id,
            branch_id=buyer.branch_id,
            total=total,
            status=ORDER_PAID,
            created_at=utcnow(),
        )
        for position, line in enumerate(lines):
            order.lines.append(OrderLine(position=position, **line))

        buyer.credit_balance = balance - total
        db.session.add(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


def get_order(order_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id).first()
    if not order:
        raise NotFoundError("ORDER_NOT_FOUND", "Order not found")
    return order


def mark_printed(actor: User, order_id: int) -> Order:
    """
    Flip PAID -> PRINTED.

    Staff: own branch only. Owner: any. Marking an already PRINTED order
    again succeeds and keeps the original printed_at/printed_by.
    """
    if actor.is_customer:
        raise AuthorizationError("FORBIDDEN", "Staff access required")

    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError("ORDER_NOT_FOUND", "Order not found")
        require_branch_access(actor, order.branch_id)

        if order.status == ORDER_PRINTED:
            return order

        order.status = ORDER_PRINTED
        order.printed_at = utcnow()
        order.printed_by_user_id = actor.id
        db.session.commit()
        return order

    return run_with_retry(_op)


def list_orders(actor: User) -> list[Order]:
    """Customer: own orders. Staff: own branch. Owner: all. Newest first."""
    query = db.session.query(Order)
    if actor.is_customer:
        query = query.filter(Order.user_id == actor.id)
    elif not actor.is_owner:
        require_branch_access(actor, actor.branch_id)
        query = query.filter(Order.branch_id == actor.branch_id)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()
