# Overview: Voucher ledger; code generation, release to staff, sale and redemption.

"""
Voucher Ledger Service

WHY: Customers top up their credit balance by redeeming prepaid codes that
staff sell over the counter. Every code is money; every transition must be
check-then-set against one consistent read.

LIFECYCLE: FRESH -> SOLD -> CONSUMED
- generate_codes: owner creates a FRESH batch targeted at one staff member
  (branch inherited from that staff member), not yet visible to anyone
- set_visibility: owner releases (or withdraws) a FRESH code to one staff
  member; re-targets the code to that staff member's branch
- mark_sold: the staff member the code is visible to sells it
- redeem: a customer of the same branch consumes a SOLD code

SECURITY:
- Codes come from secrets.choice over an alphabet without 0/O/1/I
- Every redemption failure (unknown code, wrong status, other branch) gives
  the caller the same INVALID_CODE answer and counts towards lockout
- Blocked customers are rejected before the code is even looked up
"""

from __future__ import annotations

import secrets

from ..extensions import db
from ..errors import (
    AccountBlockedError,
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from ..models import User, VoucherCode
from ..models.auth import ROLE_BRANCH_STAFF
from ..models.vouchers import STATUS_FRESH, STATUS_SOLD, STATUS_CONSUMED, STATUS_ORDER
from printshop.time_utils import utcnow
from .branch_service import require_owner
from .concurrency import lock_for_update, run_with_retry
from . import lockout_service


ALLOWED_AMOUNTS = (500, 1000, 2000)
MAX_BATCH_SIZE = 50

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_GROUPS = 3
CODE_GROUP_LENGTH = 4


def generate_code() -> str:
    """Random code in XXXX-XXXX-XXXX form."""
    groups = [
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_GROUP_LENGTH))
        for _ in range(CODE_GROUPS)
    ]
    return "-".join(groups)


def normalize_code(raw) -> str:
    return str(raw or "").strip().upper()


def _parse_int(value, code: str, message: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(code, message)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(code, message)


def _get_staff(staff_id) -> User:
    staff = None
    if staff_id is not None:
        staff = db.session.query(User).filter_by(id=staff_id, role=ROLE_BRANCH_STAFF).first()
    if not staff or staff.branch_id is None:
        raise NotFoundError("STAFF_NOT_FOUND", "Staff member not found")
    return staff


def generate_codes(actor: User, amount, staff_id, count) -> list[VoucherCode]:
    """
    Create a batch of FRESH codes for one staff member (owner only).

    Each code is checked against the whole ledger and the batch so far
    before it is accepted; the unique constraint on code backs this up.
    """
    require_owner(actor)

    amount = _parse_int(amount, "INVALID_AMOUNT", f"amount must be one of {ALLOWED_AMOUNTS}")
    if amount not in ALLOWED_AMOUNTS:
        raise ValidationError("INVALID_AMOUNT", f"amount must be one of {ALLOWED_AMOUNTS}")

    count = _parse_int(count, "INVALID_COUNT", f"count must be between 1 and {MAX_BATCH_SIZE}")
    if count < 1 or count > MAX_BATCH_SIZE:
        raise ValidationError("INVALID_COUNT", f"count must be between 1 and {MAX_BATCH_SIZE}")

    staff = _get_staff(staff_id)

    existing = {code for (code,) in db.session.query(VoucherCode.code).all()}
    now = utcnow()
    created = []
    for _ in range(count):
        code = generate_code()
        while code in existing:
            code = generate_code()
        existing.add(code)

        voucher = VoucherCode(
            code=code,
            amount=amount,
            status=STATUS_FRESH,
            branch_id=staff.branch_id,
            assigned_staff_id=staff.id,
            visible_to_staff_id=None,
            created_by_user_id=actor.id,
            created_at=now,
        )
        db.session.add(voucher)
        created.append(voucher)

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return created


def set_visibility(actor: User, code_id: int, staff_id) -> VoucherCode:
    """
    Release a FRESH code to a staff member, or withdraw it (staff_id None).

    Releasing moves the code to that staff member (and their branch).
    """
    require_owner(actor)

    def _op():
        voucher = lock_for_update(db.session.query(VoucherCode).filter_by(id=code_id)).first()
        if not voucher:
            raise NotFoundError("CODE_NOT_FOUND", "Code not found")
        if voucher.status != STATUS_FRESH:
            raise StateConflictError("INVALID_STATE", "Only FRESH codes can change visibility")

        if staff_id is None:
            voucher.visible_to_staff_id = None
        else:
            staff = _get_staff(staff_id)
            voucher.visible_to_staff_id = staff.id
            voucher.assigned_staff_id = staff.id
            voucher.branch_id = staff.branch_id

        db.session.commit()
        return voucher

    return run_with_retry(_op)


def mark_sold(actor: User, code_id: int) -> VoucherCode:
    """
    Sell a code at the counter.

    Only the staff member the code is currently visible to may sell it, and
    only while FRESH. The caller reveals voucher.code to the buyer.
    """
    def _op():
        voucher = lock_for_update(db.session.query(VoucherCode).filter_by(id=code_id)).first()
        if not voucher:
            raise NotFoundError("CODE_NOT_FOUND", "Code not found")
        if voucher.visible_to_staff_id is None or voucher.visible_to_staff_id != actor.id:
            raise AuthorizationError("NOT_ASSIGNED", "Code is not visible to you")
        if voucher.status != STATUS_FRESH:
            raise StateConflictError("INVALID_STATE", f"Code is already {voucher.status}")

        voucher.status = STATUS_SOLD
        voucher.sold_by_user_id = actor.id
        voucher.sold_at = utcnow()
        db.session.commit()
        return voucher

    return run_with_retry(_op)


def redeem(user: User, raw_code) -> tuple[VoucherCode, User]:
    """
    Redeem a SOLD code into the caller's credit balance.

    Raises:
        AccountBlockedError: caller is blocked (checked first)
        ValidationError: empty input (not counted as an attempt)
        NotFoundError INVALID_CODE: any other failure; the attempt is
            recorded and committed before the error propagates
    """
    if user.blocked:
        raise AccountBlockedError("USER_BLOCKED", "Account blocked. Please contact staff.")

    code = normalize_code(raw_code)
    if not code:
        raise ValidationError("CODE_REQUIRED", "Code required")

    def _op():
        customer = lock_for_update(db.session.query(User).filter_by(id=user.id)).first()
        if customer.blocked:
            raise AccountBlockedError("USER_BLOCKED", "Account blocked. Please contact staff.")

        voucher = lock_for_update(db.session.query(VoucherCode).filter_by(code=code)).first()
        if (
            voucher is None
            or voucher.status != STATUS_SOLD
            or customer.branch_id is None
            or voucher.branch_id != customer.branch_id
        ):
            lockout_service.record_failed_redeem(customer)
            details = {
                "attempts_remaining": lockout_service.attempts_remaining(customer),
                "blocked": bool(customer.blocked),
            }
            db.session.commit()
            raise NotFoundError("INVALID_CODE", "This code does not exist.", details)

        voucher.status = STATUS_CONSUMED
        voucher.consumed_by_user_id = customer.id
        voucher.consumed_at = utcnow()
        customer.credit_balance = (customer.credit_balance or 0) + voucher.amount
        lockout_service.record_successful_redeem(customer)
        db.session.commit()
        return voucher, customer

    return run_with_retry(_op)


def list_codes(actor: User) -> list[dict]:
    """
    Owner: every code, newest first, codes revealed.
    Staff: codes visible to them, FRESH then SOLD then CONSUMED, with
    unsold code strings masked.
    """
    if actor.is_owner:
        codes = db.session.query(VoucherCode).order_by(VoucherCode.id.desc()).all()
        return [voucher.to_dict() for voucher in codes]

    if not actor.is_staff:
        raise AuthorizationError("FORBIDDEN", "Staff access required")

    codes = (
        db.session.query(VoucherCode)
        .filter(VoucherCode.visible_to_staff_id == actor.id)
        .order_by(VoucherCode.id.desc())
        .all()
    )
    codes.sort(key=lambda voucher: STATUS_ORDER.get(voucher.status, 99))
    return [voucher.to_dict(reveal=voucher.status != STATUS_FRESH) for voucher in codes]


def code_stats(actor: User) -> dict:
    """Per staff member count and sum of released, sold and redeemed codes."""
    require_owner(actor)

    staff_members = (
        db.session.query(User).filter_by(role=ROLE_BRANCH_STAFF).order_by(User.id.asc()).all()
    )
    per_staff = []
    totals = {"visible": 0, "sold": 0, "redeemed": 0}
    for staff in staff_members:
        codes = db.session.query(VoucherCode).filter_by(assigned_staff_id=staff.id).all()
        visible = [c for c in codes if c.status == STATUS_FRESH and c.visible_to_staff_id == staff.id]
        sold = [c for c in codes if c.status == STATUS_SOLD]
        redeemed = [c for c in codes if c.status == STATUS_CONSUMED]

        row = {
            "staff_id": staff.id,
            "username": staff.username,
            "branch_id": staff.branch_id,
            "count_visible": len(visible),
            "count_sold": len(sold),
            "count_redeemed": len(redeemed),
            "sum_visible": sum(c.amount for c in visible),
            "sum_sold": sum(c.amount for c in sold),
            "sum_redeemed": sum(c.amount for c in redeemed),
        }
        totals["visible"] += row["sum_visible"]
        totals["sold"] += row["sum_sold"]
        totals["redeemed"] += row["sum_redeemed"]
        per_staff.append(row)

    return {
        "total_visible": totals["visible"],
        "total_sold": totals["sold"],
        "total_redeemed": totals["redeemed"],
        "per_staff": per_staff,
    }
