# Overview: Failed-redemption counter, account blocking and privileged unblock.

"""
Redemption Lockout Service

WHY: Voucher codes are short enough to guess. Three wrong codes in a row
lock the customer out of redemption and checkout until staff or the owner
unblocks them.

POLICY:
- Each failed redemption increments failed_redeem_count
- Reaching MAX_FAILED_REDEEM_ATTEMPTS sets blocked, bumps blocked_count,
  stamps last_blocked_at and appends exactly one BlockEvent
- The counter stays at its blocking value while blocked
- A successful redemption resets the counter but never clears blocked
- Only unblock() clears blocked; there is no timeout

record_failed_redeem / record_successful_redeem do not commit. They run
inside the redemption transaction so the attempt and its outcome land
together.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import BlockEvent, User
from ..models.security import REASON_THREE_WRONG_CODE_ATTEMPTS
from printshop.time_utils import utcnow
from .branch_service import require_branch_access
from .concurrency import lock_for_update, run_with_retry


MAX_FAILED_REDEEM_ATTEMPTS = 3


def attempts_remaining(user: User) -> int:
    if user.blocked:
        return 0
    return max(0, MAX_FAILED_REDEEM_ATTEMPTS - (user.failed_redeem_count or 0))


def record_failed_redeem(user: User) -> BlockEvent | None:
    """
    Count one failed attempt; block on the third.

    Returns the BlockEvent when this attempt blocked the user, else None.
    """
    if user.blocked:
        return None

    user.failed_redeem_count = (user.failed_redeem_count or 0) + 1
    if user.failed_redeem_count < MAX_FAILED_REDEEM_ATTEMPTS:
        return None

    now = utcnow()
    user.blocked = True
    user.blocked_count = (user.blocked_count or 0) + 1
    user.last_blocked_at = now

    event = BlockEvent(
        user_id=user.id,
        username=user.username,
        branch_id=user.branch_id,
        reason=REASON_THREE_WRONG_CODE_ATTEMPTS,
        occurred_at=now,
    )
    db.session.add(event)
    return event


def record_successful_redeem(user: User) -> None:
    user.failed_redeem_count = 0


def unblock(actor: User, user_id: int) -> User:
    """
    Clear a lockout.

    Owner: any customer. Staff: customers of their own branch.
    Resets both blocked and failed_redeem_count. blocked_count is history
    and is kept.
    """
    def _op():
        target = lock_for_update(db.session.query(User).filter_by(id=user_id)).first()
        if not target:
            raise NotFoundError("USER_NOT_FOUND", "User not found")
        require_branch_access(actor, target.branch_id)
        if not target.is_customer:
            raise ValidationError("NOT_A_CUSTOMER", "Only customer accounts can be unblocked")

        target.blocked = False
        target.failed_redeem_count = 0
        db.session.commit()
        return target

    return run_with_retry(_op)


def list_block_events(actor: User) -> list[BlockEvent]:
    """Owner sees every event; staff see their own branch. Newest first."""
    query = db.session.query(BlockEvent)
    if not actor.is_owner:
        require_branch_access(actor, actor.branch_id)
        query = query.filter(BlockEvent.branch_id == actor.branch_id)
    return query.order_by(BlockEvent.occurred_at.desc(), BlockEvent.id.desc()).all()
