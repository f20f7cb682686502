from __future__ import annotations

from ..extensions import db
from printshop.time_utils import to_utc_z


REASON_THREE_WRONG_CODE_ATTEMPTS = "THREE_WRONG_CODE_ATTEMPTS"


class BlockEvent(db.Model):
    """
    Account lockout audit record.

    WHY: Staff need to see who was blocked, when and why before unblocking.
    username and branch_id are copied at block time so the record stays
    readable on its own.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "block_events"
    __table_args__ = (
        db.Index("ix_block_events_branch_occurred", "branch_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    username = db.Column(db.String(64), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True)

    reason = db.Column(db.String(64), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.username,
            "branch_id": self.branch_id,
            "reason": self.reason,
            "occurred_at": to_utc_z(self.occurred_at),
        }
