from __future__ import annotations

from ..extensions import db
from printshop.time_utils import to_utc_z


STATUS_FRESH = "FRESH"
STATUS_SOLD = "SOLD"
STATUS_CONSUMED = "CONSUMED"

# Forward-only lifecycle: FRESH -> SOLD -> CONSUMED
STATUS_ORDER = {STATUS_FRESH: 0, STATUS_SOLD: 1, STATUS_CONSUMED: 2}


class VoucherCode(db.Model):
    """
    Single-use prepaid voucher code.

    LIFECYCLE: FRESH -> SOLD -> CONSUMED (terminal). No skips, no reversals.

    - code and amount never change after creation
    - branch_id/assigned_staff_id follow the staff member the code targets
      and may only change while FRESH
    - visible_to_staff_id is the only staff member allowed to sell the code
    """
    __tablename__ = "voucher_codes"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_voucher_codes_code"),
        db.Index("ix_voucher_codes_visible_status", "visible_to_staff_id", "status"),
        db.Index("ix_voucher_codes_branch_status", "branch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    amount = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=STATUS_FRESH, index=True)

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    assigned_staff_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    visible_to_staff_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    sold_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    consumed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sold_at = db.Column(db.DateTime(timezone=True), nullable=True)
    consumed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    branch = db.relationship("Branch", backref=db.backref("voucher_codes", lazy=True))
    assigned_staff = db.relationship("User", foreign_keys=[assigned_staff_id])
    __mapper_args__ = {"version_id_col": version_id}

    def masked_code(self) -> str:
        """Code with everything but the last two characters hidden."""
        return "".join("-" if ch == "-" else "*" for ch in self.code[:-2]) + self.code[-2:]

    def to_dict(self, reveal: bool = True) -> dict:
        return {
            "id": self.id,
            "code": self.code if reveal else self.masked_code(),
            "amount": self.amount,
            "status": self.status,
            "branch_id": self.branch_id,
            "assigned_staff_id": self.assigned_staff_id,
            "visible_to_staff_id": self.visible_to_staff_id,
            "created_by_user_id": self.created_by_user_id,
            "sold_by_user_id": self.sold_by_user_id,
            "consumed_by_user_id": self.consumed_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "sold_at": to_utc_z(self.sold_at) if self.sold_at else None,
            "consumed_at": to_utc_z(self.consumed_at) if self.consumed_at else None,
        }
