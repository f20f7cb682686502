from __future__ import annotations

from ..extensions import db
from printshop.time_utils import to_utc_z


ORDER_PAID = "PAID"
ORDER_PRINTED = "PRINTED"


class Order(db.Model):
    """
    Print order paid from the buyer's credit balance.

    WHY: The debit and the order row are written in the same transaction, so
    a balance change is always explained by an order.

    IMMUTABLE after creation except for the PAID -> PRINTED flip.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_branch_created", "branch_id", "created_at"),
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)

    total = db.Column("sum", db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ORDER_PAID, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    printed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    printed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("orders", lazy=True))
    lines = db.relationship(
        "OrderLine",
        backref="order",
        order_by="OrderLine.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "branch_id": self.branch_id,
            "items": [line.to_dict() for line in self.lines],
            "sum": self.total,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "printed_at": to_utc_z(self.printed_at) if self.printed_at else None,
            "printed_by_user_id": self.printed_by_user_id,
        }


class OrderLine(db.Model):
    """
    Priced snapshot of one cart line.

    product_id is kept without a foreign key: products can be deleted later
    and the receipt must survive.
    """
    __tablename__ = "order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(255), nullable=False)
    qty = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "title": self.title,
            "qty": self.qty,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
        }
