from __future__ import annotations

from ..extensions import db
from printshop.time_utils import to_utc_z


DEFAULT_PRICE_PER_PAGE = 10
DEFAULT_NEW_BADGE_WINDOW_DAYS = 3
DEFAULT_LISTING_PAGE_SIZE = 20
DEFAULT_CURRENCY = "DZD"

# Four named extras per branch, selected by Product.extra_key
EXTRA_KEYS = ("EXTRA1", "EXTRA2", "EXTRA3", "EXTRA4")
DEFAULT_EXTRAS = {
    "EXTRA1": ("Extra 1", 30),
    "EXTRA2": ("Extra 2", 50),
    "EXTRA3": ("Extra 3", 80),
    "EXTRA4": ("Extra 4", 150),
}


class Branch(db.Model):
    """
    Physical print shop branch.

    Partitions staff, customers, products, voucher codes and orders.
    """
    __tablename__ = "branches"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class BranchPricingConfig(db.Model):
    """
    Per-branch pricing and listing configuration.

    Read by the pricing engine at listing and checkout time. Changes never
    touch existing orders: order lines carry their own price snapshot.
    """
    __tablename__ = "branch_pricing_configs"
    __table_args__ = (
        db.UniqueConstraint("branch_id", name="uq_branch_pricing_configs_branch"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    currency = db.Column(db.String(8), nullable=False, default=DEFAULT_CURRENCY)
    price_per_page = db.Column(db.Integer, nullable=False, default=DEFAULT_PRICE_PER_PAGE)
    new_badge_window_days = db.Column(db.Integer, nullable=False, default=DEFAULT_NEW_BADGE_WINDOW_DAYS)
    listing_page_size = db.Column(db.Integer, nullable=False, default=DEFAULT_LISTING_PAGE_SIZE)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("pricing_config", uselist=False, lazy=True))
    extras = db.relationship(
        "BranchExtra",
        backref="config",
        order_by="BranchExtra.key",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def extras_by_key(self) -> dict[str, int]:
        return {extra.key: extra.amount for extra in self.extras}

    def extra_amount(self, key: str | None) -> int:
        if not key:
            return 0
        return int(self.extras_by_key().get(key, 0) or 0)

    def to_dict(self) -> dict:
        return {
            "branch_id": self.branch_id,
            "currency": self.currency,
            "price_per_page": self.price_per_page,
            "new_badge_window_days": self.new_badge_window_days,
            "listing_page_size": self.listing_page_size,
            "extras": [extra.to_dict() for extra in self.extras],
            "updated_at": to_utc_z(self.updated_at),
        }


class BranchExtra(db.Model):
    """One of the four named surcharges a product can add on top of its page price."""
    __tablename__ = "branch_extras"
    __table_args__ = (
        db.UniqueConstraint("config_id", "key", name="uq_branch_extras_config_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    config_id = db.Column(db.Integer, db.ForeignKey("branch_pricing_configs.id"), nullable=False, index=True)

    key = db.Column(db.String(16), nullable=False)  # EXTRA1..EXTRA4
    label = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {"key": self.key, "label": self.label, "amount": self.amount}
