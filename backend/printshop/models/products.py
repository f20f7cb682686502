from __future__ import annotations

from ..extensions import db
from printshop.time_utils import to_utc_z


MODE_AUTO = "AUTO"
MODE_AUTO_PLUS_EXTRA = "AUTO_PLUS_EXTRA"
MODE_FIXED = "FIXED"
PRICING_MODES = (MODE_AUTO, MODE_AUTO_PLUS_EXTRA, MODE_FIXED)

DISCOUNT_NONE = "NONE"
DISCOUNT_PERCENT = "PERCENT"
DISCOUNT_AMOUNT = "AMOUNT"
DISCOUNT_TYPES = (DISCOUNT_NONE, DISCOUNT_PERCENT, DISCOUNT_AMOUNT)


class Product(db.Model):
    """
    Printable document offered by a branch.

    pages comes from the upload pipeline (already counted); prices are never
    stored here, they are derived from the branch pricing config on demand.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_branch_hidden_created", "branch_id", "hidden", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    note = db.Column(db.Text, nullable=True)

    # Curriculum placement (NULL = applies to every value at that level)
    faculty_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True)
    track_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True)
    year_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True)
    module_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True)
    group_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True)
    professor_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True)

    pages = db.Column(db.Integer, nullable=False, default=1)

    # Pricing
    mode = db.Column(db.String(16), nullable=False, default=MODE_AUTO)
    fixed_price = db.Column(db.Integer, nullable=False, default=0)
    extra_key = db.Column(db.String(16), nullable=True)
    discount_type = db.Column(db.String(16), nullable=False, default=DISCOUNT_NONE)
    discount_value = db.Column(db.Integer, nullable=False, default=0)

    hidden = db.Column(db.Boolean, nullable=False, default=False)

    # Stored file references supplied by the upload pipeline
    pdf_path = db.Column(db.String(512), nullable=True)
    thumb_path = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("products", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "title": self.title,
            "note": self.note,
            "faculty_id": self.faculty_id,
            "track_id": self.track_id,
            "year_id": self.year_id,
            "module_id": self.module_id,
            "group_id": self.group_id,
            "professor_id": self.professor_id,
            "pages": self.pages,
            "mode": self.mode,
            "fixed_price": self.fixed_price,
            "extra_key": self.extra_key,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "hidden": self.hidden,
            "pdf_path": self.pdf_path,
            "thumb_path": self.thumb_path,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
