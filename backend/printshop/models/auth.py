from __future__ import annotations

from ..extensions import db
from printshop.time_utils import to_utc_z


ROLE_CUSTOMER = "customer"
ROLE_BRANCH_STAFF = "branch_staff"
ROLE_OWNER = "owner"
ROLES = (ROLE_CUSTOMER, ROLE_BRANCH_STAFF, ROLE_OWNER)

# Curriculum profile columns, broadest level first
PROFILE_FIELDS = ("faculty_id", "track_id", "year_id", "module_id", "group_id")


class User(db.Model):
    """
    Customer, branch staff or owner account.

    WHY: Every voucher sale, redemption and order must be attributable.

    Customers carry a prepaid credit balance and a curriculum profile; staff
    are scoped to one branch; the owner is unscoped (branch_id NULL).
    credit_balance and the lockout fields are only changed by the voucher,
    lockout and order services.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_branch_role", "branch_id", "role"),
        db.CheckConstraint("credit_balance >= 0", name="ck_users_credit_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=ROLE_CUSTOMER)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True)

    # Curriculum profile (NULL = no preference at that level)
    faculty_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True)
    track_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True)
    year_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True)
    module_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True)
    group_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True)

    credit_balance = db.Column(db.Integer, nullable=False, default=0)

    # Lockout state
    blocked = db.Column(db.Boolean, nullable=False, default=False)
    failed_redeem_count = db.Column(db.Integer, nullable=False, default=0)
    blocked_count = db.Column(db.Integer, nullable=False, default=0)
    last_blocked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    branch = db.relationship("Branch", backref=db.backref("users", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_customer(self) -> bool:
        return self.role == ROLE_CUSTOMER

    @property
    def is_staff(self) -> bool:
        return self.role == ROLE_BRANCH_STAFF

    @property
    def is_owner(self) -> bool:
        return self.role == ROLE_OWNER

    @property
    def profile(self) -> dict:
        return {field: getattr(self, field) for field in PROFILE_FIELDS}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "branch_id": self.branch_id,
            "branch_name": self.branch.name if self.branch else None,
            "profile": self.profile,
            "credit_balance": self.credit_balance,
            "blocked": self.blocked,
            "failed_redeem_count": self.failed_redeem_count,
            "blocked_count": self.blocked_count,
            "last_blocked_at": to_utc_z(self.last_blocked_at) if self.last_blocked_at else None,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Bearer token issued at login.

    SECURITY: Only the SHA-256 hash of the token is stored; the plaintext
    token is returned to the client once.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at) if self.last_used_at else None,
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
