# Overview: Service-layer operations for accounts; password hashing, registration and login.

"""
Account Service

WHY: Every voucher sale, redemption and purchase must be attributable to an
account. Uses bcrypt for password hashing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Session tokens managed separately (see session_service.py)
- Blocked customers can still log in; redemption and checkout reject them
"""

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import User
from ..models.auth import ROLE_CUSTOMER, ROLE_BRANCH_STAFF, ROLE_OWNER
from printshop.time_utils import utcnow
from .branch_service import get_branch, require_branch_access, require_owner
from .catalog_service import validate_profile


MIN_PASSWORD_LENGTH = 8
MIN_USERNAME_LENGTH = 3


def validate_credentials(username: str, password: str) -> None:
    if len(username) < MIN_USERNAME_LENGTH:
        raise ValidationError("INVALID_USERNAME", f"Username must be at least {MIN_USERNAME_LENGTH} characters long")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("WEAK_PASSWORD", f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with the configured cost factor (12 by default).

    WHY: Higher costs slow down brute force attacks but also slow down login.
    """
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12) if has_app_context() else 12
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def _ensure_username_free(username: str) -> None:
    if db.session.query(User).filter_by(username=username).first():
        raise ValidationError("USERNAME_TAKEN", "Username already exists")


def register_customer(
    username: str,
    password: str,
    branch_id: int,
    profile: dict | None = None,
) -> User:
    """
    Self-registration for customers.

    The curriculum profile is optional; any level given must exist in the
    catalog under the chosen branch.
    """
    username = (username or "").strip()
    password = password or ""
    validate_credentials(username, password)
    if branch_id is None:
        raise ValidationError("BRANCH_REQUIRED", "branch_id required")
    get_branch(branch_id)
    _ensure_username_free(username)

    normalized = validate_profile(branch_id, profile or {})

    user = User(
        username=username,
        password_hash=hash_password(password),
        role=ROLE_CUSTOMER,
        branch_id=branch_id,
        credit_balance=0,
        blocked=False,
        failed_redeem_count=0,
        **normalized,
    )
    db.session.add(user)
    db.session.commit()
    return user


def create_staff(actor: User, username: str, password: str, branch_id: int) -> User:
    """Create a branch staff account (owner only)."""
    require_owner(actor)
    username = (username or "").strip()
    password = password or ""
    validate_credentials(username, password)
    get_branch(branch_id)
    _ensure_username_free(username)

    user = User(
        username=username,
        password_hash=hash_password(password),
        role=ROLE_BRANCH_STAFF,
        branch_id=branch_id,
    )
    db.session.add(user)
    db.session.commit()
    return user


def create_owner(username: str, password: str) -> User:
    """Bootstrap the unscoped owner account (CLI only)."""
    username = (username or "").strip()
    password = password or ""
    validate_credentials(username, password)
    _ensure_username_free(username)

    user = User(username=username, password_hash=hash_password(password), role=ROLE_OWNER, branch_id=None)
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()
    if not user:
        return None

    if verify_password(password or "", user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def get_user(user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError("USER_NOT_FOUND", "User not found")
    return user


def list_customers(actor: User) -> list[User]:
    """Customers visible to staff (own branch) or the owner (all)."""
    query = db.session.query(User).filter_by(role=ROLE_CUSTOMER)
    if not actor.is_owner:
        require_branch_access(actor, actor.branch_id)
        query = query.filter_by(branch_id=actor.branch_id)
    return query.order_by(User.id.asc()).all()
