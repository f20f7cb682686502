# Overview: Branch records, per-branch pricing configuration and branch-scope checks.

from __future__ import annotations

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..models import Branch, BranchPricingConfig, BranchExtra, User
from ..models.branches import (
    DEFAULT_EXTRAS,
    DEFAULT_LISTING_PAGE_SIZE,
    DEFAULT_NEW_BADGE_WINDOW_DAYS,
    DEFAULT_PRICE_PER_PAGE,
    EXTRA_KEYS,
)

# Upper bound for per-page prices, extras and listing settings
MAX_PRICING_VALUE = 1_000_000


def require_branch_access(actor: User, branch_id: int | None) -> None:
    """
    Management scope check.

    Owner: any branch. Staff: own branch only. Customers: never.
    """
    if actor.is_owner:
        return
    if actor.is_staff and branch_id is not None and actor.branch_id == branch_id:
        return
    raise AuthorizationError("FORBIDDEN", "Outside of your branch scope")


def require_owner(actor: User) -> None:
    if not actor.is_owner:
        raise AuthorizationError("FORBIDDEN", "Owner access required")


def get_branch(branch_id: int) -> Branch:
    branch = db.session.query(Branch).filter_by(id=branch_id).first()
    if not branch:
        raise NotFoundError("BRANCH_NOT_FOUND", "Branch not found")
    return branch


def list_branches() -> list[Branch]:
    return db.session.query(Branch).order_by(Branch.id.asc()).all()


def build_default_config(branch: Branch) -> BranchPricingConfig:
    config = BranchPricingConfig(
        branch=branch,
        price_per_page=DEFAULT_PRICE_PER_PAGE,
        new_badge_window_days=DEFAULT_NEW_BADGE_WINDOW_DAYS,
        listing_page_size=DEFAULT_LISTING_PAGE_SIZE,
    )
    for key in EXTRA_KEYS:
        label, amount = DEFAULT_EXTRAS[key]
        config.extras.append(BranchExtra(key=key, label=label, amount=amount))
    db.session.add(config)
    return config


def create_branch(actor: User, name: str) -> Branch:
    """Create a branch together with its default pricing config (owner only)."""
    require_owner(actor)
    name = (name or "").strip()
    if not name:
        raise ValidationError("NAME_REQUIRED", "Branch name required")
    if db.session.query(Branch).filter_by(name=name).first():
        raise ValidationError("BRANCH_EXISTS", "Branch already exists")

    branch = Branch(name=name)
    db.session.add(branch)
    build_default_config(branch)
    db.session.commit()
    return branch


def get_pricing_config(branch_id: int) -> BranchPricingConfig | None:
    return db.session.query(BranchPricingConfig).filter_by(branch_id=branch_id).first()


def pricing_configs_by_branch(branch_ids) -> dict[int, BranchPricingConfig]:
    ids = {b for b in branch_ids if b is not None}
    if not ids:
        return {}
    configs = db.session.query(BranchPricingConfig).filter(BranchPricingConfig.branch_id.in_(ids)).all()
    return {config.branch_id: config for config in configs}


def _non_negative_int(data: dict, key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError("INVALID_PRICING", f"{key} must be a non-negative integer")
    try:
        number = int(value)
    except (ValueError, OverflowError):
        raise ValidationError("INVALID_PRICING", f"{key} must be a non-negative integer")
    if number < 0:
        raise ValidationError("INVALID_PRICING", f"{key} must be a non-negative integer")
    if number > MAX_PRICING_VALUE:
        raise ValidationError("INVALID_PRICING", f"{key} must not exceed {MAX_PRICING_VALUE}")
    return number


def update_pricing_config(actor: User, branch_id: int, data: dict) -> BranchPricingConfig:
    """
    Update a branch's pricing configuration.

    Staff may only change their own branch; the owner may change any.
    Only keys present in data are touched. Existing orders are unaffected.
    """
    require_branch_access(actor, branch_id)
    branch = get_branch(branch_id)

    config = get_pricing_config(branch_id) or build_default_config(branch)
    try:
        _apply_pricing(config, data)
    except ValidationError:
        db.session.rollback()
        raise

    db.session.commit()
    return config


def _apply_pricing(config: BranchPricingConfig, data: dict) -> None:
    for key in ("price_per_page", "new_badge_window_days"):
        if key in data:
            setattr(config, key, _non_negative_int(data, key))

    if "listing_page_size" in data:
        page_size = _non_negative_int(data, "listing_page_size")
        if page_size < 1:
            raise ValidationError("INVALID_PRICING", "listing_page_size must be at least 1")
        config.listing_page_size = page_size

    if "extras" in data:
        extras = data["extras"]
        if not isinstance(extras, list):
            raise ValidationError("INVALID_PRICING", "extras must be a list")
        existing = {extra.key: extra for extra in config.extras}
        for item in extras:
            if not isinstance(item, dict) or item.get("key") not in EXTRA_KEYS:
                raise ValidationError(
                    "INVALID_PRICING",
                    f"extras entries need a key out of {', '.join(EXTRA_KEYS)}",
                )
            extra = existing.get(item["key"])
            if extra is None:
                extra = BranchExtra(key=item["key"], label=item["key"].title(), amount=0)
                config.extras.append(extra)
                existing[extra.key] = extra
            if "label" in item:
                label = str(item["label"] or "").strip()
                if not label:
                    raise ValidationError("INVALID_PRICING", "extra label must not be empty")
                extra.label = label[:64]
            if "amount" in item:
                extra.amount = _non_negative_int(item, "amount")
