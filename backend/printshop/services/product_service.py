# Overview: Product management and priced listings for customers and staff.

"""
Product Service

WHY: Products are the only thing customers spend credit on. Listings and
checkout must agree on what a customer can see and what it costs, so both
go through profile_service.is_visible and pricing_service.price.

SCOPE:
- Staff manage products of their own branch (branch forced on create)
- Owner manages products of any branch
- Customers see non-hidden products of their branch that match their profile
"""

from __future__ import annotations

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..models import CatalogEntry, Product, User
from ..models.branches import EXTRA_KEYS
from ..models.catalog import PROFESSOR
from ..models.products import (
    DISCOUNT_AMOUNT,
    DISCOUNT_NONE,
    DISCOUNT_PERCENT,
    DISCOUNT_TYPES,
    MODE_AUTO,
    MODE_AUTO_PLUS_EXTRA,
    MODE_FIXED,
    PRICING_MODES,
)
from printshop.time_utils import is_within_days, utcnow
from . import pricing_service
from .branch_service import get_branch, get_pricing_config, pricing_configs_by_branch, require_branch_access
from .catalog_service import validate_profile
from .profile_service import is_visible


MAX_LISTING_LIMIT = 50

# Upper bound for pages, fixed_price and discount_value
MAX_FIELD_VALUE = 1_000_000

# Aliases accepted on write
DISCOUNT_ALIASES = {"FIXED": DISCOUNT_AMOUNT}

EDITABLE_FIELDS = (
    "title",
    "note",
    "pages",
    "mode",
    "fixed_price",
    "extra_key",
    "discount_type",
    "discount_value",
    "hidden",
    "pdf_path",
    "thumb_path",
)
PLACEMENT_FIELDS = ("faculty_id", "track_id", "year_id", "module_id", "group_id")


def _int_field(data: dict, key: str, code: str, minimum: int = 0, maximum: int = MAX_FIELD_VALUE) -> int:
    value = data.get(key)
    if isinstance(value, bool):
        raise ValidationError(code, f"{key} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(code, f"{key} must be an integer")
    if number < minimum:
        raise ValidationError(code, f"{key} must be at least {minimum}")
    if number > maximum:
        raise ValidationError(code, f"{key} must not exceed {maximum}")
    return number


def _apply_pricing_fields(product: Product, data: dict) -> None:
    if "mode" in data:
        mode = str(data["mode"] or MODE_AUTO).strip().upper()
        if mode not in PRICING_MODES:
            raise ValidationError("INVALID_PRICING", f"mode must be one of {', '.join(PRICING_MODES)}")
        product.mode = mode

    if "fixed_price" in data:
        product.fixed_price = _int_field(data, "fixed_price", "INVALID_PRICING")

    if "extra_key" in data:
        key = str(data["extra_key"] or "").strip().upper() or None
        if key is not None and key not in EXTRA_KEYS:
            raise ValidationError("INVALID_PRICING", f"extra_key must be one of {', '.join(EXTRA_KEYS)}")
        product.extra_key = key

    if "discount_type" in data:
        discount_type = str(data["discount_type"] or DISCOUNT_NONE).strip().upper()
        discount_type = DISCOUNT_ALIASES.get(discount_type, discount_type)
        if discount_type not in DISCOUNT_TYPES:
            raise ValidationError("INVALID_PRICING", f"discount_type must be one of {', '.join(DISCOUNT_TYPES)}")
        product.discount_type = discount_type

    if "discount_value" in data:
        product.discount_value = _int_field(data, "discount_value", "INVALID_PRICING")

    if product.discount_type == DISCOUNT_PERCENT and (product.discount_value or 0) > 100:
        raise ValidationError("INVALID_PRICING", "A percent discount cannot exceed 100")
    if product.mode == MODE_FIXED and product.fixed_price is None:
        raise ValidationError("INVALID_PRICING", "fixed_price required for FIXED products")
    if product.mode == MODE_AUTO_PLUS_EXTRA and not product.extra_key:
        raise ValidationError("INVALID_PRICING", "extra_key required for AUTO_PLUS_EXTRA products")


def _apply_fields(product: Product, data: dict) -> None:
    if "title" in data:
        title = str(data["title"] or "").strip()
        if not title:
            raise ValidationError("TITLE_REQUIRED", "Product title required")
        product.title = title[:255]

    if "note" in data:
        product.note = str(data["note"] or "").strip() or None

    if "pages" in data:
        product.pages = _int_field(data, "pages", "INVALID_PAGES", minimum=1)

    if "hidden" in data:
        product.hidden = bool(data["hidden"])

    for key in ("pdf_path", "thumb_path"):
        if key in data:
            setattr(product, key, str(data[key] or "").strip() or None)

    _apply_pricing_fields(product, data)


def _apply_placement(product: Product, data: dict) -> None:
    """Curriculum placement must exist in the product's branch catalog."""
    if any(field in data for field in PLACEMENT_FIELDS):
        current = {field: getattr(product, field) for field in PLACEMENT_FIELDS}
        current.update({field: data[field] for field in PLACEMENT_FIELDS if field in data})
        for field, value in validate_profile(product.branch_id, current).items():
            setattr(product, field, value)

    if "professor_id" in data:
        professor_id = data["professor_id"] or None
        if professor_id is not None:
            entry = db.session.query(CatalogEntry).filter_by(id=professor_id, kind=PROFESSOR).first()
            if not entry or entry.branch_id != product.branch_id:
                raise ValidationError("INVALID_PROFILE", f"professor_id {professor_id} does not exist")
        product.professor_id = professor_id


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise NotFoundError("PRODUCT_NOT_FOUND", "Product not found")
    return product


def create_product(actor: User, data: dict) -> Product:
    """
    Create a product from upload metadata.

    Staff always create in their own branch; the owner names the branch.
    pages arrives already counted by the upload pipeline.
    """
    if actor.is_staff:
        branch_id = actor.branch_id
    elif actor.is_owner:
        branch_id = data.get("branch_id")
        if branch_id is None:
            raise ValidationError("BRANCH_REQUIRED", "branch_id required")
    else:
        raise AuthorizationError("FORBIDDEN", "Staff access required")
    require_branch_access(actor, branch_id)
    get_branch(branch_id)

    product = Product(
        branch_id=branch_id,
        pages=1,
        mode=MODE_AUTO,
        fixed_price=0,
        discount_type=DISCOUNT_NONE,
        discount_value=0,
        hidden=False,
    )
    fields = {"title": data.get("title"), "pages": data.get("pages", 1)}
    fields.update({k: v for k, v in data.items() if k in EDITABLE_FIELDS and k not in fields})
    _apply_fields(product, fields)
    _apply_placement(product, data)

    now = utcnow()
    product.created_at = now
    product.updated_at = now

    db.session.add(product)
    db.session.commit()
    return product


def update_product(actor: User, product_id: int, data: dict) -> Product:
    """Change pricing, visibility or metadata. The branch never changes."""
    product = get_product(product_id)
    require_branch_access(actor, product.branch_id)

    try:
        _apply_fields(product, {k: v for k, v in data.items() if k in EDITABLE_FIELDS})
        _apply_placement(product, data)
    except ValidationError:
        db.session.rollback()
        raise

    db.session.commit()
    return product


def delete_product(actor: User, product_id: int) -> None:
    """Remove a product. Past orders keep their own title and price snapshot."""
    product = get_product(product_id)
    require_branch_access(actor, product.branch_id)
    db.session.delete(product)
    db.session.commit()


def priced_dict(product: Product, config, now=None) -> dict:
    quote = pricing_service.price(product, config)
    window = config.new_badge_window_days if config is not None else 0
    data = product.to_dict()
    data.update(quote.to_dict())
    data["is_new"] = is_within_days(product.created_at, window, now)
    return data


def _clamp_limit(limit, default: int) -> int:
    if limit is None or limit == "":
        limit = default
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = default
    return max(1, min(MAX_LISTING_LIMIT, limit))


def _clamp_offset(offset) -> int:
    try:
        return max(0, int(offset or 0))
    except (TypeError, ValueError):
        return 0


def list_for_customer(user: User, limit=None, offset=0) -> dict:
    """
    Customer listing: not hidden, profile matches, newest first.

    limit defaults to the branch listing_page_size and is clamped to 1..50.
    """
    if user.branch_id is None:
        return {"items": [], "total": 0, "limit": 0, "offset": 0}

    config = get_pricing_config(user.branch_id)
    default_limit = config.listing_page_size if config is not None else MAX_LISTING_LIMIT
    limit = _clamp_limit(limit, default_limit)
    offset = _clamp_offset(offset)

    candidates = (
        db.session.query(Product)
        .filter(Product.branch_id == user.branch_id, Product.hidden.is_(False))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )
    matching = [product for product in candidates if is_visible(product, user)]

    now = utcnow()
    page = matching[offset:offset + limit]
    return {
        "items": [priced_dict(product, config, now) for product in page],
        "total": len(matching),
        "limit": limit,
        "offset": offset,
    }


def list_for_management(actor: User, branch_id=None) -> list[dict]:
    """Staff: own branch including hidden. Owner: all branches or one."""
    query = db.session.query(Product)
    if actor.is_owner:
        if branch_id is not None:
            query = query.filter(Product.branch_id == branch_id)
    else:
        require_branch_access(actor, actor.branch_id)
        query = query.filter(Product.branch_id == actor.branch_id)

    products = query.order_by(Product.created_at.desc(), Product.id.desc()).all()
    configs = pricing_configs_by_branch(p.branch_id for p in products)
    now = utcnow()
    return [priced_dict(product, configs.get(product.branch_id), now) for product in products]


def price_preview(actor: User, product_id: int) -> dict:
    """Current list and final price of one product, as the actor may see it."""
    product = get_product(product_id)
    if actor.is_customer:
        if product.hidden or not is_visible(product, actor):
            raise NotFoundError("PRODUCT_NOT_FOUND", "Product not found")
    else:
        require_branch_access(actor, product.branch_id)
    return priced_dict(product, get_pricing_config(product.branch_id))
