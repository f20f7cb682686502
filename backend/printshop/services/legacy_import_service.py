# Overview: One-shot migration of a legacy db.json store into the relational schema.

"""
Legacy Store Import

WHY: The shop ran for a while on a single JSON file rewritten after every
request. Two layouts of that file exist in the wild:

- numeric-branch layout: top-level branches[{id, name}], per-branch
  branchSettings, separate faculties/departments/years/modules/groups
  lists, codes with a status field
- named-branch layout: everything catalog-related under "catalogs",
  branches are plain names, one global settings block, codes carry
  sold/redeemed booleans, orders are present

Both are converted into typed rows in ONE transaction. Any failure rolls the
whole import back.

MAPPINGS:
- roles: user -> customer, admin -> branch_staff, supervisor -> owner
- voucher status: redeemed -> CONSUMED, sold -> SOLD, otherwise FRESH
- discount "fixed" -> AMOUNT, pricing modes upper-cased
- timestamps: epoch milliseconds or ISO-8601
- plaintext passwords are re-hashed with bcrypt

Ids of branches (numeric layout), users, codes, products, orders and block
events are preserved. Catalog ids are renumbered: the numeric layout keeps
one counter per level, so ids collide across levels.
A repeated id or username inside one list rejects the whole import. On
PostgreSQL the id sequences are moved past the imported ids before commit.
"""

from __future__ import annotations

from sqlalchemy import func, text

from ..extensions import db
from ..errors import StateConflictError, ValidationError
from ..models import (
    BlockEvent,
    Branch,
    CatalogEntry,
    Order,
    OrderLine,
    Product,
    User,
    VoucherCode,
)
from ..models.auth import ROLE_BRANCH_STAFF, ROLE_CUSTOMER, ROLE_OWNER
from ..models.branches import EXTRA_KEYS
from ..models.catalog import PROFESSOR
from ..models.orders import ORDER_PAID, ORDER_PRINTED
from ..models.products import DISCOUNT_AMOUNT, DISCOUNT_NONE, DISCOUNT_TYPES, MODE_AUTO, PRICING_MODES
from ..models.security import REASON_THREE_WRONG_CODE_ATTEMPTS
from ..models.vouchers import STATUS_CONSUMED, STATUS_FRESH, STATUS_SOLD
from printshop.time_utils import from_legacy_timestamp, utcnow
from .auth_service import hash_password
from .branch_service import build_default_config


ROLE_MAP = {
    "user": ROLE_CUSTOMER,
    "admin": ROLE_BRANCH_STAFF,
    "supervisor": ROLE_OWNER,
}

# (legacy list, kind, parent list, parent key) per layout, broadest first
NUMERIC_CATALOG = (
    ("faculties", "FACULTY", None, None),
    ("departments", "TRACK", "faculties", "facultyId"),
    ("years", "YEAR", "departments", "departmentId"),
    ("modules", "MODULE", "years", "yearId"),
    ("groups", "GROUP", "modules", "moduleId"),
    ("professors", PROFESSOR, "faculties", "facultyId"),
)
NAMED_CATALOG = (
    ("faculties", "FACULTY", None, None),
    ("tracks", "TRACK", "faculties", "facultyId"),
    ("years", "YEAR", "tracks", "trackId"),
    ("modules", "MODULE", "years", "yearId"),
    ("groups", "GROUP", "modules", "moduleId"),
    ("professors", PROFESSOR, "faculties", "facultyId"),
)

# Product/user placement key -> (catalog list, numeric layout key)
PLACEMENT = {
    "faculty_id": ("faculties", "facultyId"),
    "track_id": ("tracks", "trackId"),
    "year_id": ("years", "yearId"),
    "module_id": ("modules", "moduleId"),
    "group_id": ("groups", "groupId"),
}

# Largest id or amount a 64-bit INTEGER column holds
MAX_INTEGER = 2 ** 63 - 1

# Tables whose legacy ids are kept
PRESERVED_ID_MODELS = (Branch, User, VoucherCode, Product, Order, BlockEvent)


def _int_or_none(value):
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if abs(number) > MAX_INTEGER:
        raise ValidationError("INVALID_SNAPSHOT", f"{value!r} is out of range")
    return number


def _non_negative(value) -> int:
    return max(0, _int_or_none(value) or 0)


def _timestamp(value, default=None):
    try:
        moment = from_legacy_timestamp(value)
    except (TypeError, ValueError, OverflowError, OSError):
        raise ValidationError("INVALID_SNAPSHOT", f"Unreadable timestamp {value!r}")
    return moment or default


class _SnapshotImporter:
    """Single-use converter; call run() once."""

    def __init__(self, data: dict):
        self.data = data
        self.named = isinstance(data.get("catalogs"), dict)
        self.now = utcnow()
        self.branches = {}      # legacy branch key (id or name) -> Branch
        self.catalog = {}       # (legacy list, legacy id) -> CatalogEntry
        self.users = {}         # legacy user id -> User
        self.seen = {}          # kind -> ids and names already imported
        self.counts = {
            "branches": 0,
            "catalog_entries": 0,
            "users": 0,
            "voucher_codes": 0,
            "products": 0,
            "orders": 0,
            "block_events": 0,
        }

    def _list(self, key: str) -> list:
        source = self.data["catalogs"] if self.named and key in self.data["catalogs"] else self.data
        value = source.get(key) or []
        if not isinstance(value, list):
            raise ValidationError("INVALID_SNAPSHOT", f"{key} must be a list")
        return [item for item in value if isinstance(item, dict) or key == "branches"]

    def _claim(self, kind: str, value):
        """Reject an id or name that already appeared earlier in the snapshot."""
        if value is None:
            return value
        seen = self.seen.setdefault(kind, set())
        if value in seen:
            raise ValidationError("INVALID_SNAPSHOT", f"{kind} {value!r} appears twice")
        seen.add(value)
        return value

    # Branches

    def _branch(self, key) -> Branch | None:
        """Resolve a legacy branch reference, creating named branches on first use."""
        if key is None or key == "":
            return None
        if key in self.branches:
            return self.branches[key]
        if not self.named:
            return None

        branch = Branch(name=self._claim("branch name", str(key).strip()[:120]), created_at=self.now)
        db.session.add(branch)
        self._apply_settings(build_default_config(branch), self.data.get("settings") or {})
        self.branches[key] = branch
        self.counts["branches"] += 1
        return branch

    def _apply_settings(self, config, settings: dict) -> None:
        if self.named:
            price_per_page = settings.get("pricePerPage")
            badge_days = settings.get("newBadgeDays")
            page_size = settings.get("recentProductsDefaultLimit")
            extras = {
                str(key).upper(): {"amount": amount}
                for key, amount in (settings.get("extras") or {}).items()
            }
        else:
            price_per_page = settings.get("pagePrice")
            badge_days = settings.get("newTagDays")
            page_size = settings.get("latestN")
            extras = {
                str(item.get("key", "")).upper(): item
                for item in settings.get("extras") or []
                if isinstance(item, dict)
            }

        if settings.get("currency"):
            config.currency = str(settings["currency"])[:8]
        if price_per_page is not None:
            config.price_per_page = _non_negative(price_per_page)
        if badge_days is not None:
            config.new_badge_window_days = _non_negative(badge_days)
        if _int_or_none(page_size):
            config.listing_page_size = max(1, _int_or_none(page_size))

        for extra in config.extras:
            legacy = extras.get(extra.key)
            if not legacy:
                continue
            if legacy.get("label"):
                extra.label = str(legacy["label"])[:64]
            if "amount" in legacy:
                extra.amount = _non_negative(legacy["amount"])

    def import_branches(self) -> None:
        if self.named:
            for name in self._list("branches"):
                self._branch(str(name))
            return

        settings = self.data.get("branchSettings") or {}
        for item in self._list("branches"):
            branch_id = _int_or_none(item.get("id"))
            if branch_id is None:
                raise ValidationError("INVALID_SNAPSHOT", "branch without id")
            branch = Branch(
                id=self._claim("branch id", branch_id),
                name=self._claim("branch name", str(item.get("name") or f"Branch {branch_id}").strip()[:120]),
                created_at=self.now,
            )
            db.session.add(branch)
            config = build_default_config(branch)
            self._apply_settings(config, settings.get(str(branch_id)) or {})
            self.branches[branch_id] = branch
            self.counts["branches"] += 1
        db.session.flush()

    # Catalog

    def import_catalog(self) -> None:
        for key, kind, parent_key, parent_field in NAMED_CATALOG if self.named else NUMERIC_CATALOG:
            for item in self._list(key):
                legacy_id = _int_or_none(item.get("id"))
                parent = None
                if parent_key is not None:
                    parent = self.catalog.get((parent_key, _int_or_none(item.get(parent_field))))
                    if parent is None:
                        # Orphan left behind by a cascade delete
                        continue
                    branch = parent.branch_id
                else:
                    legacy_branch = item.get("branch") if self.named else _int_or_none(item.get("branchId"))
                    resolved = self._branch(legacy_branch)
                    if resolved is None:
                        continue
                    db.session.flush()
                    branch = resolved.id

                entry = CatalogEntry(
                    branch_id=branch,
                    parent=parent,
                    kind=kind,
                    name=str(item.get("name") or "").strip()[:255] or kind.title(),
                )
                db.session.add(entry)
                self.catalog[(key, legacy_id)] = entry
                self.counts["catalog_entries"] += 1
            db.session.flush()

    def _placement(self, source: dict, branch_id) -> dict:
        """Map legacy hierarchy ids onto catalog entries of the same branch."""
        result = {}
        for field, (named_list, numeric_key) in PLACEMENT.items():
            if self.named:
                catalog_list, legacy_key = named_list, numeric_key
            elif field == "track_id":
                catalog_list, legacy_key = "departments", "departmentId"
            else:
                catalog_list, legacy_key = named_list, numeric_key
            entry = self.catalog.get((catalog_list, _int_or_none(source.get(legacy_key))))
            result[field] = entry.id if entry is not None and entry.branch_id == branch_id else None
        return result

    # Users

    def import_users(self) -> None:
        for item in self._list("users"):
            user_id = _int_or_none(item.get("id"))
            username = str(item.get("username") or "").strip()
            if user_id is None or not username:
                raise ValidationError("INVALID_SNAPSHOT", "user without id or username")

            role = ROLE_MAP.get(str(item.get("role") or "user"), ROLE_CUSTOMER)
            branch = None
            if role != ROLE_OWNER:
                branch = self._branch(item.get("branch") if self.named else _int_or_none(item.get("branchId")))
                db.session.flush()
            branch_id = branch.id if branch is not None else None

            profile = item.get("profile") if self.named else item
            placement = self._placement(profile or {}, branch_id) if role == ROLE_CUSTOMER else {}

            blocked = bool(item.get("blocked"))
            user = User(
                id=self._claim("user id", user_id),
                username=self._claim("username", username[:64]),
                password_hash=hash_password(str(item.get("password") or "")),
                role=role,
                branch_id=branch_id,
                credit_balance=_non_negative(item.get("creditDzd")),
                blocked=blocked,
                failed_redeem_count=_non_negative(item.get("wrongRedeemAttempts")),
                blocked_count=_non_negative(item.get("blockedCount")) or (1 if blocked else 0),
                created_at=_timestamp(item.get("createdAt"), self.now),
                **placement,
            )
            db.session.add(user)
            self.users[user_id] = user
            self.counts["users"] += 1
        db.session.flush()

    def _user_id(self, value) -> int | None:
        user_id = _int_or_none(value)
        return user_id if user_id in self.users else None

    # Codes

    def _code_state(self, item: dict) -> tuple[str, int | None, int | None]:
        """(status, assigned staff, visible-to staff) for one legacy code."""
        if self.named:
            if item.get("redeemed"):
                status = STATUS_CONSUMED
            elif item.get("sold"):
                status = STATUS_SOLD
            else:
                status = STATUS_FRESH
            assigned = self._user_id(item.get("assignedAdminId"))
            visible = assigned if item.get("visibleToAdmin") else None
            return status, assigned, visible

        status = str(item.get("status") or STATUS_FRESH).upper()
        if status not in (STATUS_FRESH, STATUS_SOLD, STATUS_CONSUMED):
            status = STATUS_FRESH
        visible = self._user_id(item.get("visibleToAdminUserId"))
        assigned = visible or self._user_id(item.get("soldByAdminUserId"))
        return status, assigned, visible

    def import_codes(self) -> None:
        seen = set()
        fallback = next(iter(self.branches.values()), None)
        for item in self._list("codes"):
            code = str(item.get("code") or "").strip().upper()
            if not code:
                raise ValidationError("INVALID_SNAPSHOT", "voucher code without code string")
            if code in seen:
                raise ValidationError("DUPLICATE_CODE", f"voucher code {code} appears twice")
            seen.add(code)

            status, assigned, visible = self._code_state(item)
            sold_by = self._user_id(item.get("soldByAdminId" if self.named else "soldByAdminUserId"))
            consumed_by = self._user_id(item.get("redeemedByUserId" if self.named else "consumedByUserId"))

            if self.named and item.get("branch"):
                branch = self._branch(item["branch"])
            else:
                owner = self.users.get(assigned) or self.users.get(sold_by) or self.users.get(consumed_by)
                branch = owner.branch if owner is not None and owner.branch is not None else fallback
            if branch is None:
                raise ValidationError("INVALID_SNAPSHOT", f"voucher code {code} has no branch")
            db.session.flush()

            db.session.add(VoucherCode(
                id=self._claim("code id", _int_or_none(item.get("id"))),
                code=code,
                amount=_non_negative(item.get("amount")),
                status=status,
                branch_id=branch.id,
                assigned_staff_id=assigned,
                visible_to_staff_id=visible if status == STATUS_FRESH else assigned,
                sold_by_user_id=sold_by,
                consumed_by_user_id=consumed_by,
                created_at=_timestamp(item.get("createdAt"), self.now),
                sold_at=_timestamp(item.get("soldAt")),
                consumed_at=_timestamp(item.get("redeemedAt")),
            ))
            self.counts["voucher_codes"] += 1
        db.session.flush()

    # Products

    def import_products(self) -> None:
        for item in self._list("products"):
            branch = self._branch(item.get("branch") if self.named else _int_or_none(item.get("branchId")))
            if branch is None:
                continue
            db.session.flush()

            mode = str(item.get("mode" if self.named else "priceMode") or MODE_AUTO).upper()
            discount_type = str(item.get("discountType") or DISCOUNT_NONE).upper()
            if discount_type == "FIXED":
                discount_type = DISCOUNT_AMOUNT
            extra_key = str(item.get("extraKey") or "").upper() or None
            hidden = bool(item.get("hidden")) if self.named else item.get("visible") is False

            professor = self.catalog.get(("professors", _int_or_none(item.get("professorId"))))
            created_at = _timestamp(item.get("createdAt"), self.now)
            db.session.add(Product(
                id=self._claim("product id", _int_or_none(item.get("id"))),
                branch_id=branch.id,
                title=str(item.get("title") or "Document").strip()[:255],
                note=str(item.get("note") or "").strip() or None,
                pages=max(1, _int_or_none(item.get("pages")) or 1),
                mode=mode if mode in PRICING_MODES else MODE_AUTO,
                fixed_price=_non_negative(item.get("fixedPrice")),
                extra_key=extra_key if extra_key in EXTRA_KEYS else None,
                discount_type=discount_type if discount_type in DISCOUNT_TYPES else DISCOUNT_NONE,
                discount_value=_non_negative(item.get("discountValue")),
                hidden=hidden,
                pdf_path=item.get("pdfPath") or None,
                thumb_path=item.get("thumbPath") or None,
                professor_id=professor.id if professor is not None and professor.branch_id == branch.id else None,
                created_at=created_at,
                updated_at=created_at,
                **self._placement(item, branch.id),
            ))
            self.counts["products"] += 1
        db.session.flush()

    # Orders and block events

    def import_orders(self) -> None:
        for item in self._list("orders"):
            buyer = self.users.get(_int_or_none(item.get("userId")))
            if buyer is None or buyer.branch_id is None:
                continue

            order = Order(
                id=self._claim("order id", _int_or_none(item.get("id"))),
                user_id=buyer.id,
                branch_id=buyer.branch_id,
                total=_non_negative(item.get("sum")),
                status=ORDER_PRINTED if str(item.get("status") or "").lower() == "printed" else ORDER_PAID,
                created_at=_timestamp(item.get("createdAt"), self.now),
                printed_at=_timestamp(item.get("printedAt")),
            )
            for position, line in enumerate(item.get("items") or []):
                qty = max(1, _int_or_none(line.get("qty")) or 1)
                unit_price = _non_negative(line.get("unitPrice"))
                order.lines.append(OrderLine(
                    position=position,
                    product_id=_int_or_none(line.get("productId")) or 0,
                    title=str(line.get("title") or "").strip()[:255] or "Document",
                    qty=qty,
                    unit_price=unit_price,
                    line_total=_non_negative(line.get("lineTotal")) or unit_price * qty,
                ))
            db.session.add(order)
            self.counts["orders"] += 1
        db.session.flush()

    def import_block_events(self) -> None:
        for item in self._list("blockEvents"):
            user = self.users.get(_int_or_none(item.get("userId")))
            if user is None:
                continue
            db.session.add(BlockEvent(
                id=self._claim("block event id", _int_or_none(item.get("id"))),
                user_id=user.id,
                username=user.username,
                branch_id=user.branch_id,
                reason=REASON_THREE_WRONG_CODE_ATTEMPTS,
                occurred_at=_timestamp(item.get("at"), self.now),
            ))
            self.counts["block_events"] += 1
        db.session.flush()

    def run(self) -> dict[str, int]:
        self.import_branches()
        self.import_catalog()
        self.import_users()
        self.import_codes()
        self.import_products()
        self.import_orders()
        self.import_block_events()
        return self.counts


def _advance_id_sequences() -> None:
    """Move PostgreSQL id sequences past the explicit ids written by the import."""
    if db.session.get_bind().dialect.name != "postgresql":
        return
    for model in PRESERVED_ID_MODELS:
        table = model.__table__
        highest = db.session.query(func.max(table.c.id)).scalar() or 0
        db.session.execute(
            text("SELECT setval(pg_get_serial_sequence(:table, 'id'), :value, false)"),
            {"table": table.name, "value": highest + 1},
        )


def import_snapshot(data) -> dict[str, int]:
    """
    Import a legacy store into an empty database.

    Returns per-entity counts. Raises StateConflictError when branches or
    users already exist, ValidationError on unreadable input.
    """
    if not isinstance(data, dict):
        raise ValidationError("INVALID_SNAPSHOT", "Snapshot must be a JSON object")
    if db.session.query(Branch.id).first() or db.session.query(User.id).first():
        raise StateConflictError("DATABASE_NOT_EMPTY", "Import requires an empty database")

    try:
        counts = _SnapshotImporter(data).run()
        _advance_id_sequences()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return counts
