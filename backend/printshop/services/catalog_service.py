# Overview: Read-only lookups against the curriculum catalog, used to validate customer profiles.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import CatalogEntry, User
from ..models.auth import PROFILE_FIELDS
from ..models.catalog import HIERARCHY_KINDS, PROFESSOR

FIELD_KINDS = dict(zip(PROFILE_FIELDS, HIERARCHY_KINDS))
PARENT_KIND = {child: parent for parent, child in zip(HIERARCHY_KINDS, HIERARCHY_KINDS[1:])}


def _ancestors(entry: CatalogEntry) -> dict[str, int]:
    """Map kind -> id for the entry and everything above it."""
    chain = {}
    seen = set()
    node = entry
    while node is not None and node.id not in seen:
        seen.add(node.id)
        chain[node.kind] = node.id
        node = node.parent
    return chain


def _coerce_id(field: str, value) -> int | None:
    if value is None or value == "" or value == 0:
        return None
    if isinstance(value, bool):
        raise ValidationError("INVALID_PROFILE", f"{field} must be an integer id")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("INVALID_PROFILE", f"{field} must be an integer id")


def validate_profile(branch_id: int | None, profile: dict) -> dict[str, int | None]:
    """
    Normalise and check a curriculum profile against the catalog.

    Every referenced entry must exist, be of the right level, belong to
    branch_id, and sit under the other levels given in the same profile.
    Missing levels stay NULL (they match every product at that level).
    """
    normalized = {field: _coerce_id(field, profile.get(field)) for field in PROFILE_FIELDS}
    if any(v is not None for v in normalized.values()) and branch_id is None:
        raise ValidationError("INVALID_PROFILE", "A branch is required to choose a curriculum profile")

    for field, entry_id in normalized.items():
        if entry_id is None:
            continue
        entry = db.session.query(CatalogEntry).filter_by(id=entry_id).first()
        if not entry or entry.kind != FIELD_KINDS[field]:
            raise ValidationError("INVALID_PROFILE", f"{field} {entry_id} does not exist")
        if entry.branch_id != branch_id:
            raise ValidationError("INVALID_PROFILE", f"{field} {entry_id} belongs to another branch")

        chain = _ancestors(entry)
        for other_field, other_id in normalized.items():
            other_kind = FIELD_KINDS[other_field]
            if other_id is None or other_kind == entry.kind:
                continue
            if other_kind in chain and chain[other_kind] != other_id:
                raise ValidationError(
                    "INVALID_PROFILE",
                    f"{field} {entry_id} is not part of {other_field} {other_id}",
                )
    return normalized


def update_profile(user: User, profile: dict) -> User:
    """Replace the caller's curriculum profile (customers only choose their own)."""
    normalized = validate_profile(user.branch_id, profile)
    for field, value in normalized.items():
        setattr(user, field, value)
    db.session.commit()
    return user


def add_entry(branch_id: int, kind: str, name: str, parent_id: int | None = None) -> CatalogEntry:
    """Seed helper for the CLI."""
    kind = (kind or "").upper()
    if kind not in HIERARCHY_KINDS and kind != PROFESSOR:
        raise ValidationError("INVALID_KIND", f"Unknown catalog kind {kind}")
    name = (name or "").strip()
    if not name:
        raise ValidationError("NAME_REQUIRED", "Catalog entry name required")

    expected_parent = PARENT_KIND.get(kind)
    if kind == PROFESSOR:
        expected_parent = "FACULTY"
    if parent_id is not None:
        parent = db.session.query(CatalogEntry).filter_by(id=parent_id).first()
        if not parent:
            raise NotFoundError("PARENT_NOT_FOUND", "Parent catalog entry not found")
        if parent.kind != expected_parent or parent.branch_id != branch_id:
            raise ValidationError("INVALID_PARENT", f"{kind} must sit under a {expected_parent} of the same branch")
    elif expected_parent is not None and kind != PROFESSOR:
        raise ValidationError("INVALID_PARENT", f"{kind} requires a parent {expected_parent}")

    entry = CatalogEntry(branch_id=branch_id, kind=kind, name=name, parent_id=parent_id)
    db.session.add(entry)
    db.session.commit()
    return entry
