from __future__ import annotations

from ..extensions import db


# Curriculum hierarchy, parent -> child
HIERARCHY_KINDS = ("FACULTY", "TRACK", "YEAR", "MODULE", "GROUP")
PROFESSOR = "PROFESSOR"


class CatalogEntry(db.Model):
    """
    Read-only view of the curriculum catalog.

    One row per faculty/track/year/module/group (and professor), linked to its
    parent level and to the branch it belongs to. Catalog CRUD is owned by the
    catalog screens; settlement only uses it to check profile consistency.
    """
    __tablename__ = "catalog_entries"
    __table_args__ = (
        db.Index("ix_catalog_entries_branch_kind", "branch_id", "kind"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("catalog_entries.id"), nullable=True, index=True)

    kind = db.Column(db.String(16), nullable=False)  # FACULTY, TRACK, YEAR, MODULE, GROUP, PROFESSOR
    name = db.Column(db.String(255), nullable=False)

    parent = db.relationship("CatalogEntry", remote_side=[id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "parent_id": self.parent_id,
            "kind": self.kind,
            "name": self.name,
        }
