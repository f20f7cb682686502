"""
Profile matching: which products a user may see and buy.

is_visible is a pure predicate. It is applied to every customer listing and
again to every cart line at checkout, so a customer cannot buy outside their
profile by posting product ids directly.

MATCHING (customers only):
- product.branch_id must equal user.branch_id
- for each level (faculty, track, year, module, group) a mismatch between two
  non-null values disqualifies; NULL on either side matches anything

Staff and owner always match; the hidden flag is enforced by the listing and
order code, not here.
"""

from __future__ import annotations

from ..models.auth import PROFILE_FIELDS, ROLE_BRANCH_STAFF, ROLE_OWNER


def is_visible(product, user) -> bool:
    if user is None:
        return False
    if user.role in (ROLE_BRANCH_STAFF, ROLE_OWNER):
        return True

    if user.branch_id is None or product.branch_id != user.branch_id:
        return False

    for field in PROFILE_FIELDS:
        wanted = getattr(user, field, None)
        offered = getattr(product, field, None)
        if wanted is not None and offered is not None and int(wanted) != int(offered):
            return False

    return True
