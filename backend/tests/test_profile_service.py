"""
Profile matching tests.

A NULL level on either side matches anything; two non-null values must be
equal. Staff and owner see everything.
"""

from types import SimpleNamespace

from printshop.services.profile_service import is_visible


def customer(branch_id=1, **profile):
    values = {f: None for f in ("faculty_id", "track_id", "year_id", "module_id", "group_id")}
    values.update(profile)
    return SimpleNamespace(role="customer", branch_id=branch_id, **values)


def product(branch_id=1, **placement):
    values = {f: None for f in ("faculty_id", "track_id", "year_id", "module_id", "group_id")}
    values.update(placement)
    return SimpleNamespace(branch_id=branch_id, **values)


class TestIsVisible:

    def test_empty_profile_sees_every_product_of_branch(self):
        assert is_visible(product(faculty_id=7, year_id=3), customer())

    def test_unplaced_product_visible_to_any_profile(self):
        assert is_visible(product(), customer(faculty_id=7, year_id=3))

    def test_matching_levels(self):
        assert is_visible(product(faculty_id=7, track_id=2), customer(faculty_id=7, track_id=2, year_id=4))

    def test_mismatched_level_hides_product(self):
        assert not is_visible(product(faculty_id=9), customer(faculty_id=7))

    def test_mismatch_at_deeper_level(self):
        assert not is_visible(product(faculty_id=7, group_id=11), customer(faculty_id=7, group_id=12))

    def test_other_branch_hidden(self):
        assert not is_visible(product(branch_id=2), customer(branch_id=1))

    def test_customer_without_branch_sees_nothing(self):
        assert not is_visible(product(), customer(branch_id=None))

    def test_staff_and_owner_always_see(self):
        staff = SimpleNamespace(role="branch_staff", branch_id=1)
        boss = SimpleNamespace(role="owner", branch_id=None)
        assert is_visible(product(branch_id=2, faculty_id=9), staff)
        assert is_visible(product(branch_id=2, faculty_id=9), boss)

    def test_no_user(self):
        assert not is_visible(product(), None)
