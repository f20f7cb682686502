"""
Voucher ledger tests.

Verifies:
- Only the owner generates codes; amount and batch size are validated
- Codes are unique, FRESH, targeted at one staff member and invisible
- Only the staff member a FRESH code is visible to can sell it
- Redemption credits exactly once, only for SOLD codes of the same branch
- Staff listings never reveal unsold codes
"""

import re

import pytest

from printshop.errors import (
    AccountBlockedError,
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from printshop.models import VoucherCode
from printshop.services import voucher_service


CODE_PATTERN = re.compile(r"^[A-Z2-9]{4}-[A-Z2-9]{4}-[A-Z2-9]{4}$")


@pytest.fixture
def released_code(owner, staff_a):
    """A FRESH 500 code visible to staff_a."""
    voucher = voucher_service.generate_codes(owner, 500, staff_a.id, 1)[0]
    return voucher_service.set_visibility(owner, voucher.id, staff_a.id)


@pytest.fixture
def sold_code(staff_a, released_code):
    return voucher_service.mark_sold(staff_a, released_code.id)


# =============================================================================
# GENERATION
# =============================================================================


class TestGenerateCodes:

    def test_generates_fresh_invisible_batch(self, owner, staff_a):
        codes = voucher_service.generate_codes(owner, 1000, staff_a.id, 5)

        assert len(codes) == 5
        assert len({c.code for c in codes}) == 5
        for voucher in codes:
            assert CODE_PATTERN.match(voucher.code)
            assert voucher.amount == 1000
            assert voucher.status == "FRESH"
            assert voucher.branch_id == staff_a.branch_id
            assert voucher.assigned_staff_id == staff_a.id
            assert voucher.visible_to_staff_id is None
            assert voucher.created_by_user_id == owner.id

    def test_generated_codes_avoid_ambiguous_characters(self):
        for _ in range(50):
            code = voucher_service.generate_code()
            assert not set(code) & set("01OI")

    def test_colliding_code_is_regenerated(self, owner, staff_a, monkeypatch):
        existing = voucher_service.generate_codes(owner, 500, staff_a.id, 1)[0].code
        candidates = iter([existing, "NEWC-DEFG-3456"])
        monkeypatch.setattr(voucher_service, "generate_code", lambda: next(candidates))

        voucher = voucher_service.generate_codes(owner, 500, staff_a.id, 1)[0]

        assert voucher.code == "NEWC-DEFG-3456"
        assert voucher.code != existing

    @pytest.mark.parametrize("amount", [0, 100, 750, "abc", None])
    def test_rejects_unknown_amount(self, owner, staff_a, amount):
        with pytest.raises(ValidationError) as exc:
            voucher_service.generate_codes(owner, amount, staff_a.id, 1)
        assert exc.value.code == "INVALID_AMOUNT"

    @pytest.mark.parametrize("count", [0, -1, 51, "many"])
    def test_rejects_count_out_of_range(self, owner, staff_a, count):
        with pytest.raises(ValidationError) as exc:
            voucher_service.generate_codes(owner, 500, staff_a.id, count)
        assert exc.value.code == "INVALID_COUNT"

    def test_unknown_staff(self, owner, customer_a):
        with pytest.raises(NotFoundError) as exc:
            voucher_service.generate_codes(owner, 500, customer_a.id, 1)
        assert exc.value.code == "STAFF_NOT_FOUND"

    def test_staff_cannot_generate(self, staff_a, db_session):
        with pytest.raises(AuthorizationError):
            voucher_service.generate_codes(staff_a, 500, staff_a.id, 1)
        assert db_session.query(VoucherCode).count() == 0


# =============================================================================
# VISIBILITY AND SALE
# =============================================================================


class TestVisibilityAndSale:

    def test_release_makes_code_visible(self, released_code, staff_a):
        assert released_code.visible_to_staff_id == staff_a.id

    def test_release_to_other_branch_retargets_code(self, owner, released_code, staff_b):
        voucher = voucher_service.set_visibility(owner, released_code.id, staff_b.id)
        assert voucher.visible_to_staff_id == staff_b.id
        assert voucher.assigned_staff_id == staff_b.id
        assert voucher.branch_id == staff_b.branch_id

    def test_withdraw(self, owner, released_code):
        voucher = voucher_service.set_visibility(owner, released_code.id, None)
        assert voucher.visible_to_staff_id is None

    def test_visibility_frozen_after_sale(self, owner, sold_code, staff_b):
        with pytest.raises(StateConflictError) as exc:
            voucher_service.set_visibility(owner, sold_code.id, staff_b.id)
        assert exc.value.code == "INVALID_STATE"

    def test_sell(self, sold_code, staff_a):
        assert sold_code.status == "SOLD"
        assert sold_code.sold_by_user_id == staff_a.id
        assert sold_code.sold_at is not None

    def test_cannot_sell_twice(self, sold_code, staff_a):
        with pytest.raises(StateConflictError) as exc:
            voucher_service.mark_sold(staff_a, sold_code.id)
        assert exc.value.code == "INVALID_STATE"

    def test_cannot_sell_invisible_code(self, owner, staff_a):
        voucher = voucher_service.generate_codes(owner, 500, staff_a.id, 1)[0]
        with pytest.raises(AuthorizationError) as exc:
            voucher_service.mark_sold(staff_a, voucher.id)
        assert exc.value.code == "NOT_ASSIGNED"

    def test_other_staff_cannot_sell(self, released_code, staff_b):
        with pytest.raises(AuthorizationError) as exc:
            voucher_service.mark_sold(staff_b, released_code.id)
        assert exc.value.code == "NOT_ASSIGNED"

    def test_unknown_code(self, staff_a):
        with pytest.raises(NotFoundError) as exc:
            voucher_service.mark_sold(staff_a, 999999)
        assert exc.value.code == "CODE_NOT_FOUND"


# =============================================================================
# REDEMPTION
# =============================================================================


class TestRedeem:

    def test_redeem_credits_balance(self, sold_code, customer_a):
        voucher, user = voucher_service.redeem(customer_a, sold_code.code)

        assert voucher.status == "CONSUMED"
        assert voucher.consumed_by_user_id == customer_a.id
        assert voucher.consumed_at is not None
        assert user.credit_balance == 500
        assert user.failed_redeem_count == 0

    def test_input_is_normalized(self, sold_code, customer_a):
        _, user = voucher_service.redeem(customer_a, f"  {sold_code.code.lower()} ")
        assert user.credit_balance == 500

    def test_second_redeem_fails_and_counts(self, sold_code, customer_a):
        voucher_service.redeem(customer_a, sold_code.code)

        with pytest.raises(NotFoundError) as exc:
            voucher_service.redeem(customer_a, sold_code.code)

        assert exc.value.code == "INVALID_CODE"
        assert exc.value.details == {"attempts_remaining": 2, "blocked": False}
        assert customer_a.credit_balance == 500
        assert customer_a.failed_redeem_count == 1

    def test_fresh_code_cannot_be_redeemed(self, released_code, customer_a):
        with pytest.raises(NotFoundError) as exc:
            voucher_service.redeem(customer_a, released_code.code)
        assert exc.value.code == "INVALID_CODE"
        assert released_code.status == "FRESH"
        assert customer_a.credit_balance == 0

    def test_other_branch_code_is_invalid(self, sold_code, customer_b):
        with pytest.raises(NotFoundError) as exc:
            voucher_service.redeem(customer_b, sold_code.code)
        assert exc.value.code == "INVALID_CODE"
        assert sold_code.status == "SOLD"
        assert customer_b.failed_redeem_count == 1

    def test_unknown_code_is_invalid(self, customer_a):
        with pytest.raises(NotFoundError) as exc:
            voucher_service.redeem(customer_a, "AAAA-BBBB-CCCC")
        assert exc.value.code == "INVALID_CODE"

    def test_empty_code_is_not_an_attempt(self, customer_a):
        with pytest.raises(ValidationError) as exc:
            voucher_service.redeem(customer_a, "   ")
        assert exc.value.code == "CODE_REQUIRED"
        assert customer_a.failed_redeem_count == 0

    def test_blocked_customer_rejected_before_lookup(self, sold_code, customer_a, db_session):
        customer_a.blocked = True
        customer_a.failed_redeem_count = 3
        db_session.commit()

        with pytest.raises(AccountBlockedError):
            voucher_service.redeem(customer_a, sold_code.code)

        assert sold_code.status == "SOLD"
        assert customer_a.credit_balance == 0
        assert customer_a.failed_redeem_count == 3


# =============================================================================
# LISTINGS AND STATS
# =============================================================================


class TestListings:

    def test_staff_sees_masked_fresh_codes(self, released_code, staff_a):
        listed = voucher_service.list_codes(staff_a)
        assert len(listed) == 1
        assert listed[0]["code"] != released_code.code
        assert listed[0]["code"].endswith(released_code.code[-2:])
        assert listed[0]["code"].startswith("****-")

    def test_staff_sees_sold_codes_in_full(self, sold_code, staff_a):
        listed = voucher_service.list_codes(staff_a)
        assert listed[0]["code"] == sold_code.code

    def test_staff_only_sees_own_codes(self, released_code, staff_b):
        assert voucher_service.list_codes(staff_b) == []

    def test_staff_listing_orders_fresh_first(self, owner, staff_a, sold_code):
        fresh = voucher_service.generate_codes(owner, 2000, staff_a.id, 1)[0]
        voucher_service.set_visibility(owner, fresh.id, staff_a.id)

        statuses = [c["status"] for c in voucher_service.list_codes(staff_a)]
        assert statuses == ["FRESH", "SOLD"]

    def test_owner_sees_everything_revealed(self, owner, staff_a, released_code):
        voucher_service.generate_codes(owner, 500, staff_a.id, 2)
        listed = voucher_service.list_codes(owner)
        assert len(listed) == 3
        assert released_code.code in {c["code"] for c in listed}

    def test_customer_cannot_list(self, customer_a):
        with pytest.raises(AuthorizationError):
            voucher_service.list_codes(customer_a)

    def test_stats(self, owner, staff_a, sold_code, customer_a):
        fresh = voucher_service.generate_codes(owner, 1000, staff_a.id, 1)[0]
        voucher_service.set_visibility(owner, fresh.id, staff_a.id)
        voucher_service.redeem(customer_a, sold_code.code)

        stats = voucher_service.code_stats(owner)
        row = next(r for r in stats["per_staff"] if r["staff_id"] == staff_a.id)
        assert row["count_visible"] == 1
        assert row["sum_visible"] == 1000
        assert row["count_sold"] == 0
        assert row["count_redeemed"] == 1
        assert row["sum_redeemed"] == 500
        assert stats["total_redeemed"] == 500
