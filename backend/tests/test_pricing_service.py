"""
Pricing engine tests.

Verifies:
- base price is pages * price_per_page, pages <= 0 counted as one page
- FIXED ignores pages, AUTO_PLUS_EXTRA adds the configured extra
- discounts never raise the price and floor at zero
- PERCENT rounds half up
"""

from types import SimpleNamespace

import pytest

from printshop.models import BranchExtra, BranchPricingConfig
from printshop.services import pricing_service


def make_config(price_per_page=10, **extras):
    config = BranchPricingConfig(price_per_page=price_per_page)
    for key, amount in extras.items():
        config.extras.append(BranchExtra(key=key, label=key.title(), amount=amount))
    return config


def make_product(**fields):
    values = {
        "pages": 20,
        "mode": "AUTO",
        "fixed_price": 0,
        "extra_key": None,
        "discount_type": "NONE",
        "discount_value": 0,
    }
    values.update(fields)
    return SimpleNamespace(**values)


# =============================================================================
# LIST PRICE
# =============================================================================


class TestListPrice:

    def test_auto_uses_pages_times_page_price(self):
        quote = pricing_service.price(make_product(pages=20), make_config(10))
        assert quote.list_price == 200
        assert quote.final_price == 200
        assert not quote.discounted

    @pytest.mark.parametrize("pages", [0, -5, None])
    def test_non_positive_pages_count_as_one(self, pages):
        assert pricing_service.list_price(make_product(pages=pages), make_config(10)) == 10

    def test_fixed_ignores_pages(self):
        product = make_product(pages=300, mode="FIXED", fixed_price=450)
        assert pricing_service.list_price(product, make_config(10)) == 450

    def test_auto_plus_extra_adds_configured_extra(self):
        product = make_product(pages=20, mode="AUTO_PLUS_EXTRA", extra_key="EXTRA2")
        assert pricing_service.list_price(product, make_config(10, EXTRA2=50)) == 250

    def test_unknown_extra_key_adds_nothing(self):
        product = make_product(pages=20, mode="AUTO_PLUS_EXTRA", extra_key="EXTRA9")
        assert pricing_service.list_price(product, make_config(10, EXTRA2=50)) == 200

    def test_missing_config_falls_back_to_default_page_price(self):
        assert pricing_service.list_price(make_product(pages=3), None) == 30

    def test_unrecognised_mode_prices_like_auto(self):
        assert pricing_service.list_price(make_product(mode="WHATEVER"), make_config(10)) == 200


# =============================================================================
# DISCOUNTS
# =============================================================================


class TestDiscounts:

    def test_percent_discount(self):
        product = make_product(pages=20, discount_type="PERCENT", discount_value=10)
        quote = pricing_service.price(product, make_config(10))
        assert quote.to_dict() == {"list_price": 200, "final_price": 180}
        assert quote.discounted

    def test_percent_rounds_half_up(self):
        # 25 * 0.9 = 22.5
        assert pricing_service.apply_discount(25, "PERCENT", 10) == 23

    def test_percent_above_hundred_floors_at_zero(self):
        assert pricing_service.apply_discount(200, "PERCENT", 150) == 0

    def test_amount_discount_floors_at_zero(self):
        assert pricing_service.apply_discount(200, "AMOUNT", 50) == 150
        assert pricing_service.apply_discount(200, "AMOUNT", 500) == 0

    def test_negative_discount_never_raises_price(self):
        assert pricing_service.apply_discount(200, "AMOUNT", -50) == 200
        assert pricing_service.apply_discount(200, "PERCENT", -10) == 200

    def test_unknown_discount_type_is_ignored(self):
        assert pricing_service.apply_discount(200, "BOGUS", 50) == 200

    @pytest.mark.parametrize(
        "mode,discount_type,discount_value",
        [
            ("AUTO", "PERCENT", 33),
            ("FIXED", "AMOUNT", 20),
            ("AUTO_PLUS_EXTRA", "PERCENT", 100),
            ("AUTO", "NONE", 0),
        ],
    )
    def test_final_price_bounded_by_list_price(self, mode, discount_type, discount_value):
        product = make_product(
            pages=7,
            mode=mode,
            fixed_price=90,
            extra_key="EXTRA1",
            discount_type=discount_type,
            discount_value=discount_value,
        )
        quote = pricing_service.price(product, make_config(10, EXTRA1=30))
        assert 0 <= quote.final_price <= quote.list_price

    def test_price_does_not_mutate_inputs(self):
        product = make_product(discount_type="PERCENT", discount_value=10)
        config = make_config(10)
        pricing_service.price(product, config)
        pricing_service.price(product, config)
        assert product.discount_value == 10
        assert config.price_per_page == 10
