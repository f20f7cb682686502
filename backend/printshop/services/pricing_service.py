"""
Pricing engine.

Pure functions: nothing here reads or writes the database. Callers pass the
product and the branch pricing config they already hold, which lets order
settlement snapshot a price at checkout and lets listings price many
products against one config.

RULES:
- base = pages * price_per_page (pages <= 0 counts as 1)
- FIXED: list price is fixed_price, base is ignored
- AUTO_PLUS_EXTRA: base + amount of the configured extra named by extra_key
  (unknown or missing key adds 0)
- AUTO (and anything unrecognised): base
- Discounts apply to the list price only and never raise it:
  PERCENT rounds half up, AMOUNT subtracts, both floor at 0
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ..models.branches import DEFAULT_PRICE_PER_PAGE
from ..models.products import (
    MODE_FIXED,
    MODE_AUTO_PLUS_EXTRA,
    DISCOUNT_PERCENT,
    DISCOUNT_AMOUNT,
)


@dataclass(frozen=True)
class PriceQuote:
    list_price: int
    final_price: int

    @property
    def discounted(self) -> bool:
        return self.final_price != self.list_price

    def to_dict(self) -> dict:
        return {"list_price": self.list_price, "final_price": self.final_price}


def _as_int(value, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def list_price(product, config) -> int:
    """Price before discount. config may be None (branch defaults apply)."""
    price_per_page = _as_int(getattr(config, "price_per_page", None), DEFAULT_PRICE_PER_PAGE)
    pages = _as_int(product.pages, 1)
    if pages <= 0:
        pages = 1
    base = pages * price_per_page

    if product.mode == MODE_FIXED:
        price = _as_int(product.fixed_price)
    elif product.mode == MODE_AUTO_PLUS_EXTRA:
        extra = config.extra_amount(product.extra_key) if config is not None else 0
        price = base + extra
    else:
        price = base

    return max(0, price)


def apply_discount(price: int, discount_type: str | None, discount_value) -> int:
    value = max(0, _as_int(discount_value))
    if discount_type == DISCOUNT_PERCENT:
        factor = Decimal(100 - min(value, 100)) / Decimal(100)
        discounted = (Decimal(price) * factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return max(0, int(discounted))
    if discount_type == DISCOUNT_AMOUNT:
        return max(0, price - value)
    return price


def price(product, config) -> PriceQuote:
    """
    Compute the list and final price of a product under a branch config.

    Safe to call repeatedly; never mutates product or config.
    """
    base_price = list_price(product, config)
    final = apply_discount(base_price, product.discount_type, product.discount_value)
    return PriceQuote(list_price=base_price, final_price=final)
