"""Pricing engine: subtotal, discount and total for a set of lines.

Pure functions over ``Decimal``. Nothing here touches the database, so the
cart view, the order workflow and tests all get the same numbers for the
same input.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Protocol

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PriceLine:
    unit_price: Decimal
    quantity: int


class DiscountTerms(Protocol):
    """Anything with a discount type and value (model row or snapshot)."""

    discount_type: str
    discount_value: Decimal


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount: Decimal
    total: Decimal


def _money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _kind(promo: DiscountTerms) -> str:
    kind = promo.discount_type
    return getattr(kind, "value", kind)


def compute_discount(subtotal: Decimal, promo: Optional[DiscountTerms]) -> Decimal:
    """Discount for ``subtotal``, never more than ``subtotal`` itself.

    PERCENTAGE values are percentages (10 means 10%) and only become a
    fraction here. FIXED values are currency amounts.
    """
    if promo is None:
        return ZERO
    value = Decimal(promo.discount_value)
    if _kind(promo) == "PERCENTAGE":
        discount = _money(subtotal * value / HUNDRED)
    elif _kind(promo) == "FIXED":
        discount = _money(value)
    else:
        raise ValueError(f"Unknown discount type {promo.discount_type!r}")
    return min(subtotal, discount)


def compute_totals(lines: Iterable[PriceLine], promo: Optional[DiscountTerms] = None) -> Totals:
    subtotal = sum((Decimal(l.unit_price) * l.quantity for l in lines), ZERO)
    subtotal = _money(subtotal)
    discount = compute_discount(subtotal, promo)
    total = max(ZERO, subtotal - discount)
    return Totals(subtotal=subtotal, discount=discount, total=total)
