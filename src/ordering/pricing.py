"""Pricing rules shared by the cart and the order.

All arithmetic happens on ``Decimal`` values quantized to cents; aggregates
store the results as floats. Each component is rounded before the total is
summed so that ``total == subtotal + tax + shipping - discount`` holds exactly
on the stored values.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

CURRENCY = "USD"
TAX_RATE = Decimal("0.08")
FREE_SHIPPING_THRESHOLD = Decimal("100")
FLAT_SHIPPING = Decimal("10")
MAX_LINE_QUANTITY = 10
STALE_CART_DAYS = 30

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class DiscountKind(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def money(value) -> Decimal:
    """Convert a number (float, int, str or Decimal) to a cent-rounded Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_quantity(quantity: int) -> int:
    return max(1, min(int(quantity), MAX_LINE_QUANTITY))


def line_total(unit_price, additional_price, quantity) -> Decimal:
    return money((money(unit_price) + money(additional_price)) * int(quantity))


def tax_for(subtotal) -> Decimal:
    return money(money(subtotal) * TAX_RATE)


def shipping_for(subtotal) -> Decimal:
    return ZERO if money(subtotal) >= FREE_SHIPPING_THRESHOLD else money(FLAT_SHIPPING)


def discount_for(kind: str, value, subtotal) -> Decimal:
    """Discount granted by a rule against ``subtotal``, never more than the subtotal."""
    subtotal = money(subtotal)
    if DiscountKind(kind) == DiscountKind.PERCENTAGE:
        discount = money(subtotal * money(value) / Decimal("100"))
    else:
        discount = money(value)
    return min(discount, subtotal)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal

    def as_floats(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "shipping": float(self.shipping),
            "discount": float(self.discount),
            "total": float(self.total),
        }


def compute_totals(subtotal, discount=ZERO) -> Totals:
    """Derive tax, shipping and total from an already summed subtotal."""
    subtotal = money(subtotal)
    discount = min(money(discount), subtotal)
    tax = tax_for(subtotal)
    shipping = shipping_for(subtotal)
    return Totals(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        discount=discount,
        total=subtotal + tax + shipping - discount,
    )
