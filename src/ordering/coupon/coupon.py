"""Coupon aggregate — a discount rule addressed by its code.

Codes are stored upper-cased and double as the aggregate identity, so lookups
are case-insensitive and a code can only be defined once.
"""

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, String

from ordering.coupon.events import CouponDefined, CouponRetired
from ordering.domain import ordering
from ordering.errors import CouponMinimumNotMet
from ordering.pricing import DiscountKind, discount_for, money


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


@ordering.aggregate
class Coupon:
    code = String(max_length=50, identifier=True)
    kind = String(required=True, choices=DiscountKind)
    value = Float(required=True, min_value=0.0)
    min_amount = Float(default=0.0, min_value=0.0)
    is_active = Boolean(default=True)

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.kind == DiscountKind.PERCENTAGE.value and self.value is not None and self.value > 100:
            raise ValidationError({"value": ["Percentage discount cannot exceed 100"]})

    @classmethod
    def define(cls, code, kind, value, min_amount=0.0):
        code = normalize_code(code)
        if not code:
            raise ValidationError({"code": ["Coupon code is required"]})
        coupon = cls(code=code, kind=kind, value=value, min_amount=min_amount or 0.0, is_active=True)
        coupon.raise_(CouponDefined(code=code, kind=kind, value=value, min_amount=coupon.min_amount))
        return coupon

    def redefine(self, kind, value, min_amount=0.0):
        self.kind = kind
        self.value = value
        self.min_amount = min_amount or 0.0
        self.is_active = True
        self.raise_(CouponDefined(code=self.code, kind=kind, value=value, min_amount=self.min_amount))

    def retire(self):
        if not self.is_active:
            return
        self.is_active = False
        self.raise_(CouponRetired(code=self.code))

    def qualifies(self, subtotal) -> bool:
        return money(subtotal) >= money(self.min_amount)

    def discount_for(self, subtotal):
        """Discount this rule grants against ``subtotal``, as a ``Decimal``."""
        if not self.qualifies(subtotal):
            raise CouponMinimumNotMet(
                f"Minimum order amount of {self.min_amount:.2f} required for coupon {self.code}",
                coupon_code=self.code,
                min_amount=self.min_amount,
                subtotal=float(money(subtotal)),
            )
        return discount_for(self.kind, self.value, subtotal)


@ordering.repository(part_of=Coupon)
class CouponRepository:
    def active(self) -> list[Coupon]:
        return self._dao.query.filter(is_active=True).all().items
