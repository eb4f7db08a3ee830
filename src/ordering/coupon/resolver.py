"""Coupon Resolver — maps a code and a subtotal to a discount.

The resolver only reads: it never stores anything on a cart or an order.
Rules come from the ``Coupon`` repository unless another source is injected,
which is how tests swap the table out.
"""

from decimal import Decimal

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon, normalize_code
from ordering.errors import InvalidCoupon


class CouponResolver:
    def __init__(self, repository=None):
        self._repository = repository

    @property
    def repository(self):
        return self._repository or current_domain.repository_for(Coupon)

    def lookup(self, code: str) -> Coupon:
        """Return the active rule for ``code`` or raise ``InvalidCoupon``."""
        normalized = normalize_code(code)
        if not normalized:
            raise InvalidCoupon("Invalid coupon code", coupon_code=code or "")
        try:
            coupon = self.repository.get(normalized)
        except ObjectNotFoundError:
            coupon = None
        if coupon is None or not coupon.is_active:
            raise InvalidCoupon("Invalid coupon code", coupon_code=normalized)
        return coupon

    def resolve(self, code: str, subtotal) -> Decimal:
        return self.lookup(code).discount_for(subtotal)
