"""Domain events for the Coupon aggregate."""

from protean.fields import Float, String

from ordering.domain import ordering


@ordering.event(part_of="Coupon")
class CouponDefined:
    __version__ = 1

    code = String(required=True)
    kind = String(required=True)
    value = Float(required=True)
    min_amount = Float(required=True)


@ordering.event(part_of="Coupon")
class CouponRetired:
    __version__ = 1

    code = String(required=True)
