"""Coupon table maintenance — commands, handler and the default rule set."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, String
from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon, normalize_code
from ordering.domain import ordering
from ordering.errors import InvalidCoupon
from ordering.pricing import DiscountKind

logger = structlog.get_logger(__name__)

DEFAULT_COUPONS = (
    {"code": "SAVE10", "kind": DiscountKind.PERCENTAGE.value, "value": 10.0, "min_amount": 50.0},
    {"code": "SAVE20", "kind": DiscountKind.PERCENTAGE.value, "value": 20.0, "min_amount": 100.0},
    {"code": "FLAT15", "kind": DiscountKind.FIXED.value, "value": 15.0, "min_amount": 75.0},
)


@ordering.command(part_of="Coupon")
class DefineCoupon:
    """Create a coupon rule, or replace the rule behind an existing code."""

    code = String(required=True, max_length=50)
    kind = String(required=True, choices=DiscountKind)
    value = Float(required=True, min_value=0.0)
    min_amount = Float(default=0.0, min_value=0.0)


@ordering.command(part_of="Coupon")
class RetireCoupon:
    code = String(required=True, max_length=50)


@ordering.command_handler(part_of=Coupon)
class CouponHandler:
    @handle(DefineCoupon)
    def define(self, command):
        repo = current_domain.repository_for(Coupon)
        try:
            coupon = repo.get(normalize_code(command.code))
            coupon.redefine(command.kind, command.value, command.min_amount)
        except ObjectNotFoundError:
            coupon = Coupon.define(
                code=command.code,
                kind=command.kind,
                value=command.value,
                min_amount=command.min_amount,
            )
        repo.add(coupon)
        return coupon.code

    @handle(RetireCoupon)
    def retire(self, command):
        repo = current_domain.repository_for(Coupon)
        code = normalize_code(command.code)
        try:
            coupon = repo.get(code)
        except ObjectNotFoundError as exc:
            raise InvalidCoupon("Invalid coupon code", coupon_code=code) from exc
        coupon.retire()
        repo.add(coupon)


def seed_default_coupons() -> list[str]:
    """Define any default coupon that is not in the table yet."""
    repo = current_domain.repository_for(Coupon)
    seeded = []
    for rule in DEFAULT_COUPONS:
        try:
            repo.get(rule["code"])
            continue
        except ObjectNotFoundError:
            pass
        seeded.append(current_domain.process(DefineCoupon(**rule), asynchronous=False))
    if seeded:
        logger.info("coupons_seeded", codes=seeded)
    return seeded
