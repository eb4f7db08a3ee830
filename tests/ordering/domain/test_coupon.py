"""Tests for the Coupon aggregate and resolver."""

from decimal import Decimal

import pytest
from ordering.coupon.coupon import Coupon
from ordering.coupon.resolver import CouponResolver
from ordering.errors import CouponMinimumNotMet, InvalidCoupon
from protean.exceptions import ValidationError


class TestCouponRule:
    def test_code_is_upper_cased(self):
        coupon = Coupon.define(code=" save10 ", kind="percentage", value=10, min_amount=50)
        assert coupon.code == "SAVE10"

    def test_percentage_over_hundred_rejected(self):
        with pytest.raises(ValidationError):
            Coupon.define(code="BROKEN", kind="percentage", value=120)

    def test_minimum_not_met(self):
        coupon = Coupon.define(code="SAVE20", kind="percentage", value=20, min_amount=100)
        with pytest.raises(CouponMinimumNotMet) as exc:
            coupon.discount_for(99.99)
        assert "Minimum order amount of 100.00 required" in str(exc.value)

    def test_fixed_discount(self):
        coupon = Coupon.define(code="FLAT15", kind="fixed", value=15, min_amount=75)
        assert coupon.discount_for(80) == Decimal("15.00")


class TestCouponResolver:
    def test_default_coupons_are_seeded(self):
        resolver = CouponResolver()
        assert resolver.resolve("SAVE10", 60) == Decimal("6.00")
        assert resolver.resolve("save20", 200) == Decimal("40.00")
        assert resolver.resolve("FLAT15", 75) == Decimal("15.00")

    def test_unknown_code(self):
        with pytest.raises(InvalidCoupon):
            CouponResolver().lookup("BOGUS")

    def test_blank_code(self):
        with pytest.raises(InvalidCoupon):
            CouponResolver().lookup("  ")


class TestCouponErrorPayload:
    def test_error_code_survives_coupon_details(self):
        with pytest.raises(InvalidCoupon) as exc:
            CouponResolver().lookup("bogus")
        assert exc.value.to_dict() == {
            "coupon_code": "BOGUS",
            "code": "invalid_coupon",
            "message": "Invalid coupon code",
        }

    def test_minimum_payload(self):
        with pytest.raises(CouponMinimumNotMet) as exc:
            CouponResolver().resolve("SAVE20", 60)
        payload = exc.value.to_dict()
        assert payload["code"] == "coupon_minimum_not_met"
        assert payload["coupon_code"] == "SAVE20"
        assert payload["subtotal"] == 60.0
