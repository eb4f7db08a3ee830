"""Domain errors for the Ordering context.

Field-level problems (bad types, missing values) surface as Protean's
``ValidationError``. The errors below describe business-rule failures and are
raised synchronously to the caller; the HTTP layer maps each family to a
status code.
"""


class StorefrontError(Exception):
    """Base class for business-rule failures in the ordering context."""

    code = "storefront_error"

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {**self.details, "code": self.code, "message": self.message}


# ---------------------------------------------------------------------------
# Missing resources
# ---------------------------------------------------------------------------
class NotFound(StorefrontError):
    code = "not_found"


class ProductNotFound(NotFound):
    code = "product_not_found"


class CartNotFound(NotFound):
    code = "cart_not_found"


class OrderNotFound(NotFound):
    code = "order_not_found"


class ItemNotFound(NotFound):
    code = "item_not_found"


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------
class Unavailable(StorefrontError):
    code = "unavailable"


class ItemUnavailable(Unavailable):
    code = "item_unavailable"


class InsufficientStock(Unavailable):
    code = "insufficient_stock"


# ---------------------------------------------------------------------------
# Lifecycle, coupons, access
# ---------------------------------------------------------------------------
class InvalidTransition(StorefrontError):
    code = "invalid_transition"


class CouponError(StorefrontError):
    code = "coupon_error"


class InvalidCoupon(CouponError):
    code = "invalid_coupon"


class CouponMinimumNotMet(CouponError):
    code = "coupon_minimum_not_met"


class Unauthorized(StorefrontError):
    code = "unauthorized"


class RefundUnsupported(StorefrontError):
    code = "refund_unsupported"


class RefundFailed(StorefrontError):
    code = "refund_failed"


class ConcurrentUpdate(StorefrontError):
    """The aggregate changed since the caller read it."""

    code = "concurrent_update"
