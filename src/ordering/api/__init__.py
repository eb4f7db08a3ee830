"""Ordering domain API package."""

from ordering.api.routes import cart_router, coupon_router, order_router, payment_router, product_router

__all__ = ["cart_router", "order_router", "payment_router", "coupon_router", "product_router"]
