"""Checkout — turns requested lines (or a cart) into a pending order.

Flow:
    1. Price every line from the live catalogue (missing or retired product
       → ProductNotFound, short stock → InsufficientStock).
    2. Resolve the coupon against the items price.
    3. Reserve stock line by line with a conditional decrement. A failed
       reservation releases the lines already reserved.
    4. Allocate an order number and persist the order. If that fails, all
       reserved stock is released.
    5. Clear the customer's cart.

Nothing is written before step 3, and every failure after it compensates
the stock it took, so an order never exists without its reservation and a
reservation never outlives a failed checkout.
"""

import json

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.actor import Actor
from ordering.cart.cart import ShoppingCart
from ordering.cart.items import load_cart
from ordering.cart.management import ClearCart
from ordering.catalogue.store import CatalogStore
from ordering.coupon.resolver import CouponResolver
from ordering.errors import InsufficientStock, ProductNotFound
from ordering.order.order import Order
from ordering.order.placement import PlaceOrder
from ordering.order.sequence import next_order_number
from ordering.pricing import ZERO, compute_totals, line_total, money
from ordering.utils.locks import cart_key, serialized

logger = structlog.get_logger(__name__)


class CheckoutService:
    def __init__(self, catalog=None, coupons=None):
        self.catalog = catalog or CatalogStore()
        self.coupons = coupons or CouponResolver()

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def price_lines(self, requested: list[dict]) -> list[dict]:
        """Snapshot name, image and price of each requested line."""
        lines = []
        for item in requested:
            product_id = str(item["product_id"])
            quantity = int(item.get("quantity") or 1)
            product = self.catalog.get(product_id)
            if product is None or not product.is_sellable:
                raise ProductNotFound(f"Product not found: {product_id}", product_id=product_id)
            if product.stock < quantity:
                raise InsufficientStock(
                    f"Insufficient stock for product: {product.name}",
                    product_id=product_id,
                    requested=quantity,
                    available=product.stock,
                )
            lines.append(
                {
                    "product_id": product_id,
                    "name": product.name,
                    "image": product.image or "",
                    "unit_price": product.price,
                    "quantity": quantity,
                    "variant": product.priced_variant(item.get("variant")),
                }
            )
        return lines

    @staticmethod
    def items_price(lines: list[dict]):
        return money(
            sum(
                (
                    line_total(line["unit_price"], (line["variant"] or {}).get("price") or 0, line["quantity"])
                    for line in lines
                ),
                ZERO,
            )
        )

    # -------------------------------------------------------------------
    # Stock reservation
    # -------------------------------------------------------------------
    def _reserve(self, lines: list[dict]) -> list[dict]:
        reserved = []
        for line in lines:
            if not self.catalog.conditional_decrement_stock(line["product_id"], line["quantity"]):
                self._release(reserved)
                product = self.catalog.get(line["product_id"])
                raise InsufficientStock(
                    f"Insufficient stock for product: {line['name']}",
                    product_id=line["product_id"],
                    requested=line["quantity"],
                    available=product.stock if product else 0,
                )
            reserved.append(line)
        return reserved

    def _release(self, reserved: list[dict]) -> None:
        for line in reversed(reserved):
            self.catalog.increment_stock(line["product_id"], line["quantity"])
        if reserved:
            logger.info("stock_reservation_released", lines=len(reserved))

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------
    def place_order(
        self,
        actor: Actor,
        items: list[dict],
        shipping_address: dict,
        payment_method: str,
        billing_address: dict | None = None,
        coupon_code: str | None = None,
        notes: str | None = None,
    ) -> Order:
        """Create a pending order for ``items`` ({product_id, quantity, variant})."""
        if not items:
            raise ValidationError({"items": ["Order must contain at least one item"]})

        lines = self.price_lines(items)
        subtotal = self.items_price(lines)
        code, discount = None, ZERO
        if coupon_code:
            coupon = self.coupons.lookup(coupon_code)
            code, discount = coupon.code, coupon.discount_for(subtotal)
        totals = compute_totals(subtotal, discount)

        reserved = self._reserve(lines)
        try:
            order = current_domain.process(
                PlaceOrder(
                    order_number=next_order_number(),
                    customer_id=actor.customer_id,
                    customer_email=actor.email,
                    items=json.dumps(lines),
                    shipping_address=json.dumps(shipping_address),
                    billing_address=json.dumps(billing_address) if billing_address else None,
                    payment_method=payment_method,
                    items_price=float(totals.subtotal),
                    tax_price=float(totals.tax),
                    shipping_price=float(totals.shipping),
                    discount_amount=float(totals.discount),
                    total_price=float(totals.total),
                    coupon_code=code,
                    notes=notes,
                ),
                asynchronous=False,
            )
        except Exception:
            self._release(reserved)
            raise

        self._clear_cart(actor.customer_id)
        logger.info(
            "order_placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=actor.customer_id,
            total_price=order.total_price,
        )
        return order

    def checkout_cart(
        self,
        actor: Actor,
        shipping_address: dict,
        payment_method: str,
        billing_address: dict | None = None,
        notes: str | None = None,
    ) -> Order:
        """Place an order for everything in the actor's cart.

        The cart's coupon is carried over only while it grants a discount.
        """
        with serialized(cart_key(actor.customer_id)):
            cart = load_cart(actor.customer_id)
            if not cart.items:
                raise ValidationError({"cart": ["Cart is empty"]})

            items = [
                {
                    "product_id": str(item.product_id),
                    "quantity": item.quantity,
                    "variant": {"name": item.variant.name, "value": item.variant.value} if item.variant else None,
                }
                for item in cart.lines
            ]
            coupon_code = cart.coupon_code if cart.coupon_discount else None
            return self.place_order(
                actor,
                items=items,
                shipping_address=shipping_address,
                payment_method=payment_method,
                billing_address=billing_address,
                coupon_code=coupon_code,
                notes=notes,
            )

    def _clear_cart(self, customer_id) -> None:
        with serialized(cart_key(customer_id)):
            if current_domain.repository_for(ShoppingCart).for_customer(customer_id) is None:
                return
            current_domain.process(ClearCart(customer_id=str(customer_id)), asynchronous=False)
