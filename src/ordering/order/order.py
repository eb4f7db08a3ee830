"""Order aggregate (CQRS) — an immutable, priced record of one checkout.

Lines, addresses and money fields are fixed when the order is placed and are
never re-derived from the catalogue. What moves afterwards is the status,
the payment record and the fulfilment timestamps.

State Machine:
    pending → processing       first successful payment
    pending/processing → shipped
    shipped → delivered
    pending/processing → cancelled
    any paid, not yet refunded → refunded

Every transition appends a ``StatusEntry``; entries are never edited.
Shipping or delivering twice, and confirming the same payment twice, are
no-ops rather than errors.
"""

import json
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)
from protean.utils.globals import current_domain

from ordering.catalogue.variant import Variant, as_variant
from ordering.domain import ordering
from ordering.errors import ConcurrentUpdate, InvalidTransition, OrderNotFound, RefundUnsupported, Unauthorized
from ordering.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderPlaced,
    OrderProcessing,
    OrderRefunded,
    OrderShipped,
    PaymentConfirmed,
    PaymentFailed,
)
from ordering.pricing import CURRENCY, line_total, money


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    STRIPE = "stripe"
    RAZORPAY = "razorpay"
    PAYPAL = "paypal"
    CASH_ON_DELIVERY = "cash_on_delivery"


# Methods with a refund path through the gateway
REFUNDABLE_METHODS = {PaymentMethod.STRIPE, PaymentMethod.RAZORPAY}

_SHIPPABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}
_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}

FREE_SHIPPING_DELIVERY_DAYS = 7
PAID_SHIPPING_DELIVERY_DAYS = 3


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    """A delivery or billing address captured at checkout time."""

    name = String(required=True, max_length=100)
    address = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone = String(required=True, max_length=30)


@ordering.value_object(part_of="Order")
class PaymentResult:
    """What the gateway told us about the captured payment."""

    transaction_id = String(required=True, max_length=255)
    status = String(max_length=50)
    update_time = DateTime()
    email_address = String(max_length=254)
    payment_method = String(choices=PaymentMethod)
    amount = Float()
    currency = String(max_length=3, default=CURRENCY)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line of the order with its price frozen at checkout."""

    product_id = Identifier(required=True)
    name = String(required=True, max_length=200)
    image = String(max_length=500, default="")
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    variant = ValueObject(Variant)
    position = Integer(default=0)
    restocked = Boolean(default=False)

    @property
    def additional_price(self) -> float:
        return (self.variant.price or 0.0) if self.variant else 0.0

    @property
    def line_total(self) -> Decimal:
        return line_total(self.unit_price, self.additional_price, self.quantity)


@ordering.entity(part_of="Order")
class StatusEntry:
    sequence = Integer(required=True)
    status = String(required=True, choices=OrderStatus)
    timestamp = DateTime(required=True)
    note = String(max_length=500)
    actor = String(max_length=255)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=20, unique=True)
    customer_id = Identifier(required=True)
    customer_email = String(max_length=254)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address, required=True)
    billing_address = ValueObject(Address)
    payment_method = String(required=True, choices=PaymentMethod)
    payment_result = ValueObject(PaymentResult)
    items_price = Float(required=True, min_value=0.0)
    tax_price = Float(required=True, min_value=0.0)
    shipping_price = Float(required=True, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default=CURRENCY)
    coupon_code = String(max_length=50)
    notes = String(max_length=1000)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    status_history = HasMany(StatusEntry)
    is_paid = Boolean(default=False)
    paid_at = DateTime()
    is_delivered = Boolean(default=False)
    delivered_at = DateTime()
    shipped_at = DateTime()
    cancelled_at = DateTime()
    refunded_at = DateTime()
    cancellation_reason = String(max_length=500)
    refund_reason = String(max_length=500)
    refund_amount = Float()
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)
    revision = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_balance(self):
        expected = (
            money(self.items_price) + money(self.tax_price) + money(self.shipping_price) - money(self.discount_amount)
        )
        if money(self.total_price) != expected:
            raise ValidationError({"total_price": ["Total must equal items + tax + shipping - discount"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        lines,
        shipping_address,
        payment_method,
        totals,
        billing_address=None,
        coupon_code=None,
        notes=None,
        customer_email=None,
    ):
        """Build a pending order from priced lines and a ``Totals`` breakdown.

        Args:
            lines: dicts with product_id, name, image, unit_price, quantity
                and an optional variant dict.
            shipping_address: dict or ``Address``; also used for billing when
                no billing address is given.
        """
        if not lines:
            raise ValidationError({"items": ["Order must contain at least one item"]})

        now = datetime.now(UTC)
        shipping = shipping_address if isinstance(shipping_address, Address) else Address(**shipping_address)
        if billing_address is None:
            billing = shipping
        elif isinstance(billing_address, Address):
            billing = billing_address
        else:
            billing = Address(**billing_address)

        order = cls(
            order_number=order_number,
            customer_id=str(customer_id),
            customer_email=customer_email,
            shipping_address=shipping,
            billing_address=billing,
            payment_method=payment_method,
            items_price=float(totals.subtotal),
            tax_price=float(totals.tax),
            shipping_price=float(totals.shipping),
            discount_amount=float(totals.discount),
            total_price=float(totals.total),
            currency=CURRENCY,
            coupon_code=coupon_code,
            notes=notes,
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        for position, line in enumerate(lines):
            order.add_items(
                OrderItem(
                    product_id=str(line["product_id"]),
                    name=line["name"],
                    image=line.get("image") or "",
                    unit_price=line["unit_price"],
                    quantity=line["quantity"],
                    variant=as_variant(line.get("variant")),
                    position=position,
                )
            )
        order._append_history(OrderStatus.PENDING, "Order created", f"customer:{customer_id}")

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                items=json.dumps(
                    [
                        {
                            "product_id": str(item.product_id),
                            "name": item.name,
                            "unit_price": item.unit_price,
                            "quantity": item.quantity,
                        }
                        for item in order.lines
                    ]
                ),
                items_price=order.items_price,
                tax_price=order.tax_price,
                shipping_price=order.shipping_price,
                discount_amount=order.discount_amount,
                total_price=order.total_price,
                currency=order.currency,
                coupon_code=coupon_code,
                payment_method=payment_method,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def lines(self) -> list[OrderItem]:
        return sorted(self.items, key=lambda i: i.position or 0)

    @property
    def history(self) -> list[StatusEntry]:
        return sorted(self.status_history, key=lambda e: e.sequence)

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def estimated_delivery(self) -> datetime | None:
        base = self.shipped_at or self.created_at
        if base is None:
            return None
        days = FREE_SHIPPING_DELIVERY_DAYS if money(self.shipping_price) == 0 else PAID_SHIPPING_DELIVERY_DAYS
        return base + timedelta(days=days)

    @property
    def transaction_id(self) -> str | None:
        return self.payment_result.transaction_id if self.payment_result else None

    def is_owned_by(self, customer_id) -> bool:
        return str(self.customer_id) == str(customer_id)

    def assert_owned_by(self, customer_id):
        if not self.is_owned_by(customer_id):
            raise Unauthorized(
                "Not authorized to access this order",
                order_id=str(self.id),
            )

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _append_history(self, status: OrderStatus, note: str, actor: str | None):
        self.add_status_history(
            StatusEntry(
                sequence=len(self.status_history) + 1,
                status=status.value,
                timestamp=datetime.now(UTC),
                note=note,
                actor=actor,
            )
        )

    def _touch(self) -> datetime:
        now = datetime.now(UTC)
        self.revision = (self.revision or 0) + 1
        self.updated_at = now
        return now

    def _invalid(self, action: str):
        return InvalidTransition(
            f"Cannot {action} an order that is {self.status}",
            order_id=str(self.id),
            status=self.status,
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def confirm_payment(
        self,
        transaction_id,
        amount=None,
        currency=None,
        payment_method=None,
        email_address=None,
        gateway_status="succeeded",
        actor="gateway",
    ) -> bool:
        """Record a successful payment. Returns ``False`` when already paid.

        A pending order moves to processing. Any other status is kept, so a
        payment arriving after cancellation is still recorded and refundable.
        """
        if self.is_paid:
            return False

        now = self._touch()
        method = payment_method or self.payment_method
        self.is_paid = True
        self.paid_at = now
        self.payment_result = PaymentResult(
            transaction_id=transaction_id,
            status=gateway_status,
            update_time=now,
            email_address=email_address or self.customer_email,
            payment_method=method,
            amount=amount if amount is not None else self.total_price,
            currency=(currency or self.currency).upper(),
        )
        self.raise_(
            PaymentConfirmed(
                order_id=str(self.id),
                transaction_id=transaction_id,
                amount=self.payment_result.amount,
                currency=self.payment_result.currency,
                payment_method=method,
                paid_at=now,
            )
        )

        current = OrderStatus(self.status)
        if current == OrderStatus.PENDING:
            self.status = OrderStatus.PROCESSING.value
            self._append_history(OrderStatus.PROCESSING, f"Payment received ({transaction_id})", actor)
            self.raise_(OrderProcessing(order_id=str(self.id), started_at=now))
        else:
            self._append_history(current, f"Payment received while {current.value} ({transaction_id})", actor)
        return True

    def record_payment_failure(self, transaction_id=None, reason=None, actor="gateway"):
        """Note a failed payment attempt. The status does not change."""
        now = self._touch()
        note = f"Payment failed: {reason}" if reason else "Payment failed"
        self._append_history(OrderStatus(self.status), note, actor)
        self.raise_(
            PaymentFailed(
                order_id=str(self.id),
                transaction_id=transaction_id,
                reason=reason,
                failed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def ship(self, carrier=None, tracking_number=None, note=None, actor=None) -> bool:
        """Mark the order shipped. Returns ``False`` if it already was.

        Shipping again only updates the carrier and tracking number.
        """
        current = OrderStatus(self.status)
        if current == OrderStatus.SHIPPED:
            if (carrier and carrier != self.carrier) or (tracking_number and tracking_number != self.tracking_number):
                self.carrier = carrier or self.carrier
                self.tracking_number = tracking_number or self.tracking_number
                self._touch()
            return False
        if current not in _SHIPPABLE_STATES:
            raise self._invalid("ship")

        now = self._touch()
        self.status = OrderStatus.SHIPPED.value
        if self.shipped_at is None:
            self.shipped_at = now
        self.carrier = carrier or self.carrier
        self.tracking_number = tracking_number or self.tracking_number
        self._append_history(OrderStatus.SHIPPED, note or "Order shipped", actor)
        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                carrier=self.carrier,
                tracking_number=self.tracking_number,
                shipped_at=self.shipped_at,
            )
        )
        return True

    def deliver(self, note=None, actor=None) -> bool:
        current = OrderStatus(self.status)
        if current == OrderStatus.DELIVERED:
            return False
        if current != OrderStatus.SHIPPED:
            raise self._invalid("deliver")

        now = self._touch()
        self.status = OrderStatus.DELIVERED.value
        self.is_delivered = True
        if self.delivered_at is None:
            self.delivered_at = now
        self._append_history(OrderStatus.DELIVERED, note or "Order delivered", actor)
        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=self.delivered_at))
        return True

    # -------------------------------------------------------------------
    # Cancellation & refund
    # -------------------------------------------------------------------
    def cancel(self, reason=None, actor=None) -> list[dict]:
        """Cancel the order and return the ``{product_id, quantity}`` to restock."""
        if OrderStatus(self.status) not in _CANCELLABLE_STATES:
            raise self._invalid("cancel")

        now = self._touch()
        self.status = OrderStatus.CANCELLED.value
        self.cancelled_at = now
        self.cancellation_reason = reason
        self._append_history(
            OrderStatus.CANCELLED,
            f"Order cancelled: {reason}" if reason else "Order cancelled",
            actor,
        )

        released = [{"product_id": str(item.product_id), "quantity": item.quantity} for item in self.lines]
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=actor,
                items=json.dumps(released),
                cancelled_at=now,
            )
        )
        return released

    def pending_restock(self) -> list[OrderItem]:
        """Lines of a cancelled order whose stock has not been put back yet."""
        if OrderStatus(self.status) != OrderStatus.CANCELLED:
            raise self._invalid("restock")
        return [item for item in self.lines if not item.restocked]

    def mark_restocked(self, position: int) -> bool:
        """Record that a line's stock is back on the shelf. False if it already was."""
        for item in self.pending_restock():
            if item.position == position:
                item.restocked = True
                return True
        return False

    def assert_refundable(self):
        if OrderStatus(self.status) == OrderStatus.REFUNDED:
            raise self._invalid("refund")
        if not self.is_paid:
            raise InvalidTransition("Order is not paid, cannot refund", order_id=str(self.id))
        if not self.transaction_id:
            raise InvalidTransition("Payment transaction ID not found", order_id=str(self.id))

        method = PaymentMethod(self.payment_result.payment_method or self.payment_method)
        if method not in REFUNDABLE_METHODS:
            raise RefundUnsupported(
                "Refund not supported for this payment method",
                order_id=str(self.id),
                payment_method=method.value,
            )

    def refund(self, refund_id, amount, reason=None, actor=None):
        self.assert_refundable()

        now = self._touch()
        self.status = OrderStatus.REFUNDED.value
        self.refunded_at = now
        self.refund_amount = amount
        self.refund_reason = reason or "Refunded by admin"
        self._append_history(OrderStatus.REFUNDED, f"Refunded {amount:.2f} {self.currency}", actor)
        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                refund_id=refund_id,
                refund_amount=amount,
                reason=self.refund_reason,
                refunded_at=now,
            )
        )


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number: str) -> Order | None:
        orders = self._dao.query.filter(order_number=order_number).all().items
        return orders[0] if orders else None

    def for_customer(self, customer_id, status=None) -> list[Order]:
        """A customer's orders, newest first."""
        filters = {"customer_id": str(customer_id)}
        if status:
            filters["status"] = status
        orders = self._dao.query.filter(**filters).all().items
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def with_status(self, status=None) -> list[Order]:
        query = self._dao.query.filter(status=status) if status else self._dao.query
        return sorted(query.all().items, key=lambda o: o.created_at, reverse=True)


def load_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError as exc:
        raise OrderNotFound("Order not found", order_id=str(order_id)) from exc


def check_revision(order, expected_revision):
    if expected_revision is not None and (order.revision or 0) != expected_revision:
        raise ConcurrentUpdate(
            "Order changed since it was read",
            order_id=str(order.id),
            expected_revision=expected_revision,
            current_revision=order.revision or 0,
        )
