"""Domain events for the Order aggregate.

Events are versioned, immutable facts raised alongside each state change of
an order. They complement the order's own ``status_history`` and are what
other contexts (notifications, fulfillment) would subscribe to.
"""

from protean.fields import DateTime, Float, Identifier, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A new order was placed at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of line dicts
    items_price = Float(required=True)
    tax_price = Float(required=True)
    shipping_price = Float(required=True)
    discount_amount = Float(default=0.0)
    total_price = Float(required=True)
    currency = String(default="USD")
    coupon_code = String()
    payment_method = String(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentConfirmed:
    """The gateway reported a successful payment for the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    transaction_id = String(required=True)
    amount = Float()
    currency = String()
    payment_method = String(required=True)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    transaction_id = String()
    reason = String()
    failed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderProcessing:
    __version__ = 1

    order_id = Identifier(required=True)
    started_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    carrier = String()
    tracking_number = String()
    shipped_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled; its stock is due back on the shelf."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    cancelled_by = String()
    items = Text(required=True)  # JSON: [{product_id, quantity}]
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderRefunded:
    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = String()
    refund_amount = Float(required=True)
    reason = String()
    refunded_at = DateTime(required=True)
