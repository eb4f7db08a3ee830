"""Order placement — command and handler.

``PlaceOrder`` only persists an already priced order. Stock reservation,
pricing and cart clearing are orchestrated by ``checkout.CheckoutService``,
which submits this command once every line's stock is held.
"""

import json

from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order, PaymentMethod
from ordering.pricing import Totals, money


@ordering.command(part_of="Order")
class PlaceOrder:
    order_number = String(required=True, max_length=20)
    customer_id = Identifier(required=True)
    customer_email = String(max_length=254)
    items = Text(required=True)  # JSON: priced line dicts
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict
    payment_method = String(required=True, choices=PaymentMethod)
    items_price = Float(required=True)
    tax_price = Float(required=True)
    shipping_price = Float(required=True)
    discount_amount = Float(default=0.0)
    total_price = Float(required=True)
    coupon_code = String(max_length=50)
    notes = String(max_length=1000)


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        order = Order.place(
            order_number=command.order_number,
            customer_id=command.customer_id,
            lines=_decode(command.items),
            shipping_address=_decode(command.shipping_address),
            billing_address=_decode(command.billing_address) or None,
            payment_method=command.payment_method,
            totals=Totals(
                subtotal=money(command.items_price),
                tax=money(command.tax_price),
                shipping=money(command.shipping_price),
                discount=money(command.discount_amount),
                total=money(command.total_price),
            ),
            coupon_code=command.coupon_code,
            notes=command.notes,
            customer_email=command.customer_email,
        )
        current_domain.repository_for(Order).add(order)
        return order


def _decode(payload):
    return json.loads(payload) if isinstance(payload, str) else payload
