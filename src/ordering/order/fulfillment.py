"""Order fulfillment — commands and handler.

Shipping and delivery are admin (or carrier tracking) actions. Repeating
either one on an order that already reached that state is a no-op.
"""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order, check_revision, load_order


@ordering.command(part_of="Order")
class ShipOrder:
    """Record that the order left the warehouse."""

    order_id = Identifier(required=True)
    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    note = String(max_length=500)
    actor = String(max_length=255)
    expected_revision = Integer()


@ordering.command(part_of="Order")
class DeliverOrder:
    """Record that the carrier confirmed delivery to the customer."""

    order_id = Identifier(required=True)
    note = String(max_length=500)
    actor = String(max_length=255)
    expected_revision = Integer()


@ordering.command_handler(part_of=Order)
class RecordFulfillmentHandler:
    @handle(ShipOrder)
    def ship_order(self, command):
        order = load_order(command.order_id)
        check_revision(order, command.expected_revision)
        order.ship(
            carrier=command.carrier,
            tracking_number=command.tracking_number,
            note=command.note,
            actor=command.actor,
        )
        current_domain.repository_for(Order).add(order)
        return order

    @handle(DeliverOrder)
    def deliver_order(self, command):
        order = load_order(command.order_id)
        check_revision(order, command.expected_revision)
        order.deliver(note=command.note, actor=command.actor)
        current_domain.repository_for(Order).add(order)
        return order
