"""Order refund — command, handler and the gateway-facing service.

Only admins refund. The order must be paid, carry a gateway transaction id
and have been paid with a method that has a refund path. The gateway is
called while the order's lock is held, so one order cannot be refunded
twice by concurrent requests.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.actor import Actor
from ordering.domain import ordering
from ordering.errors import RefundFailed
from ordering.gateway import get_gateway
from ordering.order.order import Order, load_order
from ordering.pricing import money
from ordering.utils.locks import order_key, serialized

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class RefundOrder:
    order_id = Identifier(required=True)
    refund_id = String(max_length=255)
    amount = Float(required=True, min_value=0.0)
    reason = String(max_length=500)
    actor = String(max_length=255)


@ordering.command_handler(part_of=Order)
class RefundOrderHandler:
    @handle(RefundOrder)
    def refund_order(self, command):
        order = load_order(command.order_id)
        order.refund(
            refund_id=command.refund_id,
            amount=command.amount,
            reason=command.reason,
            actor=command.actor,
        )
        current_domain.repository_for(Order).add(order)
        return order


def refund_order(order_id, actor: Actor, amount=None, reason=None, gateway=None) -> Order:
    """Issue a refund through the gateway and record it on the order.

    ``amount`` defaults to the order total and may not exceed it.
    """
    actor.require_admin()
    gateway = gateway or get_gateway()

    with serialized(order_key(order_id)):
        order = load_order(order_id)
        order.assert_refundable()

        refund_amount = float(money(amount if amount is not None else order.total_price))
        if refund_amount <= 0 or refund_amount > order.total_price:
            raise RefundFailed(
                "Refund amount must be positive and no more than the order total",
                order_id=str(order.id),
                amount=refund_amount,
                total_price=order.total_price,
            )

        result = gateway.create_refund(
            gateway_transaction_id=order.transaction_id,
            amount=refund_amount,
            currency=order.currency,
            reason=reason or "Admin refund",
        )
        if not result.success:
            logger.warning(
                "refund_declined",
                order_id=str(order.id),
                reason=result.failure_reason,
            )
            raise RefundFailed(
                "Failed to process refund",
                order_id=str(order.id),
                gateway_reason=result.failure_reason,
            )

        refunded = current_domain.process(
            RefundOrder(
                order_id=str(order.id),
                refund_id=result.gateway_refund_id,
                amount=result.amount if result.amount is not None else refund_amount,
                reason=reason,
                actor=actor.label,
            ),
            asynchronous=False,
        )

    logger.info(
        "order_refunded",
        order_id=str(order_id),
        refund_id=result.gateway_refund_id,
        amount=refunded.refund_amount,
    )
    return refunded
