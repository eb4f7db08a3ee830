"""Order payment — commands and handler.

These are fed by the payment gateway's callbacks, which may arrive at any
time after the order was placed and may be delivered more than once.
Confirmation is therefore idempotent: an order that is already paid is left
exactly as it was.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order, PaymentMethod, load_order
from ordering.utils.dispatch import dispatch
from ordering.utils.locks import order_key

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class ConfirmPayment:
    order_id = Identifier(required=True)
    transaction_id = String(required=True, max_length=255)
    amount = Float()
    currency = String(max_length=3)
    payment_method = String(choices=PaymentMethod)
    email_address = String(max_length=254)
    gateway_status = String(max_length=50, default="succeeded")


@ordering.command(part_of="Order")
class RecordPaymentFailure:
    order_id = Identifier(required=True)
    transaction_id = String(max_length=255)
    reason = String(max_length=500)


@ordering.command_handler(part_of=Order)
class RecordPaymentHandler:
    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        order = load_order(command.order_id)

        if order.is_paid:
            if order.transaction_id != command.transaction_id:
                logger.warning(
                    "payment_for_paid_order",
                    order_id=str(order.id),
                    recorded_transaction_id=order.transaction_id,
                    transaction_id=command.transaction_id,
                )
            return False

        if command.amount is not None and money_mismatch(command.amount, order.total_price):
            logger.warning(
                "payment_amount_mismatch",
                order_id=str(order.id),
                amount=command.amount,
                total_price=order.total_price,
            )

        order.confirm_payment(
            transaction_id=command.transaction_id,
            amount=command.amount,
            currency=command.currency,
            payment_method=command.payment_method,
            email_address=command.email_address,
            gateway_status=command.gateway_status or "succeeded",
        )
        current_domain.repository_for(Order).add(order)
        logger.info(
            "payment_confirmed",
            order_id=str(order.id),
            order_number=order.order_number,
            transaction_id=command.transaction_id,
        )
        return True

    @handle(RecordPaymentFailure)
    def record_payment_failure(self, command):
        order = load_order(command.order_id)
        order.record_payment_failure(
            transaction_id=command.transaction_id,
            reason=command.reason,
        )
        current_domain.repository_for(Order).add(order)
        logger.info(
            "payment_failed",
            order_id=str(order.id),
            transaction_id=command.transaction_id,
            reason=command.reason,
        )


def money_mismatch(amount, expected) -> bool:
    return round(float(amount), 2) != round(float(expected), 2)


SUCCEEDED_EVENTS = {"payment.succeeded", "payment_intent.succeeded", "payment.captured"}
FAILED_EVENTS = {"payment.failed", "payment_intent.payment_failed"}


def process_gateway_event(event: dict) -> str:
    """Apply a gateway callback to its order.

    ``event`` is ``{"type": ..., "data": {"order_id", "transaction_id",
    "amount", "currency", "payment_method", "email"}}``. Returns what was
    done: ``confirmed``, ``duplicate``, ``failed`` or ``ignored``. Events
    that are not shaped like that, or success events without a transaction
    id, are ignored.
    """
    if not isinstance(event, dict):
        logger.warning("gateway_event_malformed", payload_type=type(event).__name__)
        return "ignored"

    event_type = event.get("type")
    data = event.get("data")
    if not isinstance(data, dict):
        data = {}
    order_id = data.get("order_id")
    if not order_id or (event_type not in SUCCEEDED_EVENTS and event_type not in FAILED_EVENTS):
        logger.info("gateway_event_ignored", event_type=event_type)
        return "ignored"

    if event_type in SUCCEEDED_EVENTS:
        if not data.get("transaction_id"):
            logger.warning("gateway_event_missing_transaction", event_type=event_type, order_id=order_id)
            return "ignored"
        changed = dispatch(
            ConfirmPayment(
                order_id=order_id,
                transaction_id=data["transaction_id"],
                amount=data.get("amount"),
                currency=data.get("currency"),
                payment_method=data.get("payment_method"),
                email_address=data.get("email"),
            ),
            order_key(order_id),
        )
        return "confirmed" if changed else "duplicate"

    dispatch(
        RecordPaymentFailure(
            order_id=order_id,
            transaction_id=data.get("transaction_id"),
            reason=data.get("reason"),
        ),
        order_key(order_id),
    )
    return "failed"
