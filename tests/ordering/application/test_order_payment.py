"""Application tests for payment confirmation from gateway callbacks."""

from ordering.order.order import Order, OrderStatus
from ordering.order.payment import ConfirmPayment, RecordPaymentFailure, process_gateway_event
from protean import current_domain


def _reload(order):
    return current_domain.repository_for(Order).get(order.id)


def _succeeded(order, transaction_id="txn-001", amount=None):
    return {
        "type": "payment.succeeded",
        "data": {
            "order_id": str(order.id),
            "transaction_id": transaction_id,
            "amount": amount if amount is not None else order.total_price,
            "currency": "usd",
            "email": "ada@example.com",
        },
    }


class TestConfirmPaymentCommand:
    def test_confirms_pending_order(self, place_order):
        order, _ = place_order()
        changed = current_domain.process(
            ConfirmPayment(order_id=order.id, transaction_id="txn-001", amount=order.total_price),
            asynchronous=False,
        )
        paid = _reload(order)
        assert changed is True
        assert paid.is_paid
        assert paid.status == OrderStatus.PROCESSING.value
        assert paid.payment_result.currency == "USD"

    def test_failure_recorded_without_status_change(self, place_order):
        order, _ = place_order()
        current_domain.process(
            RecordPaymentFailure(order_id=order.id, transaction_id="txn-001", reason="card_declined"),
            asynchronous=False,
        )
        failed = _reload(order)
        assert failed.status == OrderStatus.PENDING.value
        assert len(failed.history) == 2


class TestGatewayEvents:
    def test_success_event(self, place_order):
        order, _ = place_order()
        assert process_gateway_event(_succeeded(order)) == "confirmed"
        assert _reload(order).transaction_id == "txn-001"

    def test_duplicate_delivery_is_idempotent(self, place_order):
        order, _ = place_order()
        process_gateway_event(_succeeded(order))
        first = _reload(order)

        assert process_gateway_event(_succeeded(order)) == "duplicate"
        second = _reload(order)
        assert second.paid_at == first.paid_at
        assert len(second.history) == len(first.history)
        assert second.revision == first.revision

    def test_different_transaction_for_paid_order_is_ignored(self, place_order):
        order, _ = place_order()
        process_gateway_event(_succeeded(order))
        assert process_gateway_event(_succeeded(order, transaction_id="txn-999")) == "duplicate"
        assert _reload(order).transaction_id == "txn-001"

    def test_failed_event(self, place_order):
        order, _ = place_order()
        event = {"type": "payment.failed", "data": {"order_id": str(order.id), "reason": "insufficient_funds"}}
        assert process_gateway_event(event) == "failed"
        assert _reload(order).history[-1].note == "Payment failed: insufficient_funds"

    def test_unrelated_event_ignored(self, place_order):
        order, _ = place_order()
        assert process_gateway_event({"type": "customer.created", "data": {"order_id": str(order.id)}}) == "ignored"
        assert not _reload(order).is_paid

    def test_amount_mismatch_still_confirms(self, place_order):
        order, _ = place_order()
        assert process_gateway_event(_succeeded(order, amount=1.0)) == "confirmed"
        assert _reload(order).payment_result.amount == 1.0

    def test_success_without_transaction_id_ignored(self, place_order):
        order, _ = place_order()
        event = _succeeded(order)
        del event["data"]["transaction_id"]
        assert process_gateway_event(event) == "ignored"
        assert not _reload(order).is_paid

    def test_non_object_payload_ignored(self):
        assert process_gateway_event([{"type": "payment.succeeded"}]) == "ignored"
        assert process_gateway_event({"type": "payment.succeeded", "data": ["ord-1"]}) == "ignored"
