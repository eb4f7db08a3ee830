"""BDD tests for the order lifecycle."""

from ordering.errors import StorefrontError
from ordering.order.cancellation import cancel_order
from ordering.order.order import Order
from ordering.order.payment import process_gateway_event
from ordering.order.refund import refund_order
from protean import current_domain
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/order_lifecycle.feature")


def _reload(placed):
    return current_domain.repository_for(Order).get(placed[0].id)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the gateway confirms payment "{transaction_id}"'))
def gateway_confirms(placed, transaction_id):
    process_gateway_event(
        {"type": "payment.succeeded", "data": {"order_id": str(placed[0].id), "transaction_id": transaction_id}}
    )


@when("the customer cancels the order")
def customer_cancels(customer, placed, error):
    try:
        cancel_order(placed[0].id, customer, reason="Changed my mind")
    except StorefrontError as exc:
        error["exc"] = exc


@when("the admin refunds the order")
def admin_refunds(admin, placed):
    refund_order(placed[0].id, admin, reason="Damaged in transit")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the order is paid")
def order_paid(placed):
    order = _reload(placed)
    assert order.is_paid
    assert order.paid_at is not None


@then(parsers.cfparse("the order has {count:d} history entries"))
def history_entries(placed, count):
    assert len(_reload(placed).history) == count
