"""Order cancellation — commands, handler and the restocking service.

Cancelling is two steps: the ``CancelOrder`` command moves the order to
``cancelled`` (which can happen only once), then ``restock_cancelled_order``
puts each line's quantity back on the shelf through the Catalog Store and
marks the line ``restocked``. A restock interrupted part way can be run
again; lines already marked are skipped, so stock is restored once per line.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.actor import Actor
from ordering.catalogue.store import CatalogStore
from ordering.domain import ordering
from ordering.errors import ProductNotFound
from ordering.order.order import Order, check_revision, load_order
from ordering.utils.dispatch import dispatch
from ordering.utils.locks import order_key, serialized

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    actor_id = Identifier(required=True)
    actor_is_admin = Boolean(default=False)
    actor = String(max_length=255)
    expected_revision = Integer()


@ordering.command(part_of="Order")
class MarkLineRestocked:
    order_id = Identifier(required=True)
    position = Integer(required=True)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        """Returns the ``{product_id, quantity}`` lines released by the cancellation."""
        order = load_order(command.order_id)
        if not command.actor_is_admin:
            order.assert_owned_by(command.actor_id)
        check_revision(order, command.expected_revision)
        released = order.cancel(reason=command.reason, actor=command.actor)
        current_domain.repository_for(Order).add(order)
        return released

    @handle(MarkLineRestocked)
    def mark_line_restocked(self, command):
        order = load_order(command.order_id)
        if order.mark_restocked(command.position):
            current_domain.repository_for(Order).add(order)
            return True
        return False


def restock_cancelled_order(order_id, catalog=None) -> int:
    """Put the stock of every line not yet restocked back on the shelf.

    Returns the number of lines restocked by this call. Lines whose product
    has left the catalogue are skipped and stay pending.
    """
    catalog = catalog or CatalogStore()
    restocked = 0
    with serialized(order_key(order_id)):
        for item in load_order(order_id).pending_restock():
            try:
                catalog.increment_stock(item.product_id, item.quantity)
            except ProductNotFound:
                logger.warning(
                    "restock_skipped_missing_product",
                    order_id=str(order_id),
                    product_id=str(item.product_id),
                    quantity=item.quantity,
                )
                continue
            dispatch(MarkLineRestocked(order_id=str(order_id), position=item.position), order_key(order_id))
            restocked += 1
    return restocked


def cancel_order(order_id, actor: Actor, reason=None, expected_revision=None, catalog=None) -> Order:
    """Cancel an order on behalf of ``actor`` and restore its stock."""
    dispatch(
        CancelOrder(
            order_id=str(order_id),
            reason=reason,
            actor_id=actor.customer_id,
            actor_is_admin=actor.is_admin,
            actor=actor.label,
            expected_revision=expected_revision,
        ),
        order_key(order_id),
    )
    restocked = restock_cancelled_order(order_id, catalog=catalog)

    logger.info(
        "order_cancelled",
        order_id=str(order_id),
        actor=actor.label,
        lines_restocked=restocked,
    )
    return load_order(order_id)
