"""Read-side operations on orders: listing, lookup, tracking and reorder."""

import math
from dataclasses import dataclass

from protean.utils.globals import current_domain

from ordering.actor import Actor
from ordering.catalogue.store import CatalogStore
from ordering.errors import ItemUnavailable, OrderNotFound
from ordering.order.order import Order, load_order


@dataclass(frozen=True)
class Page:
    items: list
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def _paginate(orders: list, page: int, limit: int) -> Page:
    page = max(1, page)
    start = (page - 1) * limit
    return Page(items=orders[start : start + limit], page=page, limit=limit, total=len(orders))


def list_orders(actor: Actor, status=None, page=1, limit=10) -> Page:
    """The actor's own orders, newest first."""
    orders = current_domain.repository_for(Order).for_customer(actor.customer_id, status=status)
    return _paginate(orders, page, limit)


def list_all_orders(actor: Actor, status=None, page=1, limit=20) -> Page:
    actor.require_admin()
    orders = current_domain.repository_for(Order).with_status(status)
    return _paginate(orders, page, limit)


def get_order(order_id, actor: Actor) -> Order:
    order = load_order(order_id)
    if not actor.is_admin:
        order.assert_owned_by(actor.customer_id)
    return order


def track_order(order_number: str) -> Order:
    """Public lookup by order number; callers must not expose payment data."""
    order = current_domain.repository_for(Order).find_by_number(order_number)
    if order is None:
        raise OrderNotFound("Order not found", order_number=order_number)
    return order


def reorder(order_id, actor: Actor, catalog=None) -> tuple[list[dict], int]:
    """Lines of a past order that can be bought again right now.

    Returns ``(available_lines, unavailable_count)``. Raises
    ``ItemUnavailable`` when nothing from the order is available.
    """
    catalog = catalog or CatalogStore()
    order = load_order(order_id)
    order.assert_owned_by(actor.customer_id)

    available = []
    for item in order.lines:
        product = catalog.get(item.product_id)
        if product is not None and product.can_supply(item.quantity):
            available.append(
                {
                    "product_id": str(item.product_id),
                    "quantity": item.quantity,
                    "variant": {"name": item.variant.name, "value": item.variant.value} if item.variant else None,
                }
            )

    if not available:
        raise ItemUnavailable(
            "No items from the original order are available",
            order_id=str(order.id),
        )
    return available, len(order.items) - len(available)
