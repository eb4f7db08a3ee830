"""Cart management — clearing, guest merges, catalogue refresh and cleanup."""

import json
from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.fields import Identifier, Integer, Text
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.cart.events import CartRefreshed
from ordering.cart.items import check_revision, load_cart
from ordering.cart.validation import IssueKind, validate_cart
from ordering.catalogue.store import CatalogStore
from ordering.domain import ordering
from ordering.pricing import STALE_CART_DAYS
from ordering.utils.locks import cart_key, serialized

logger = structlog.get_logger(__name__)


@ordering.command(part_of="ShoppingCart")
class ClearCart:
    customer_id = Identifier(required=True)
    expected_revision = Integer()


@ordering.command(part_of="ShoppingCart")
class MergeGuestCart:
    """Merge lines kept by a guest session into the customer's cart."""

    customer_id = Identifier(required=True)
    guest_cart_items = Text()  # JSON: [{product_id, quantity, variant}]


@ordering.command(part_of="ShoppingCart")
class RefreshCart:
    """Reconcile the cart with the catalogue.

    Lines whose product is gone are removed; lines asking for more than is
    in stock are cut down to what is left. Price changes are only reported.
    """

    customer_id = Identifier(required=True)


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(ClearCart)
    def clear_cart(self, command):
        cart = load_cart(command.customer_id)
        check_revision(cart, command.expected_revision)
        cart.clear()
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(MergeGuestCart)
    def merge_guest_cart(self, command):
        """Returns ``(cart, merged, skipped)``."""
        cart = load_cart(command.customer_id, create=True)
        guest_items = command.guest_cart_items or "[]"
        if isinstance(guest_items, str):
            guest_items = json.loads(guest_items)
        merged, skipped = cart.merge_guest_cart(guest_items, CatalogStore())
        current_domain.repository_for(ShoppingCart).add(cart)
        logger.info(
            "guest_cart_merged",
            customer_id=str(command.customer_id),
            merged=merged,
            skipped=skipped,
        )
        return cart, merged, skipped

    @handle(RefreshCart)
    def refresh_cart(self, command):
        """Returns ``(cart, issues)``; ``issues`` holds every problem found."""
        cart = load_cart(command.customer_id, create=True)
        issues = validate_cart(cart, CatalogStore())

        removed = adjusted = 0
        for issue in issues:
            variant = {"name": issue.variant[0], "value": issue.variant[1]} if issue.variant[0] else None
            if issue.kind == IssueKind.UNAVAILABLE:
                cart.remove_item(issue.product_id, variant)
                removed += 1
            elif issue.kind == IssueKind.STOCK_SHORTFALL:
                cart.update_quantity(issue.product_id, issue.available_quantity, variant)
                if issue.available_quantity > 0:
                    adjusted += 1
                else:
                    removed += 1

        if removed or adjusted:
            cart.raise_(
                CartRefreshed(
                    cart_id=str(cart.id),
                    removed_count=removed,
                    adjusted_count=adjusted,
                    price_changed_count=sum(1 for i in issues if i.kind == IssueKind.PRICE_CHANGED),
                )
            )
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart, issues


def cleanup_stale_carts(now: datetime | None = None) -> int:
    """Delete empty carts untouched for ``STALE_CART_DAYS``; return how many."""
    cutoff = (now or datetime.now(UTC)) - timedelta(days=STALE_CART_DAYS)
    repo = current_domain.repository_for(ShoppingCart)
    stale = repo.stale_empty_carts(cutoff)
    for cart in stale:
        with serialized(cart_key(cart.customer_id)):
            repo.remove(cart)
    if stale:
        logger.info("stale_carts_deleted", count=len(stale), cutoff=cutoff.isoformat())
    return len(stale)
