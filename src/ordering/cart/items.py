"""Cart item management — commands and handler.

Carts are addressed by their owner: every command carries ``customer_id``
and the cart is created on first use. A command may carry the revision the
caller last saw; a stale one is rejected with ``ConcurrentUpdate``.
"""

import json

from protean import handle
from protean.fields import Identifier, Integer, Text
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.catalogue.store import CatalogStore
from ordering.domain import ordering
from ordering.errors import CartNotFound, ConcurrentUpdate


@ordering.command(part_of="ShoppingCart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(default=1, min_value=1)
    variant = Text()  # JSON: {"name", "value"}
    expected_revision = Integer()


@ordering.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    variant = Text()  # JSON: {"name", "value"}
    expected_revision = Integer()


@ordering.command(part_of="ShoppingCart")
class RemoveFromCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant = Text()  # JSON: {"name", "value"}
    expected_revision = Integer()


def load_cart(customer_id, create=False) -> ShoppingCart:
    """Fetch the customer's cart; build an unsaved one when ``create`` is set."""
    repo = current_domain.repository_for(ShoppingCart)
    cart = repo.for_customer(customer_id)
    if cart is None:
        if not create:
            raise CartNotFound("Cart not found", customer_id=str(customer_id))
        cart = ShoppingCart.create(customer_id=str(customer_id))
    return cart


def decode_variant(payload) -> dict | None:
    """Variant selection carried by a command, or ``None``."""
    if not payload:
        return None
    variant = json.loads(payload) if isinstance(payload, str) else payload
    return variant or None


def check_revision(cart, expected_revision):
    if expected_revision is not None and (cart.revision or 0) != expected_revision:
        raise ConcurrentUpdate(
            "Cart changed since it was read",
            customer_id=str(cart.customer_id),
            expected_revision=expected_revision,
            current_revision=cart.revision or 0,
        )


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        cart = load_cart(command.customer_id, create=True)
        check_revision(cart, command.expected_revision)

        cart.add_item(
            product_id=command.product_id,
            quantity=command.quantity or 1,
            variant=decode_variant(command.variant),
            product=CatalogStore().get(command.product_id),
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        cart = load_cart(command.customer_id)
        check_revision(cart, command.expected_revision)
        cart.update_quantity(
            product_id=command.product_id,
            quantity=command.quantity,
            variant=decode_variant(command.variant),
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = load_cart(command.customer_id)
        check_revision(cart, command.expected_revision)
        cart.remove_item(product_id=command.product_id, variant=decode_variant(command.variant))
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart
