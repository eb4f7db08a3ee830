"""Catalogue maintenance and stock movements — commands and handler."""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.catalogue.product import Product
from ordering.domain import ordering
from ordering.errors import ConcurrentUpdate, ProductNotFound


@ordering.command(part_of="Product")
class AddProduct:
    name = String(required=True, max_length=200)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    image = String(max_length=500)
    compare_at_price = Float(min_value=0.0)
    low_stock_threshold = Integer(default=5, min_value=0)
    variants = Text()  # JSON: [{name, value, price, sku}]


@ordering.command(part_of="Product")
class AddProductVariant:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=50)
    value = String(required=True, max_length=100)
    price = Float(default=0.0, min_value=0.0)
    sku = String(max_length=100)


@ordering.command(part_of="Product")
class RetireProductVariant:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=50)
    value = String(required=True, max_length=100)


@ordering.command(part_of="Product")
class ChangeProductPrice:
    product_id = Identifier(required=True)
    price = Float(required=True, min_value=0.0)


@ordering.command(part_of="Product")
class DeactivateProduct:
    product_id = Identifier(required=True)


@ordering.command(part_of="Product")
class ArchiveProduct:
    product_id = Identifier(required=True)


@ordering.command(part_of="Product")
class ActivateProduct:
    product_id = Identifier(required=True)


@ordering.command(part_of="Product")
class ReserveStock:
    """Decrement stock if, and only if, enough units are left."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    expected_revision = Integer()


@ordering.command(part_of="Product")
class RestockProduct:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    expected_revision = Integer()


def load_product(product_id) -> Product:
    try:
        return current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError as exc:
        raise ProductNotFound(f"Product not found: {product_id}", product_id=str(product_id)) from exc


def _check_revision(product, expected_revision):
    if expected_revision is not None and product.revision != expected_revision:
        raise ConcurrentUpdate(
            "Product changed since it was read",
            product_id=str(product.id),
            expected_revision=expected_revision,
            current_revision=product.revision,
        )


@ordering.command_handler(part_of=Product)
class ManageProductHandler:
    @handle(AddProduct)
    def add_product(self, command):
        product = Product.add(
            name=command.name,
            price=command.price,
            stock=command.stock or 0,
            image=command.image,
            compare_at_price=command.compare_at_price,
            low_stock_threshold=command.low_stock_threshold if command.low_stock_threshold is not None else 5,
            variants=json.loads(command.variants) if command.variants else (),
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(AddProductVariant)
    def add_variant(self, command):
        product = load_product(command.product_id)
        product.add_variant(command.name, command.value, price=command.price or 0.0, sku=command.sku)
        current_domain.repository_for(Product).add(product)
        return product

    @handle(RetireProductVariant)
    def retire_variant(self, command):
        product = load_product(command.product_id)
        product.retire_variant(command.name, command.value)
        current_domain.repository_for(Product).add(product)
        return product

    @handle(ChangeProductPrice)
    def change_price(self, command):
        product = load_product(command.product_id)
        product.change_price(command.price)
        current_domain.repository_for(Product).add(product)

    @handle(DeactivateProduct)
    def deactivate(self, command):
        product = load_product(command.product_id)
        product.deactivate()
        current_domain.repository_for(Product).add(product)

    @handle(ArchiveProduct)
    def archive(self, command):
        product = load_product(command.product_id)
        product.archive()
        current_domain.repository_for(Product).add(product)

    @handle(ActivateProduct)
    def activate(self, command):
        product = load_product(command.product_id)
        product.activate()
        current_domain.repository_for(Product).add(product)

    @handle(ReserveStock)
    def reserve_stock(self, command):
        product = load_product(command.product_id)
        _check_revision(product, command.expected_revision)
        product.decrement_stock(command.quantity)
        current_domain.repository_for(Product).add(product)
        return product.stock

    @handle(RestockProduct)
    def restock(self, command):
        product = load_product(command.product_id)
        _check_revision(product, command.expected_revision)
        product.restock(command.quantity)
        current_domain.repository_for(Product).add(product)
        return product.stock
