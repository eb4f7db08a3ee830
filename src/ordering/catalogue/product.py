"""Product aggregate (CQRS) — the ordering context's view of the catalogue.

Carts and orders read name, image, price, stock and status from here. Stock
only moves through ``decrement_stock`` / ``restock`` so that the
``stock >= 0`` invariant and the stock-driven status stay consistent.

Status model:
    active        sellable
    out_of_stock  set automatically when stock reaches 0, cleared on restock
    inactive      hidden by an admin
    archived      retired for good
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Integer, String

from ordering.catalogue.events import (
    LowStockDetected,
    ProductAdded,
    ProductPriceChanged,
    ProductStatusChanged,
    StockDecremented,
    StockRestored,
)
from ordering.catalogue.variant import variant_key
from ordering.domain import ordering
from ordering.errors import InsufficientStock, InvalidTransition, ItemUnavailable


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"
    OUT_OF_STOCK = "out_of_stock"


class StockStatus(Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


@ordering.entity(part_of="Product")
class ProductVariant:
    """An option sold under a product, priced as an amount on top of it."""

    name = String(required=True, max_length=50)
    value = String(required=True, max_length=100)
    price = Float(default=0.0, min_value=0.0)
    sku = String(max_length=100)
    is_active = Boolean(default=True)

    def matches(self, name, value) -> bool:
        return self.name.lower() == (name or "").lower() and self.value.lower() == (value or "").lower()


@ordering.aggregate
class Product:
    name = String(required=True, max_length=200)
    image = String(max_length=500, default="")
    price = Float(required=True, min_value=0.0)
    compare_at_price = Float(min_value=0.0)
    stock = Integer(default=0)
    low_stock_threshold = Integer(default=5, min_value=0)
    is_active = Boolean(default=True)
    status = String(choices=ProductStatus, default=ProductStatus.ACTIVE.value)
    variants = HasMany(ProductVariant)
    revision = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def stock_cannot_be_negative(self):
        if self.stock is not None and self.stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def add(cls, name, price, stock=0, image="", compare_at_price=None, low_stock_threshold=5, variants=()):
        now = datetime.now(UTC)
        status = ProductStatus.ACTIVE if stock > 0 else ProductStatus.OUT_OF_STOCK
        product = cls(
            name=name,
            image=image or "",
            price=price,
            compare_at_price=compare_at_price,
            stock=stock,
            low_stock_threshold=low_stock_threshold,
            is_active=True,
            status=status.value,
            created_at=now,
            updated_at=now,
        )
        for variant in variants or ():
            product._offer(**variant)
        product.raise_(
            ProductAdded(
                product_id=str(product.id),
                name=name,
                price=price,
                stock=stock,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def stock_status(self) -> str:
        if self.stock == 0:
            return StockStatus.OUT_OF_STOCK.value
        if self.stock <= self.low_stock_threshold:
            return StockStatus.LOW_STOCK.value
        return StockStatus.IN_STOCK.value

    @property
    def discount_percentage(self) -> int:
        if self.compare_at_price and self.compare_at_price > self.price:
            return round((self.compare_at_price - self.price) / self.compare_at_price * 100)
        return 0

    @property
    def is_sellable(self) -> bool:
        return bool(self.is_active) and ProductStatus(self.status) not in (
            ProductStatus.INACTIVE,
            ProductStatus.ARCHIVED,
        )

    def can_supply(self, quantity: int) -> bool:
        return self.is_sellable and self.stock >= quantity

    # -------------------------------------------------------------------
    # Variants
    # -------------------------------------------------------------------
    def find_variant(self, name, value) -> ProductVariant | None:
        return next((v for v in self.variants or [] if v.matches(name, value)), None)

    def _offer(self, name, value, price=0.0, sku=None):
        if self.find_variant(name, value) is not None:
            raise ValidationError({"variants": [f"Variant {name}={value} already exists"]})
        self.add_variants(ProductVariant(name=name, value=value, price=price or 0.0, sku=sku))

    def add_variant(self, name, value, price=0.0, sku=None):
        self._offer(name, value, price, sku)
        self._touch()

    def retire_variant(self, name, value):
        """Stop selling a variant. Carts holding it see the line as unavailable."""
        variant = self.find_variant(name, value)
        if variant is None:
            raise ValidationError({"variants": [f"Variant {name}={value} not found"]})
        variant.is_active = False
        self._touch()

    def priced_variant(self, variant) -> dict | None:
        """Catalogue pricing of a requested ``{name, value}`` selection.

        Returns ``None`` for no selection. A selection the product does not
        sell raises ``ItemUnavailable``.
        """
        name, value = variant_key(variant)
        if not name or not value:
            return None
        offered = self.find_variant(name, value)
        if offered is None or not offered.is_active:
            raise ItemUnavailable(
                f"Variant {name}={value} is not available for {self.name}",
                product_id=str(self.id),
                variant_name=name,
                variant_value=value,
            )
        return {"name": offered.name, "value": offered.value, "price": offered.price or 0.0}

    def _touch(self):
        self.revision = (self.revision or 0) + 1
        self.updated_at = datetime.now(UTC)

    def _set_status(self, status: ProductStatus):
        previous = self.status
        if previous == status.value:
            return
        self.status = status.value
        self.raise_(
            ProductStatusChanged(
                product_id=str(self.id),
                previous_status=previous,
                new_status=status.value,
            )
        )

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def decrement_stock(self, quantity: int):
        """Take ``quantity`` units out of stock, or fail without touching it."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if self.stock < quantity:
            raise InsufficientStock(
                f"Insufficient stock for product: {self.name}",
                product_id=str(self.id),
                requested=quantity,
                available=self.stock,
            )

        self.stock -= quantity
        self._touch()
        if self.stock == 0:
            self._set_status(ProductStatus.OUT_OF_STOCK)

        self.raise_(
            StockDecremented(
                product_id=str(self.id),
                quantity=quantity,
                remaining=self.stock,
                decremented_at=self.updated_at,
            )
        )
        if 0 < self.stock <= self.low_stock_threshold:
            self.raise_(
                LowStockDetected(
                    product_id=str(self.id),
                    remaining=self.stock,
                    threshold=self.low_stock_threshold,
                )
            )

    def restock(self, quantity: int):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.stock += quantity
        self._touch()
        if ProductStatus(self.status) == ProductStatus.OUT_OF_STOCK:
            self._set_status(ProductStatus.ACTIVE)

        self.raise_(
            StockRestored(
                product_id=str(self.id),
                quantity=quantity,
                remaining=self.stock,
                restored_at=self.updated_at,
            )
        )

    # -------------------------------------------------------------------
    # Catalogue maintenance
    # -------------------------------------------------------------------
    def change_price(self, new_price: float):
        if new_price < 0:
            raise ValidationError({"price": ["Price must be a positive number"]})
        previous = self.price
        if previous == new_price:
            return
        self.price = new_price
        self._touch()
        self.raise_(
            ProductPriceChanged(
                product_id=str(self.id),
                previous_price=previous,
                new_price=new_price,
            )
        )

    def deactivate(self):
        if ProductStatus(self.status) == ProductStatus.ARCHIVED:
            raise InvalidTransition("Archived products cannot be deactivated", product_id=str(self.id))
        self.is_active = False
        self._set_status(ProductStatus.INACTIVE)
        self._touch()

    def archive(self):
        self.is_active = False
        self._set_status(ProductStatus.ARCHIVED)
        self._touch()

    def activate(self):
        if ProductStatus(self.status) == ProductStatus.ARCHIVED:
            raise InvalidTransition("Archived products cannot be reactivated", product_id=str(self.id))
        self.is_active = True
        self._set_status(ProductStatus.ACTIVE if self.stock > 0 else ProductStatus.OUT_OF_STOCK)
        self._touch()
