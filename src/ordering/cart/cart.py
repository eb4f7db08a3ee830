"""Shopping Cart aggregate (CQRS) — one mutable cart per customer.

A line snapshots the product's name, image and price when it is first added;
later catalogue changes are surfaced by ``validate_cart`` rather than applied
silently. Money fields are derived: every mutation ends in ``_recompute`` so
that ``total == subtotal + tax + shipping - coupon_discount`` always holds.

The applied coupon is stored as a snapshot of its rule (kind, value, minimum)
and the discount is re-derived from it whenever the subtotal moves. While the
subtotal sits below the rule's minimum the code stays on the cart but the
discount is zero.
"""

from datetime import UTC, datetime
from decimal import Decimal

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from ordering.cart.events import (
    CartCleared,
    CartCouponApplied,
    CartCouponRemoved,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
    CartsMerged,
)
from ordering.catalogue.variant import Variant, as_variant, variant_key
from ordering.domain import ordering
from ordering.errors import CouponError, ItemNotFound, ItemUnavailable, ProductNotFound
from ordering.pricing import (
    CURRENCY,
    MAX_LINE_QUANTITY,
    ZERO,
    clamp_quantity,
    compute_totals,
    discount_for,
    line_total,
    money,
)


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=200)
    image = String(max_length=500, default="")
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1, max_value=MAX_LINE_QUANTITY)
    variant = ValueObject(Variant)
    added_at = DateTime()

    @property
    def key(self) -> tuple:
        return (str(self.product_id), *variant_key(self.variant))

    @property
    def additional_price(self) -> float:
        return (self.variant.price or 0.0) if self.variant else 0.0

    @property
    def line_total(self) -> Decimal:
        return line_total(self.unit_price, self.additional_price, self.quantity)

    def to_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "name": self.name,
            "image": self.image or "",
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "variant": (
                {"name": self.variant.name, "value": self.variant.value, "price": self.variant.price}
                if self.variant
                else None
            ),
            "line_total": float(self.line_total),
            "added_at": self.added_at.isoformat() if self.added_at else None,
        }


@ordering.aggregate
class ShoppingCart:
    customer_id = Identifier(required=True)
    items = HasMany(CartItem)
    coupon_code = String(max_length=50)
    coupon_kind = String(max_length=20)
    coupon_value = Float()
    coupon_min_amount = Float()
    coupon_discount = Float(default=0.0)
    subtotal = Float(default=0.0)
    tax = Float(default=0.0)
    shipping = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default=CURRENCY)
    revision = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_balance(self):
        expected = money(self.subtotal) + money(self.tax) + money(self.shipping) - money(self.coupon_discount)
        if money(self.total) != expected:
            raise ValidationError({"total": ["Total must equal subtotal + tax + shipping - discount"]})

    @invariant.post
    def discount_cannot_exceed_subtotal(self):
        if money(self.coupon_discount) > money(self.subtotal):
            raise ValidationError({"coupon_discount": ["Discount cannot exceed the subtotal"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            currency=CURRENCY,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def lines(self) -> list[CartItem]:
        """Items in the order they were first added."""
        return sorted(self.items, key=lambda i: i.added_at or datetime.min.replace(tzinfo=UTC))

    def find_line(self, product_id, variant=None) -> CartItem | None:
        key = (str(product_id), *variant_key(variant))
        return next((i for i in self.items if i.key == key), None)

    def _require_line(self, product_id, variant=None) -> CartItem:
        item = self.find_line(product_id, variant)
        if item is None:
            raise ItemNotFound(
                "Item not found in cart",
                product_id=str(product_id),
                variant=list(variant_key(variant)),
            )
        return item

    def summary(self) -> dict:
        return {
            "item_count": self.item_count,
            "total_items": self.total_items,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "shipping": self.shipping,
            "coupon_discount": self.coupon_discount,
            "coupon_code": self.coupon_code,
            "total": self.total,
            "currency": self.currency,
        }

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def _items_subtotal(self) -> Decimal:
        return money(sum((item.line_total for item in self.items), ZERO))

    def _coupon_discount_for(self, subtotal) -> Decimal:
        if not self.coupon_code or not self.coupon_kind:
            return ZERO
        if money(subtotal) < money(self.coupon_min_amount):
            return ZERO
        return discount_for(self.coupon_kind, self.coupon_value, subtotal)

    def _recompute(self):
        """Re-derive every money field and bump the revision."""
        subtotal = self._items_subtotal()
        totals = compute_totals(subtotal, self._coupon_discount_for(subtotal))
        with atomic_change(self):
            self.subtotal = float(totals.subtotal)
            self.tax = float(totals.tax)
            self.shipping = float(totals.shipping)
            self.coupon_discount = float(totals.discount)
            self.total = float(totals.total)
            self.revision = (self.revision or 0) + 1
            self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity=1, variant=None, product=None):
        """Add ``quantity`` of a product, or grow the matching line.

        ``product`` is the catalogue record, needed when the line is new. When
        given, the variant is priced from it and must be one the product sells.
        """
        if quantity is None or int(quantity) < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        quantity = int(quantity)
        if product is not None:
            variant = product.priced_variant(variant)
        existing = self.find_line(product_id, variant)

        if existing:
            existing.quantity = clamp_quantity(existing.quantity + quantity)
            line = existing
        else:
            if product is None:
                raise ProductNotFound(f"Product not found: {product_id}", product_id=str(product_id))
            if not product.can_supply(quantity):
                raise ItemUnavailable(
                    f"Product not available: {product.name}",
                    product_id=str(product_id),
                    requested=quantity,
                    available=product.stock if product.is_sellable else 0,
                )
            line = CartItem(
                product_id=str(product_id),
                name=product.name,
                image=product.image or "",
                unit_price=product.price,
                quantity=clamp_quantity(quantity),
                variant=as_variant(variant),
                added_at=datetime.now(UTC),
            )
            self.add_items(line)

        self._recompute()
        name, value = variant_key(variant)
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                product_id=str(product_id),
                variant_name=name,
                variant_value=value,
                quantity=quantity,
                line_quantity=line.quantity,
            )
        )

    def update_quantity(self, product_id, quantity, variant=None):
        """Set a line's quantity. Zero or less removes the line."""
        item = self._require_line(product_id, variant)
        if quantity is None or int(quantity) <= 0:
            self._drop_line(item)
            return

        previous = item.quantity
        item.quantity = clamp_quantity(quantity)
        self._recompute()
        name, value = variant_key(item.variant)
        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                product_id=str(product_id),
                variant_name=name,
                variant_value=value,
                previous_quantity=previous,
                new_quantity=item.quantity,
            )
        )

    def remove_item(self, product_id, variant=None):
        self._drop_line(self._require_line(product_id, variant))

    def _drop_line(self, item):
        name, value = variant_key(item.variant)
        product_id = str(item.product_id)
        self.remove_items(item)
        self._recompute()
        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                product_id=product_id,
                variant_name=name,
                variant_value=value,
            )
        )

    def clear(self):
        """Drop every line and the applied coupon."""
        for item in list(self.items):
            self.remove_items(item)
        self._forget_coupon()
        self._recompute()
        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                cleared_at=self.updated_at,
            )
        )

    # -------------------------------------------------------------------
    # Coupon management
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon):
        """Apply a resolved ``Coupon`` rule to the cart.

        Nothing changes when the rule rejects the current subtotal.
        """
        if not self.items:
            raise CouponError("Cannot apply coupon to empty cart", coupon_code=coupon.code)

        discount = coupon.discount_for(self._items_subtotal())

        self.coupon_code = coupon.code
        self.coupon_kind = coupon.kind
        self.coupon_value = coupon.value
        self.coupon_min_amount = coupon.min_amount
        self._recompute()
        self.raise_(
            CartCouponApplied(
                cart_id=str(self.id),
                coupon_code=coupon.code,
                discount=float(discount),
            )
        )

    def remove_coupon(self):
        code = self.coupon_code
        self._forget_coupon()
        self._recompute()
        if code:
            self.raise_(CartCouponRemoved(cart_id=str(self.id), coupon_code=code))

    def _forget_coupon(self):
        self.coupon_code = None
        self.coupon_kind = None
        self.coupon_value = None
        self.coupon_min_amount = None

    # -------------------------------------------------------------------
    # Guest cart merging
    # -------------------------------------------------------------------
    def merge_guest_cart(self, guest_items, catalog):
        """Add each guest line with ``add_item`` rules.

        Lines whose product is missing or unavailable are skipped; the
        number merged and skipped is returned as a tuple.
        """
        merged = skipped = 0
        for guest_item in guest_items:
            product_id = guest_item["product_id"]
            try:
                self.add_item(
                    product_id=product_id,
                    quantity=guest_item.get("quantity", 1),
                    variant=guest_item.get("variant"),
                    product=catalog.get(product_id),
                )
                merged += 1
            except (ProductNotFound, ItemUnavailable):
                skipped += 1

        self.raise_(
            CartsMerged(
                cart_id=str(self.id),
                items_merged_count=merged,
                items_skipped_count=skipped,
            )
        )
        return merged, skipped


@ordering.repository(part_of=ShoppingCart)
class ShoppingCartRepository:
    def for_customer(self, customer_id) -> ShoppingCart | None:
        carts = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return carts[0] if carts else None

    def stale_empty_carts(self, cutoff: datetime) -> list[ShoppingCart]:
        carts = self._dao.query.all().items
        return [cart for cart in carts if not cart.items and cart.updated_at and cart.updated_at < cutoff]

    def remove(self, cart: ShoppingCart) -> None:
        self._dao.delete(cart)
