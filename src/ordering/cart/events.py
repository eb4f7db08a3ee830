"""Domain events for the ShoppingCart aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product was added to the shopping cart, or its line grew."""

    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_name = String()
    variant_value = String()
    quantity = Integer(required=True)
    line_quantity = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    """The quantity of a cart line was changed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_name = String()
    variant_value = String()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_name = String()
    variant_value = String()


@ordering.event(part_of="ShoppingCart")
class CartCleared:
    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    cleared_at = DateTime(required=True)


@ordering.event(part_of="ShoppingCart")
class CartCouponApplied:
    """A coupon code was applied to the shopping cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)
    discount = Float(required=True)


@ordering.event(part_of="ShoppingCart")
class CartCouponRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)


@ordering.event(part_of="ShoppingCart")
class CartsMerged:
    """Lines from a guest session were merged into a customer's cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    items_merged_count = Integer(required=True)
    items_skipped_count = Integer(default=0)


@ordering.event(part_of="ShoppingCart")
class CartRefreshed:
    """The cart was reconciled with the catalogue."""

    __version__ = 1

    cart_id = Identifier(required=True)
    removed_count = Integer(default=0)
    adjusted_count = Integer(default=0)
    price_changed_count = Integer(default=0)
