"""Tests for the ShoppingCart aggregate."""

import pytest
from ordering.cart.cart import ShoppingCart
from ordering.cart.events import CartCouponApplied, CartItemAdded, CartsMerged
from ordering.catalogue.product import Product
from ordering.coupon.coupon import Coupon
from ordering.errors import CouponError, CouponMinimumNotMet, ItemNotFound, ItemUnavailable, ProductNotFound
from protean.exceptions import ValidationError


def _make_cart():
    return ShoppingCart.create(customer_id="cust-001")


SIZES = [{"name": "size", "value": "M"}, {"name": "size", "value": "L", "price": 2.0}]


def _product(price=30.0, stock=20, name="Widget", variants=()):
    return Product.add(name=name, price=price, stock=stock, variants=variants)


SAVE10 = dict(code="SAVE10", kind="percentage", value=10, min_amount=50)


class TestAddItem:
    def test_new_line_snapshots_product(self):
        cart = _make_cart()
        product = _product(price=30.0)
        cart.add_item(product.id, 2, product=product)

        assert cart.item_count == 1
        line = cart.lines[0]
        assert line.name == "Widget"
        assert line.unit_price == 30.0
        assert cart.subtotal == 60.0

    def test_same_product_merges_line(self):
        cart = _make_cart()
        product = _product()
        cart.add_item(product.id, 2, product=product)
        cart.add_item(product.id, 3)

        assert cart.item_count == 1
        assert cart.total_items == 5

    def test_merged_quantity_is_capped_at_ten(self):
        cart = _make_cart()
        product = _product()
        cart.add_item(product.id, 8, product=product)
        cart.add_item(product.id, 5)
        assert cart.lines[0].quantity == 10

    def test_different_variants_are_different_lines(self):
        cart = _make_cart()
        product = _product(variants=SIZES)
        cart.add_item(product.id, 1, variant={"name": "size", "value": "M"}, product=product)
        cart.add_item(product.id, 1, variant={"name": "size", "value": "L"}, product=product)

        assert cart.item_count == 2
        assert cart.subtotal == 62.0

    def test_variant_price_comes_from_catalogue(self):
        cart = _make_cart()
        product = _product(variants=SIZES)
        cart.add_item(product.id, 1, variant={"name": "Size", "value": "l", "price": 0.0}, product=product)

        variant = cart.lines[0].variant
        assert (variant.name, variant.value, variant.price) == ("size", "L", 2.0)
        assert cart.subtotal == 32.0

    def test_unknown_variant_rejected(self):
        cart = _make_cart()
        product = _product(variants=SIZES)
        with pytest.raises(ItemUnavailable):
            cart.add_item(product.id, 1, variant={"name": "size", "value": "XXL"}, product=product)
        assert cart.item_count == 0

    def test_zero_quantity_rejected(self):
        cart = _make_cart()
        with pytest.raises(ValidationError):
            cart.add_item("prod-001", 0, product=_product())

    def test_missing_product(self):
        cart = _make_cart()
        with pytest.raises(ProductNotFound):
            cart.add_item("prod-missing", 1)

    def test_not_enough_stock(self):
        cart = _make_cart()
        product = _product(stock=1)
        with pytest.raises(ItemUnavailable):
            cart.add_item(product.id, 2, product=product)
        assert cart.item_count == 0

    def test_raises_event(self):
        cart = _make_cart()
        product = _product()
        cart.add_item(product.id, 2, product=product)
        events = [e for e in cart._events if isinstance(e, CartItemAdded)]
        assert len(events) == 1
        assert events[0].line_quantity == 2


class TestQuantityAndRemoval:
    def test_update_quantity(self):
        cart = _make_cart()
        product = _product()
        cart.add_item(product.id, 2, product=product)
        cart.update_quantity(product.id, 4)
        assert cart.total_items == 4

    def test_update_to_zero_removes_line(self):
        cart = _make_cart()
        product = _product()
        cart.add_item(product.id, 2, product=product)
        cart.update_quantity(product.id, 0)
        assert cart.item_count == 0

    def test_update_unknown_line(self):
        cart = _make_cart()
        with pytest.raises(ItemNotFound):
            cart.update_quantity("prod-missing", 2)

    def test_remove_item(self):
        cart = _make_cart()
        product = _product()
        cart.add_item(product.id, 2, product=product)
        cart.remove_item(product.id)
        assert cart.item_count == 0
        assert cart.subtotal == 0.0

    def test_revision_increases_with_every_change(self):
        cart = _make_cart()
        product = _product()
        cart.add_item(product.id, 1, product=product)
        first = cart.revision
        cart.update_quantity(product.id, 2)
        assert cart.revision == first + 1


class TestTotals:
    def test_sixty_with_save10(self):
        cart = _make_cart()
        product = _product(price=30.0)
        cart.add_item(product.id, 2, product=product)
        cart.apply_coupon(Coupon.define(**SAVE10))

        assert cart.subtotal == 60.0
        assert cart.tax == 4.8
        assert cart.shipping == 10.0
        assert cart.coupon_discount == 6.0
        assert cart.total == 68.8

    def test_free_shipping_from_hundred(self):
        cart = _make_cart()
        product = _product(price=50.0)
        cart.add_item(product.id, 2, product=product)
        assert cart.shipping == 0.0
        assert cart.total == 108.0


class TestCoupons:
    def test_cannot_apply_to_empty_cart(self):
        cart = _make_cart()
        with pytest.raises(CouponError):
            cart.apply_coupon(Coupon.define(**SAVE10))

    def test_below_minimum_leaves_cart_unchanged(self):
        cart = _make_cart()
        product = _product(price=20.0)
        cart.add_item(product.id, 1, product=product)
        with pytest.raises(CouponMinimumNotMet):
            cart.apply_coupon(Coupon.define(**SAVE10))
        assert cart.coupon_code is None
        assert cart.coupon_discount == 0.0

    def test_apply_raises_event(self):
        cart = _make_cart()
        product = _product(price=30.0)
        cart.add_item(product.id, 2, product=product)
        cart.apply_coupon(Coupon.define(**SAVE10))
        events = [e for e in cart._events if isinstance(e, CartCouponApplied)]
        assert events[0].discount == 6.0

    def test_discount_drops_to_zero_below_minimum(self):
        cart = _make_cart()
        product = _product(price=30.0)
        cart.add_item(product.id, 2, product=product)
        cart.apply_coupon(Coupon.define(**SAVE10))
        cart.update_quantity(product.id, 1)

        assert cart.coupon_code == "SAVE10"
        assert cart.coupon_discount == 0.0
        assert cart.total == 42.4

    def test_remove_coupon(self):
        cart = _make_cart()
        product = _product(price=30.0)
        cart.add_item(product.id, 2, product=product)
        cart.apply_coupon(Coupon.define(**SAVE10))
        cart.remove_coupon()
        assert cart.coupon_code is None
        assert cart.total == 74.8

    def test_clear_drops_coupon(self):
        cart = _make_cart()
        product = _product(price=30.0)
        cart.add_item(product.id, 2, product=product)
        cart.apply_coupon(Coupon.define(**SAVE10))
        cart.clear()
        assert cart.item_count == 0
        assert cart.coupon_code is None
        assert cart.total == 10.0


class _Catalog:
    def __init__(self, *products):
        self.products = {str(p.id): p for p in products}

    def get(self, product_id):
        return self.products.get(str(product_id))


class TestMergeGuestCart:
    def test_merges_and_skips(self):
        cart = _make_cart()
        available = _product()
        sold_out = _product(stock=0, name="Gone")
        merged, skipped = cart.merge_guest_cart(
            [
                {"product_id": str(available.id), "quantity": 2},
                {"product_id": str(sold_out.id), "quantity": 1},
                {"product_id": "prod-missing", "quantity": 1},
            ],
            _Catalog(available, sold_out),
        )
        assert (merged, skipped) == (1, 2)
        assert cart.total_items == 2
        assert any(isinstance(e, CartsMerged) for e in cart._events)
