"""Cart coupon management — commands and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.cart.items import check_revision, load_cart
from ordering.coupon.resolver import CouponResolver
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class ApplyCouponToCart:
    """Apply a coupon code to a customer's cart."""

    customer_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)
    expected_revision = Integer()


@ordering.command(part_of="ShoppingCart")
class RemoveCouponFromCart:
    customer_id = Identifier(required=True)
    expected_revision = Integer()


@ordering.command_handler(part_of=ShoppingCart)
class CartCouponHandler:
    @handle(ApplyCouponToCart)
    def apply_coupon(self, command):
        cart = load_cart(command.customer_id)
        check_revision(cart, command.expected_revision)
        coupon = CouponResolver().lookup(command.coupon_code)
        cart.apply_coupon(coupon)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(RemoveCouponFromCart)
    def remove_coupon(self, command):
        cart = load_cart(command.customer_id)
        check_revision(cart, command.expected_revision)
        cart.remove_coupon()
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart
