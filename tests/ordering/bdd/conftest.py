"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.cart.cart import ShoppingCart
from ordering.cart.items import AddToCart
from ordering.catalogue.management import AddProduct
from ordering.catalogue.product import Product
from ordering.checkout.checkout import CheckoutService
from ordering.order.fulfillment import ShipOrder
from ordering.order.order import Order
from ordering.order.payment import process_gateway_event
from protean import current_domain
from pytest_bdd import given, parsers, then

ADDRESS = {
    "name": "Ada Lovelace",
    "address": "12 St James's Square",
    "city": "London",
    "postal_code": "SW1Y 4JH",
    "country": "UK",
    "phone": "+44 20 7946 0000",
}


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def products():
    """Product ids by name."""
    return {}


@pytest.fixture()
def placed():
    """Orders placed during the scenario."""
    return []


@pytest.fixture()
def error():
    """Container for the business error raised by a When step."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced {price:f} with {stock:d} in stock'))
def product_exists(products, name, price, stock):
    products[name] = current_domain.process(
        AddProduct(name=name, price=price, stock=stock),
        asynchronous=False,
    )


@given(parsers.cfparse('the customer has {quantity:d} "{name}" in the cart'))
def cart_has(customer, products, name, quantity):
    current_domain.process(
        AddToCart(customer_id=customer.customer_id, product_id=products[name], quantity=quantity),
        asynchronous=False,
    )


@given(parsers.cfparse('the customer ordered {quantity:d} "{name}"'))
def customer_ordered(customer, products, placed, name, quantity):
    placed.append(
        CheckoutService().place_order(
            customer,
            items=[{"product_id": products[name], "quantity": quantity}],
            shipping_address=ADDRESS,
            payment_method="stripe",
        )
    )


@given(parsers.cfparse('the gateway confirmed payment "{transaction_id}"'))
def gateway_confirmed(placed, transaction_id):
    process_gateway_event(
        {"type": "payment.succeeded", "data": {"order_id": str(placed[0].id), "transaction_id": transaction_id}}
    )


@given("the admin shipped the order")
def admin_shipped(admin, placed):
    current_domain.process(ShipOrder(order_id=placed[0].id, actor=admin.label), asynchronous=False)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('"{name}" has {stock:d} in stock'))
def product_stock(products, name, stock):
    assert current_domain.repository_for(Product).get(products[name]).stock == stock


@then(parsers.cfparse('the order is "{status}"'))
def order_status(placed, status):
    assert current_domain.repository_for(Order).get(placed[0].id).status == status


@then(parsers.cfparse('the action fails with "{code}"'))
def action_fails(error, code):
    assert error["exc"] is not None
    assert error["exc"].code == code


@then("the cart is empty")
def cart_is_empty(customer):
    cart = current_domain.repository_for(ShoppingCart).for_customer(customer.customer_id)
    assert cart is None or cart.item_count == 0
