import json

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    from ordering.coupon.management import seed_default_coupons
    from ordering.gateway import reset_gateway

    with ordering_bed.domain_context():
        seed_default_coupons()
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()
        reset_gateway()


# ---------------------------------------------------------------------------
# Shared builders
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_product():
    """Add a product through the catalogue command and return it."""
    from ordering.catalogue.management import AddProduct
    from ordering.catalogue.product import Product
    from protean import current_domain

    def _make(name="Widget", price=30.0, stock=10, variants=None, **kwargs):
        if variants:
            kwargs["variants"] = json.dumps(variants)
        product_id = current_domain.process(
            AddProduct(name=name, price=price, stock=stock, **kwargs),
            asynchronous=False,
        )
        return current_domain.repository_for(Product).get(product_id)

    return _make


@pytest.fixture()
def customer():
    from ordering.actor import Actor

    return Actor(customer_id="cust-001", email="ada@example.com")


@pytest.fixture()
def admin():
    from ordering.actor import Actor

    return Actor(customer_id="admin-001", email="ops@example.com", role="admin")


@pytest.fixture()
def address():
    return {
        "name": "Ada Lovelace",
        "address": "12 St James's Square",
        "city": "London",
        "postal_code": "SW1Y 4JH",
        "country": "UK",
        "phone": "+44 20 7946 0000",
    }


@pytest.fixture()
def place_order(make_product, customer, address):
    """Check out ``quantity`` units of a fresh product; returns (order, product)."""
    from ordering.checkout.checkout import CheckoutService

    def _place(price=30.0, stock=10, quantity=2, payment_method="stripe", actor=None, coupon_code=None):
        product = make_product(price=price, stock=stock)
        order = CheckoutService().place_order(
            actor or customer,
            items=[{"product_id": product.id, "quantity": quantity}],
            shipping_address=address,
            payment_method=payment_method,
            coupon_code=coupon_code,
        )
        return order, product

    return _place
