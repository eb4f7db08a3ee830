import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from ordering.api import cart_router, coupon_router, order_router, payment_router, product_router
from ordering.api.errors import register_error_handlers
from ordering.domain import ordering
from protean.integrations.fastapi import register_exception_handlers

ADMIN = {"X-Customer-Id": "admin-001", "X-Role": "admin"}


@pytest.fixture()
def client():
    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with ordering.domain_context():
            return await call_next(request)

    for router in (cart_router, order_router, payment_router, coupon_router, product_router):
        app.include_router(router)
    register_exception_handlers(app)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def api_product(client):
    """Create a product through the admin API and return its id."""

    def _create(name="Widget", price=30.0, stock=10, variants=()):
        body = {"name": name, "price": price, "stock": stock, "variants": list(variants)}
        response = client.post("/products", json=body, headers=ADMIN)
        assert response.status_code == 201
        return response.json()["product_id"]

    return _create


@pytest.fixture()
def address_json():
    return {
        "name": "Ada Lovelace",
        "address": "12 St James's Square",
        "city": "London",
        "postal_code": "SW1Y 4JH",
        "country": "UK",
        "phone": "+44 20 7946 0000",
    }
