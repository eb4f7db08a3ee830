"""Integration tests for Order API endpoints via TestClient."""

CUSTOMER = {"X-Customer-Id": "cust-api-001", "X-Customer-Email": "ada@example.com"}
STRANGER = {"X-Customer-Id": "cust-api-999"}
ADMIN = {"X-Customer-Id": "admin-001", "X-Role": "admin"}


def _create_order(client, product_id, address, quantity=2, **extra):
    response = client.post(
        "/orders",
        json={
            "items": [{"product_id": product_id, "quantity": quantity}],
            "shipping_address": address,
            "payment_method": "stripe",
            **extra,
        },
        headers=CUSTOMER,
    )
    assert response.status_code == 201
    return response.json()


class TestCreateOrder:
    def test_create_returns_number(self, client, api_product, address_json):
        body = _create_order(client, api_product(), address_json)
        assert body["order_number"].startswith("ORD")

    def test_created_order_details(self, client, api_product, address_json):
        order_id = _create_order(client, api_product(price=30.0), address_json, coupon_code="SAVE10")["order_id"]
        body = client.get(f"/orders/{order_id}", headers=CUSTOMER).json()
        assert body["status"] == "pending"
        assert body["items_price"] == 60.0
        assert body["total_price"] == 68.8
        assert len(body["status_history"]) == 1

    def test_short_stock(self, client, api_product, address_json):
        product_id = api_product(stock=1)
        response = client.post(
            "/orders",
            json={
                "items": [{"product_id": product_id, "quantity": 2}],
                "shipping_address": address_json,
                "payment_method": "stripe",
            },
            headers=CUSTOMER,
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "insufficient_stock"

    def test_empty_items_rejected(self, client, address_json):
        response = client.post(
            "/orders",
            json={"items": [], "shipping_address": address_json, "payment_method": "stripe"},
            headers=CUSTOMER,
        )
        assert response.status_code == 422


class TestCartCheckout:
    def test_checkout_clears_cart(self, client, api_product, address_json):
        product_id = api_product(price=30.0)
        client.post("/cart/items", json={"product_id": product_id, "quantity": 2}, headers=CUSTOMER)

        response = client.post(
            "/cart/checkout",
            json={"shipping_address": address_json, "payment_method": "stripe"},
            headers=CUSTOMER,
        )
        assert response.status_code == 201
        assert response.json()["items_price"] == 60.0
        assert client.get("/cart/count", headers=CUSTOMER).json()["count"] == 0


class TestOrderAccess:
    def test_stranger_forbidden(self, client, api_product, address_json):
        order_id = _create_order(client, api_product(), address_json)["order_id"]
        assert client.get(f"/orders/{order_id}", headers=STRANGER).status_code == 403

    def test_unknown_order(self, client):
        assert client.get("/orders/ord-missing", headers=CUSTOMER).status_code == 404

    def test_my_orders(self, client, api_product, address_json):
        _create_order(client, api_product(), address_json)
        body = client.get("/orders", headers=CUSTOMER).json()
        assert body["total"] == 1
        assert client.get("/orders", headers=STRANGER).json()["total"] == 0

    def test_admin_listing(self, client, api_product, address_json):
        _create_order(client, api_product(), address_json)
        assert client.get("/orders/admin/all", headers=ADMIN).json()["total"] == 1
        assert client.get("/orders/admin/all", headers=CUSTOMER).status_code == 403

    def test_public_tracking(self, client, api_product, address_json):
        number = _create_order(client, api_product(), address_json)["order_number"]
        body = client.get(f"/orders/track/{number}").json()
        assert body["status"] == "pending"
        assert "shipping_address" not in body
        assert "transaction_id" not in body


class TestOrderLifecycle:
    def test_cancel_restores_stock(self, client, api_product, address_json):
        product_id = api_product(stock=10)
        order_id = _create_order(client, product_id, address_json, quantity=3)["order_id"]
        assert client.get(f"/products/{product_id}").json()["stock"] == 7

        response = client.put(f"/orders/{order_id}/cancel", json={"reason": "Too slow"}, headers=CUSTOMER)
        assert response.json()["status"] == "cancelled"
        assert client.get(f"/products/{product_id}").json()["stock"] == 10

    def test_restock_after_cancel_is_a_no_op(self, client, api_product, address_json):
        product_id = api_product(stock=10)
        order_id = _create_order(client, product_id, address_json, quantity=3)["order_id"]
        client.put(f"/orders/{order_id}/cancel", json={}, headers=CUSTOMER)

        assert client.post(f"/orders/{order_id}/restock", headers=CUSTOMER).status_code == 403
        response = client.post(f"/orders/{order_id}/restock", headers=ADMIN)
        assert response.status_code == 200
        assert [item["restocked"] for item in response.json()["items"]] == [True]
        assert client.get(f"/products/{product_id}").json()["stock"] == 10

    def test_restock_open_order_conflicts(self, client, api_product, address_json):
        order_id = _create_order(client, api_product(), address_json)["order_id"]
        assert client.post(f"/orders/{order_id}/restock", headers=ADMIN).status_code == 409

    def test_ship_and_deliver(self, client, api_product, address_json):
        order_id = _create_order(client, api_product(), address_json)["order_id"]
        response = client.put(
            f"/orders/{order_id}/ship",
            json={"carrier": "DHL", "tracking_number": "TRK-1"},
            headers=ADMIN,
        )
        assert response.json()["status"] == "shipped"
        response = client.put(f"/orders/{order_id}/deliver", json={}, headers=ADMIN)
        assert response.json()["is_delivered"] is True

    def test_shipped_order_cannot_be_cancelled(self, client, api_product, address_json):
        order_id = _create_order(client, api_product(), address_json)["order_id"]
        client.put(f"/orders/{order_id}/ship", json={}, headers=ADMIN)
        response = client.put(f"/orders/{order_id}/cancel", json={}, headers=CUSTOMER)
        assert response.status_code == 409

    def test_customer_cannot_ship(self, client, api_product, address_json):
        order_id = _create_order(client, api_product(), address_json)["order_id"]
        assert client.put(f"/orders/{order_id}/ship", json={}, headers=CUSTOMER).status_code == 403

    def test_reorder(self, client, api_product, address_json):
        product_id = api_product()
        order_id = _create_order(client, product_id, address_json)["order_id"]
        body = client.post(f"/orders/{order_id}/reorder", headers=CUSTOMER).json()
        assert body["items"][0]["product_id"] == product_id
        assert body["unavailable_count"] == 0
