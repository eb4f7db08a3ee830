"""Integration tests for Payment API endpoints via TestClient."""

import json

from ordering.gateway.fake_adapter import TEST_SIGNATURE

CUSTOMER = {"X-Customer-Id": "cust-api-001"}
ADMIN = {"X-Customer-Id": "admin-001", "X-Role": "admin"}


def _order(client, api_product, address_json, payment_method="stripe"):
    response = client.post(
        "/orders",
        json={
            "items": [{"product_id": api_product(), "quantity": 1}],
            "shipping_address": address_json,
            "payment_method": payment_method,
        },
        headers=CUSTOMER,
    )
    return response.json()["order_id"]


def _webhook(client, event, signature=TEST_SIGNATURE):
    return client.post(
        "/payments/webhook",
        content=json.dumps(event),
        headers={"Content-Type": "application/json", "X-Gateway-Signature": signature},
    )


def _succeeded(order_id, transaction_id="pi_001"):
    return {"type": "payment.succeeded", "data": {"order_id": order_id, "transaction_id": transaction_id}}


class TestWebhook:
    def test_confirms_payment(self, client, api_product, address_json):
        order_id = _order(client, api_product, address_json)
        response = _webhook(client, _succeeded(order_id))
        assert response.status_code == 200
        assert response.json()["outcome"] == "confirmed"

        body = client.get(f"/orders/{order_id}", headers=CUSTOMER).json()
        assert body["is_paid"] is True
        assert body["status"] == "processing"

    def test_redelivery_is_a_no_op(self, client, api_product, address_json):
        order_id = _order(client, api_product, address_json)
        _webhook(client, _succeeded(order_id))
        before = client.get(f"/orders/{order_id}", headers=CUSTOMER).json()

        assert _webhook(client, _succeeded(order_id)).json()["outcome"] == "duplicate"
        after = client.get(f"/orders/{order_id}", headers=CUSTOMER).json()
        assert after["paid_at"] == before["paid_at"]
        assert after["status_history"] == before["status_history"]

    def test_bad_signature(self, client, api_product, address_json):
        order_id = _order(client, api_product, address_json)
        assert _webhook(client, _succeeded(order_id), signature="forged").status_code == 401

    def test_unknown_order(self, client):
        assert _webhook(client, _succeeded("ord-missing")).status_code == 404

    def test_array_body_rejected(self, client, api_product, address_json):
        order_id = _order(client, api_product, address_json)
        response = _webhook(client, [_succeeded(order_id)])
        assert response.status_code == 400
        assert client.get(f"/orders/{order_id}", headers=CUSTOMER).json()["is_paid"] is False

    def test_not_json_rejected(self, client):
        response = client.post(
            "/payments/webhook",
            content="not json",
            headers={"Content-Type": "application/json", "X-Gateway-Signature": TEST_SIGNATURE},
        )
        assert response.status_code == 400

    def test_success_without_transaction_id_ignored(self, client, api_product, address_json):
        order_id = _order(client, api_product, address_json)
        response = _webhook(client, {"type": "payment.succeeded", "data": {"order_id": order_id}})
        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"
        assert client.get(f"/orders/{order_id}", headers=CUSTOMER).json()["is_paid"] is False


class TestRefund:
    def test_admin_refund(self, client, api_product, address_json):
        order_id = _order(client, api_product, address_json)
        _webhook(client, _succeeded(order_id))

        response = client.post(f"/payments/orders/{order_id}/refund", json={"reason": "Damaged"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["status"] == "refunded"

    def test_customer_cannot_refund(self, client, api_product, address_json):
        order_id = _order(client, api_product, address_json)
        _webhook(client, _succeeded(order_id))
        response = client.post(f"/payments/orders/{order_id}/refund", json={}, headers=CUSTOMER)
        assert response.status_code == 403

    def test_cash_on_delivery_not_refundable(self, client, api_product, address_json):
        order_id = _order(client, api_product, address_json, payment_method="cash_on_delivery")
        _webhook(client, _succeeded(order_id))
        response = client.post(f"/payments/orders/{order_id}/refund", json={}, headers=ADMIN)
        assert response.status_code == 422


class TestPaymentMethods:
    def test_lists_methods(self, client):
        methods = {m["id"]: m["refundable"] for m in client.get("/payments/methods").json()}
        assert methods == {"stripe": True, "razorpay": True, "paypal": False, "cash_on_delivery": False}


class TestCoupons:
    def test_list_active(self, client):
        codes = {c["code"] for c in client.get("/coupons").json()}
        assert codes == {"SAVE10", "SAVE20", "FLAT15"}

    def test_define_requires_admin(self, client):
        body = {"code": "NEW5", "kind": "fixed", "value": 5}
        assert client.put("/coupons", json=body, headers=CUSTOMER).status_code == 403
        assert client.put("/coupons", json=body, headers=ADMIN).status_code == 200

    def test_retire(self, client):
        assert client.delete("/coupons/SAVE20", headers=ADMIN).json() == {"status": "retired"}
        assert "SAVE20" not in {c["code"] for c in client.get("/coupons").json()}
