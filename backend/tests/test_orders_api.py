"""
HTTP tests for /api/orders.

Verifies:
- POST validation reports every problem with field paths
- Status codes for success, missing product, stock shortfall
- Lookups never expose the full card number
- Admin status changes and gateway callbacks over HTTP
"""

import pytest

from checkout.extensions import db, mail
from checkout.models import Order, Product
from conftest import CARD_APPROVED, CARD_BAD_LUHN, CARD_DECLINED_FUNDS


def _post(client, payload):
    return client.post("/api/orders", json=payload)


def _inventory(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id).inventory


def _fields(resp):
    return {e["field"] for e in resp.get_json().get("errors", [])}


class TestCreateOrderRoute:

    def test_created(self, client, product, order_payload):
        resp = _post(client, order_payload(quantity=2, variants=[{"type": "color", "value": "black"}]))

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["status"] == "approved"
        assert data["orderNumber"].startswith("ORD-")
        assert data["total"] == 399.98
        assert data["totalCents"] == 39998
        assert data["emailSent"] is True
        assert data["customer"]["email"] == "asha.verma@example.com"
        assert data["product"]["selectedVariants"] == [{"type": "color", "value": "black"}]
        assert _inventory(product.id) == 3

    def test_declined(self, client, product, order_payload):
        resp = _post(client, order_payload(card_number=CARD_DECLINED_FUNDS, transaction_result="declined"))
        assert resp.status_code == 201
        assert resp.get_json()["status"] == "declined"
        assert _inventory(product.id) == 5

    def test_insufficient_stock(self, client, product, order_payload):
        resp = _post(client, order_payload(quantity=6))
        assert resp.status_code == 409
        data = resp.get_json()
        assert "Only 5" in data["error"]
        assert data["details"]["available"] == 5
        assert data["details"]["requested"] == 6
        assert db.session.query(Order).count() == 0

    def test_variant_shortfall(self, client, product, order_payload):
        resp = _post(client, order_payload(quantity=3, variants=[{"type": "color", "value": "white"}]))
        assert resp.status_code == 409
        assert resp.get_json()["details"]["variant"] == {"type": "color", "value": "white"}
        assert _inventory(product.id) == 5

    def test_unknown_product(self, client, product, order_payload):
        resp = _post(client, order_payload(product_id=987654))
        assert resp.status_code == 404

    def test_inactive_product(self, client, inactive_product, order_payload):
        resp = _post(client, order_payload(product_id=inactive_product.id))
        assert resp.status_code == 404

    def test_not_json(self, client, db_session):
        resp = client.post("/api/orders", data="nope", content_type="text/plain")
        assert resp.status_code == 400

    def test_reports_all_field_errors(self, client, product, order_payload):
        payload = order_payload(quantity=11, card_number=CARD_BAD_LUHN, email="not-an-email")
        payload["customer"]["address"] = dict(payload["customer"]["address"], zipCode="012345")
        payload["customer"]["fullName"] = "A"

        resp = _post(client, payload)

        assert resp.status_code == 400
        fields = _fields(resp)
        assert {
            "customer.fullName",
            "customer.email",
            "customer.address.zipCode",
            "product.quantity",
            "paymentInfo",
        } <= fields

    @pytest.mark.parametrize("country,zip_code,ok", [
        ("United States", "94105", True),
        ("United States", "94105-1234", True),
        ("United States", "9410", False),
        ("Canada", "K1A 0B1", True),
        ("United Kingdom", "SW1A 1AA", True),
        ("Australia", "2000", True),
        ("Germany", "10115", True),
        ("India", "560038", True),
        ("India", "060038", False),
        ("Japan", "100-0001", True),
        ("Japan", "!", False),
    ])
    def test_postal_codes(self, client, product, order_payload, country, zip_code, ok):
        payload = order_payload()
        payload["customer"]["address"] = dict(payload["customer"]["address"], country=country, zipCode=zip_code)
        resp = _post(client, payload)
        assert (resp.status_code == 201) is ok
        if not ok:
            assert "customer.address.zipCode" in _fields(resp)

    def test_duplicate_variant_type_rejected(self, client, product, order_payload):
        resp = _post(client, order_payload(variants=[
            {"type": "color", "value": "black"},
            {"type": "color", "value": "white"},
        ]))
        assert resp.status_code == 400
        assert _inventory(product.id) == 5

    def test_bad_transaction_result(self, client, product, order_payload):
        resp = _post(client, order_payload(transaction_result="maybe"))
        assert resp.status_code == 400
        assert "transactionResult" in _fields(resp)

    def test_pending_without_result(self, client, product, order_payload):
        resp = _post(client, order_payload(transaction_result=None))
        assert resp.status_code == 201
        assert resp.get_json()["status"] == "pending"
        assert resp.get_json()["emailSent"] is False


class TestOrderLookup:

    def test_get_by_number(self, client, product, order_payload):
        number = _post(client, order_payload()).get_json()["orderNumber"]

        resp = client.get(f"/api/orders/{number.lower()}")

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["orderNumber"] == number
        assert data["paymentInfo"]["cardNumber"] == CARD_APPROVED[-4:]
        assert data["paymentInfo"]["cardType"] == "visa"
        assert "cvv" not in data["paymentInfo"]
        assert CARD_APPROVED not in resp.get_data(as_text=True)

    def test_get_by_id(self, client, product, order_payload):
        number = _post(client, order_payload()).get_json()["orderNumber"]
        order = db.session.query(Order).filter_by(order_number=number).one()

        resp = client.get(f"/api/orders/id/{order.id}")
        assert resp.status_code == 200
        assert resp.get_json()["orderNumber"] == number
        assert client.get("/api/orders/id/424242").status_code == 404

    def test_bad_format(self, client, db_session):
        assert client.get("/api/orders/not-an-order").status_code == 400

    def test_unknown(self, client, db_session):
        assert client.get("/api/orders/ORD-ZZZZ-ZZZZZ").status_code == 404

    def test_list(self, client, product, order_payload):
        _post(client, order_payload())
        _post(client, order_payload(transaction_result="declined"))

        resp = client.get("/api/orders")
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 2

        resp = client.get("/api/orders?status=declined")
        assert [o["status"] for o in resp.get_json()["orders"]] == ["declined"]

        assert client.get("/api/orders?limit=1").get_json()["count"] == 1

    @pytest.mark.parametrize("query", ["status=shipped", "limit=0", "limit=abc"])
    def test_list_bad_query(self, client, db_session, query):
        assert client.get(f"/api/orders?{query}").status_code == 400


class TestStatusRoutes:

    def test_refund(self, client, product, order_payload):
        number = _post(client, order_payload(quantity=2)).get_json()["orderNumber"]

        resp = client.put(f"/api/orders/{number}/status", json={"status": "refunded"})

        assert resp.status_code == 200
        assert resp.get_json() == {"orderNumber": number, "oldStatus": "approved", "newStatus": "refunded"}
        assert _inventory(product.id) == 5

    def test_refunded_is_terminal(self, client, product, order_payload):
        number = _post(client, order_payload()).get_json()["orderNumber"]
        client.put(f"/api/orders/{number}/status", json={"status": "refunded"})

        resp = client.put(f"/api/orders/{number}/status", json={"status": "approved"})

        assert resp.status_code == 409
        assert "refunded" in resp.get_json()["error"]
        assert resp.get_json()["details"] == {"allowedStatuses": []}

    def test_declined_to_failed(self, client, product, order_payload):
        number = _post(client, order_payload(transaction_result="declined")).get_json()["orderNumber"]

        resp = client.put(f"/api/orders/{number}/status", json={"status": "failed"})

        assert resp.status_code == 200
        assert resp.get_json() == {"orderNumber": number, "oldStatus": "declined", "newStatus": "failed"}
        assert _inventory(product.id) == 5

        back = client.put(f"/api/orders/{number}/status", json={"status": "declined"})
        assert back.status_code == 200
        assert back.get_json()["newStatus"] == "declined"

    def test_pending_to_refunded(self, client, product, order_payload):
        number = _post(client, order_payload(transaction_result=None)).get_json()["orderNumber"]

        resp = client.put(f"/api/orders/{number}/status", json={"status": "refunded"})

        assert resp.status_code == 200
        assert resp.get_json()["oldStatus"] == "pending"
        assert resp.get_json()["newStatus"] == "refunded"
        assert _inventory(product.id) == 5

    def test_claim_on_deactivated_product(self, client, product, order_payload):
        number = _post(client, order_payload(transaction_result="declined")).get_json()["orderNumber"]
        product.is_active = False
        db.session.commit()

        resp = client.put(f"/api/orders/{number}/status", json={"status": "approved"})

        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Product not found or unavailable"
        assert client.get(f"/api/orders/{number}").get_json()["status"] == "declined"

    def test_callback_on_deactivated_product(self, client, product, order_payload):
        number = _post(client, order_payload(transaction_result=None)).get_json()["orderNumber"]
        product.is_active = False
        db.session.commit()

        resp = client.post(f"/api/orders/{number}/payment-result", json={"transactionResult": "approved"})

        assert resp.status_code == 404
        assert client.get(f"/api/orders/{number}").get_json()["status"] == "pending"

    @pytest.mark.parametrize("suffix,method", [("status", "put"), ("payment-result", "post")])
    def test_body_must_be_object(self, client, product, order_payload, suffix, method):
        number = _post(client, order_payload(transaction_result=None)).get_json()["orderNumber"]

        resp = getattr(client, method)(f"/api/orders/{number}/{suffix}", json=["approved"])

        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid JSON payload"}

    def test_invalid_status(self, client, product, order_payload):
        number = _post(client, order_payload()).get_json()["orderNumber"]
        resp = client.put(f"/api/orders/{number}/status", json={"status": "shipped"})
        assert resp.status_code == 400

    def test_unknown_order(self, client, db_session):
        resp = client.put("/api/orders/ORD-ZZZZ-ZZZZZ/status", json={"status": "refunded"})
        assert resp.status_code == 404

    def test_claim_conflict(self, client, product, order_payload):
        first = _post(client, order_payload(quantity=4, transaction_result="declined")).get_json()["orderNumber"]
        _post(client, order_payload(quantity=3))

        resp = client.put(f"/api/orders/{first}/status", json={"status": "approved"})

        assert resp.status_code == 409
        assert _inventory(product.id) == 2

    def test_payment_result_callback(self, client, product, order_payload):
        number = _post(client, order_payload(transaction_result=None)).get_json()["orderNumber"]

        resp = client.post(
            f"/api/orders/{number}/payment-result",
            json={"transactionResult": "approved", "transactionId": "TXN-ABC-12345678"},
        )

        assert resp.status_code == 200
        assert resp.get_json()["newStatus"] == "approved"
        assert _inventory(product.id) == 4
        assert len(mail.outbox) == 1

        again = client.post(f"/api/orders/{number}/payment-result", json={"transactionResult": "declined"})
        assert again.status_code == 409

    def test_payment_result_requires_result(self, client, product, order_payload):
        number = _post(client, order_payload(transaction_result=None)).get_json()["orderNumber"]
        resp = client.post(f"/api/orders/{number}/payment-result", json={})
        assert resp.status_code == 400

    def test_resend_email(self, client, product, order_payload):
        number = _post(client, order_payload()).get_json()["orderNumber"]
        mail.outbox.clear()

        resp = client.post(f"/api/orders/{number}/resend-email")

        assert resp.status_code == 200
        assert resp.get_json() == {"orderNumber": number, "emailSent": True}
        assert len(mail.outbox) == 1
