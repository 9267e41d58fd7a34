"""
Payment simulator tests.

Verifies:
- Outcome is a pure function of the card number's trailing digits
- Invalid details short-circuit to INVALID_DETAILS
- Transaction ids only on approval
- HTTP mapping of /api/payment/* endpoints
"""

import re

import pytest

from checkout.services import payment_service
from checkout.services.payment_service import authorize, simulate_outcome
from checkout.validation import ValidationError
from conftest import (
    CARD_AMEX,
    CARD_APPROVED,
    CARD_APPROVED_EVEN,
    CARD_BAD_LUHN,
    CARD_DECLINED_BANK,
    CARD_DECLINED_FUNDS,
    CARD_GATEWAY_ERROR,
    CARD_ENDING_99,
    future_expiry,
)

TXN_RE = re.compile(r"^TXN-[A-Z0-9]+-[A-Z0-9]{8}$")


def _authorize(card_number, cvv="123", amount_cents=19999):
    return authorize(amount_cents, card_number, future_expiry(), cvv, "Jane Doe")


class TestSimulatedOutcome:

    @pytest.mark.parametrize(
        "card,result,code,retry",
        [
            (CARD_APPROVED, "approved", None, None),
            (CARD_APPROVED_EVEN, "approved", None, None),
            (CARD_DECLINED_BANK, "declined", "DECLINED_BY_BANK", False),
            ("4000000000000820", "declined", "DECLINED_BY_BANK", False),
            (CARD_DECLINED_FUNDS, "declined", "INSUFFICIENT_FUNDS", False),
            (CARD_GATEWAY_ERROR, "error", "GATEWAY_ERROR", True),
            (CARD_ENDING_99, "approved", None, None),
        ],
    )
    def test_outcome_table(self, card, result, code, retry):
        outcome = simulate_outcome(card)
        assert outcome.result == result
        assert outcome.error_code == code
        assert outcome.retry_allowed == retry

    def test_odd_digit_rule_wins_over_99(self):
        # 99 ends in an odd digit, so the first rule approves it
        assert simulate_outcome("4000000000000499").result == "approved"

    def test_deterministic(self):
        results = {_authorize(CARD_DECLINED_BANK).result for _ in range(5)}
        assert results == {"declined"}


class TestAuthorize:

    def test_approved_has_transaction_id(self):
        result = _authorize(CARD_APPROVED)
        assert result.approved
        assert TXN_RE.match(result.transaction_id)

    def test_transaction_ids_differ(self):
        ids = {_authorize(CARD_APPROVED).transaction_id for _ in range(20)}
        assert len(ids) == 20

    def test_declined_has_no_transaction_id(self):
        result = _authorize(CARD_DECLINED_FUNDS)
        assert result.result == "declined"
        assert result.transaction_id is None
        assert result.to_dict()["retryAllowed"] is False

    def test_invalid_details(self):
        result = _authorize(CARD_BAD_LUHN)
        assert result.result == "error"
        assert result.error_code == "INVALID_DETAILS"
        assert result.retry_allowed is True
        assert "Invalid card number" in result.errors

    def test_amex_cvv_enforced(self):
        assert _authorize(CARD_AMEX, cvv="1234").approved
        assert _authorize(CARD_AMEX, cvv="123").error_code == "INVALID_DETAILS"

    @pytest.mark.parametrize("amount", [0, -100, 1.5, True, "100"])
    def test_rejects_bad_amount(self, amount):
        with pytest.raises(ValidationError):
            authorize(amount, CARD_APPROVED, future_expiry(), "123", "Jane Doe")

    def test_latency_is_optional(self, monkeypatch):
        slept = []
        monkeypatch.setattr(payment_service.time, "sleep", lambda s: slept.append(s))
        authorize(100, CARD_APPROVED, future_expiry(), "123", "Jane Doe", latency_seconds=0.25)
        authorize(100, CARD_APPROVED, future_expiry(), "123", "Jane Doe")
        assert slept == [0.25]


class TestPaymentRoutes:

    def _body(self, card, **overrides):
        body = {
            "amount": 199.99,
            "cardNumber": card,
            "expiryDate": future_expiry(),
            "cvv": "123",
            "cardholderName": "Jane Doe",
        }
        body.update(overrides)
        return body

    def test_process_approved(self, client):
        resp = client.post("/api/payment/process", json=self._body(CARD_APPROVED))
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["result"] == "approved"
        assert TXN_RE.match(data["transactionId"])
        assert "errorCode" not in data

    def test_process_declined_is_402(self, client):
        resp = client.post("/api/payment/process", json=self._body(CARD_DECLINED_BANK))
        assert resp.status_code == 402
        data = resp.get_json()
        assert data["errorCode"] == "DECLINED_BY_BANK"
        assert data["retryAllowed"] is False

    def test_process_gateway_error_is_500(self, client):
        resp = client.post("/api/payment/process", json=self._body(CARD_GATEWAY_ERROR))
        assert resp.status_code == 500
        assert resp.get_json()["errorCode"] == "GATEWAY_ERROR"
        assert resp.get_json()["retryAllowed"] is True

    def test_process_invalid_details_is_400(self, client):
        resp = client.post("/api/payment/process", json=self._body(CARD_BAD_LUHN))
        assert resp.status_code == 400
        data = resp.get_json()
        assert data["errorCode"] == "INVALID_DETAILS"
        assert "Invalid card number" in data["errors"]

    @pytest.mark.parametrize("amount", [0, -5, None, "abc"])
    def test_process_bad_amount(self, client, amount):
        resp = client.post("/api/payment/process", json=self._body(CARD_APPROVED, amount=amount))
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_validate_valid(self, client):
        resp = client.post(
            "/api/payment/validate",
            json={"cardNumber": "4242 4242 4242 4242", "expiryDate": future_expiry(), "cvv": "123"},
        )
        assert resp.status_code == 200
        assert resp.get_json() == {"isValid": True, "errors": [], "cardType": "visa"}

    def test_validate_invalid(self, client):
        resp = client.post(
            "/api/payment/validate",
            json={"cardNumber": CARD_AMEX, "expiryDate": future_expiry(), "cvv": "123"},
        )
        assert resp.status_code == 400
        data = resp.get_json()
        assert data["isValid"] is False
        assert data["cardType"] == "amex"
        assert data["errors"] == ["CVV must be 4 digits"]

    @pytest.mark.parametrize("path", ["/api/payment/process", "/api/payment/validate"])
    def test_body_must_be_object(self, client, path):
        resp = client.post(path, json=[1, 2])
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid JSON payload"}

    def test_card_types(self, client):
        resp = client.get("/api/payment/card-types")
        assert resp.status_code == 200
        assert {"code": "amex", "name": "American Express"} in resp.get_json()["cardTypes"]
