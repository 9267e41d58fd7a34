# Overview: Flask API routes for the simulated payment gateway.

# backend/checkout/routes/payments.py
"""
Payment routes.

A declined card is a business outcome, not a transport failure: the body
always carries `result`, `errorCode` and `retryAllowed`. Status codes:
- 200 approved
- 402 declined
- 400 invalid card details (INVALID_DETAILS)
- 500 gateway error
"""
from flask import Blueprint, current_app, request

from ..services.card_validator import supported_card_types, validate_card
from ..services.payment_service import (
    ERROR_INVALID_DETAILS,
    RESULT_APPROVED,
    RESULT_DECLINED,
    authorize,
    configured_latency_seconds,
)
from ..time_utils import to_utc_z, utcnow
from ..validation import ValidationError, json_object, parse_amount_cents

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payment")


def _str_field(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) else None


@payments_bp.post("/process")
def process_payment_route():
    try:
        payload = json_object(request.get_json(silent=True))
        amount_cents = parse_amount_cents(payload.get("amount"))
    except ValidationError as e:
        return e.to_dict(), 400

    try:
        result = authorize(
            amount_cents,
            _str_field(payload, "cardNumber"),
            _str_field(payload, "expiryDate"),
            _str_field(payload, "cvv"),
            _str_field(payload, "cardholderName"),
            latency_seconds=configured_latency_seconds(),
        )
    except ValidationError as e:
        return e.to_dict(), 400
    except Exception:
        current_app.logger.exception("Failed to process payment")
        return {"error": "Internal server error"}, 500

    body = result.to_dict()
    body["timestamp"] = to_utc_z(utcnow())

    if result.result == RESULT_APPROVED:
        return body, 200
    if result.result == RESULT_DECLINED:
        return body, 402
    if result.error_code == ERROR_INVALID_DETAILS:
        return body, 400
    return body, 500


@payments_bp.post("/validate")
def validate_payment_route():
    try:
        payload = json_object(request.get_json(silent=True))
    except ValidationError as e:
        return e.to_dict(), 400

    validation = validate_card(
        _str_field(payload, "cardNumber"),
        _str_field(payload, "expiryDate"),
        _str_field(payload, "cvv"),
        _str_field(payload, "cardholderName"),
        require_cardholder=False,
    )
    return validation.to_dict(), (200 if validation.is_valid else 400)


@payments_bp.get("/card-types")
def card_types_route():
    return {"cardTypes": supported_card_types()}
