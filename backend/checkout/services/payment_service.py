# Overview: Service-layer operations for payment; simulated card authorization.

"""
Payment Simulator

WHY: Stand in for a real card gateway so checkout can be exercised end to
end. The outcome is a pure function of the card number's trailing digits,
so the same test card always produces the same result.

DESIGN PRINCIPLES:
- Declines and gateway errors are business outcomes, returned as a
  PaymentResult, never raised
- Invalid card details short-circuit to INVALID_DETAILS (retryable)
- Simulated latency is optional and never affects the outcome
- Nothing is persisted; the order service receives the outcome from the caller
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field

from flask import current_app

from checkout.identifiers import time_prefixed_id
from checkout.validation import ValidationError
from .card_validator import clean_card_number, validate_card


# =============================================================================
# RESULTS AND ERROR CODES (CONSTANTS)
# =============================================================================

RESULT_APPROVED = "approved"
RESULT_DECLINED = "declined"
RESULT_ERROR = "error"

ERROR_INVALID_DETAILS = "INVALID_DETAILS"
ERROR_DECLINED_BY_BANK = "DECLINED_BY_BANK"
ERROR_INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
ERROR_GATEWAY = "GATEWAY_ERROR"

DECLINE_BY_BANK_SUFFIXES = {10, 20, 30}
GATEWAY_ERROR_SUFFIXES = {0, 99}


@dataclass
class PaymentResult:
    result: str
    message: str
    transaction_id: str | None = None
    error_code: str | None = None
    retry_allowed: bool | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def approved(self) -> bool:
        return self.result == RESULT_APPROVED

    def to_dict(self) -> dict:
        data = {
            "result": self.result,
            "message": self.message,
            "transactionId": self.transaction_id,
        }
        if self.result != RESULT_APPROVED:
            data["errorCode"] = self.error_code
            data["retryAllowed"] = self.retry_allowed
        if self.errors:
            data["errors"] = list(self.errors)
        return data


def generate_transaction_id() -> str:
    return time_prefixed_id("TXN", 8)


def simulate_outcome(card_number: str) -> PaymentResult:
    """
    Deterministic gateway decision from the cleaned card number.

    Rules are evaluated in order:
    - last digit odd                -> approved
    - last two digits 10, 20, 30    -> declined (DECLINED_BY_BANK)
    - last two digits 00, 99        -> error (GATEWAY_ERROR, retryable)
    - last digit 4                  -> declined (INSUFFICIENT_FUNDS)
    - otherwise                     -> approved
    """
    digits = clean_card_number(card_number)
    last_digit = int(digits[-1])
    last_two = int(digits[-2:])

    if last_digit % 2 == 1:
        return PaymentResult(RESULT_APPROVED, "Transaction approved successfully")
    if last_two in DECLINE_BY_BANK_SUFFIXES:
        return PaymentResult(
            RESULT_DECLINED,
            "Transaction declined by issuing bank",
            error_code=ERROR_DECLINED_BY_BANK,
            retry_allowed=False,
        )
    if last_two in GATEWAY_ERROR_SUFFIXES:
        return PaymentResult(
            RESULT_ERROR,
            "Payment gateway error. Please try again.",
            error_code=ERROR_GATEWAY,
            retry_allowed=True,
        )
    if last_digit == 4:
        return PaymentResult(
            RESULT_DECLINED,
            "Insufficient funds",
            error_code=ERROR_INSUFFICIENT_FUNDS,
            retry_allowed=False,
        )
    return PaymentResult(RESULT_APPROVED, "Transaction approved successfully")


def configured_latency_seconds() -> float:
    """Random delay drawn from PAYMENT_LATENCY_MIN_MS..PAYMENT_LATENCY_MAX_MS."""
    low = max(0, int(current_app.config.get("PAYMENT_LATENCY_MIN_MS", 0)))
    high = max(low, int(current_app.config.get("PAYMENT_LATENCY_MAX_MS", 0)))
    if high <= 0:
        return 0.0
    return random.uniform(low, high) / 1000.0


def authorize(
    amount_cents: int,
    card_number: str | None,
    expiry_date: str | None,
    cvv: str | None,
    cardholder_name: str | None,
    *,
    latency_seconds: float = 0.0,
) -> PaymentResult:
    """
    Run a simulated authorization.

    Args:
        amount_cents: Charge amount in cents (must be > 0)
        latency_seconds: Optional simulated round-trip before deciding

    Returns:
        PaymentResult; never raises for declines or gateway errors.

    Raises:
        ValidationError: amount is not a positive integer number of cents
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("Invalid payment amount")

    if latency_seconds > 0:
        time.sleep(latency_seconds)

    validation = validate_card(card_number, expiry_date, cvv, cardholder_name)
    if not validation.is_valid:
        return PaymentResult(
            RESULT_ERROR,
            "Invalid payment details",
            error_code=ERROR_INVALID_DETAILS,
            retry_allowed=True,
            errors=validation.errors,
        )

    outcome = simulate_outcome(card_number)
    if outcome.approved:
        outcome.transaction_id = generate_transaction_id()
    return outcome
