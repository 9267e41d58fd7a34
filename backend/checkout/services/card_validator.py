# Overview: Pure card-detail checks shared by the payment simulator and request validation.

"""
Card Validator

Checks card number format + Luhn checksum, brand detection, MM/YY expiry,
brand-dependent CVV length and cardholder name. Every violated rule is
reported so a checkout form can show all problems at once.

Nothing here touches the database or the network.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime

from checkout.time_utils import utcnow


CARD_TYPE_VISA = "visa"
CARD_TYPE_MASTERCARD = "mastercard"
CARD_TYPE_AMEX = "amex"
CARD_TYPE_DISCOVER = "discover"
CARD_TYPE_UNKNOWN = "unknown"

# Ordered; first match wins
CARD_TYPE_PATTERNS = [
    (CARD_TYPE_VISA, "Visa", re.compile(r"^4")),
    (CARD_TYPE_MASTERCARD, "MasterCard", re.compile(r"^5[1-5]")),
    (CARD_TYPE_AMEX, "American Express", re.compile(r"^3[47]")),
    (CARD_TYPE_DISCOVER, "Discover", re.compile(r"^6(011|5)")),
]

CARD_NUMBER_RE = re.compile(r"^\d{13,19}$")
EXPIRY_RE = re.compile(r"^(\d{2})/(\d{2})$")
CVV_RE = re.compile(r"^\d+$")


@dataclass
class CardValidation:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    card_type: str | None = None

    def to_dict(self) -> dict:
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "cardType": self.card_type,
        }


def clean_card_number(card_number: str | None) -> str:
    """Drop all whitespace (spaces typed by users or inserted by input masks)."""
    return re.sub(r"\s", "", card_number or "")


def luhn_checksum_ok(digits: str) -> bool:
    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def is_valid_card_number(card_number: str | None) -> bool:
    """True iff the cleaned number is 13-19 digits and passes Luhn."""
    digits = clean_card_number(card_number)
    return bool(CARD_NUMBER_RE.match(digits)) and luhn_checksum_ok(digits)


def detect_card_type(card_number: str | None) -> str:
    digits = clean_card_number(card_number)
    for code, _name, pattern in CARD_TYPE_PATTERNS:
        if pattern.match(digits):
            return code
    return CARD_TYPE_UNKNOWN


def supported_card_types() -> list[dict]:
    return [{"code": code, "name": name} for code, name, _pattern in CARD_TYPE_PATTERNS]


def required_cvv_length(card_type: str | None) -> int:
    return 4 if card_type == CARD_TYPE_AMEX else 3


def _validate_expiry(expiry_date: str | None, now: datetime) -> list[str]:
    if not expiry_date:
        return ["Expiry date is required"]

    match = EXPIRY_RE.match(expiry_date.strip())
    if not match:
        return ["Invalid expiry date format (MM/YY)"]

    month, year = int(match.group(1)), int(match.group(2))
    if month < 1 or month > 12:
        return ["Expiry month must be between 01 and 12"]

    # First day of the expiry month must be strictly in the future
    if datetime(2000 + year, month, 1) <= now:
        return ["Card has expired"]
    return []


def validate_card(
    card_number: str | None,
    expiry_date: str | None,
    cvv: str | None,
    cardholder_name: str | None = None,
    *,
    require_cardholder: bool = True,
    now: datetime | None = None,
) -> CardValidation:
    """
    Validate card details and return every violated rule.

    Args:
        require_cardholder: when False the name is only checked if supplied
            (standalone /api/payment/validate probe).
        now: reference time for the expiry check (naive UTC); defaults to now.
    """
    errors: list[str] = []
    card_type: str | None = None
    now = now or utcnow()

    digits = clean_card_number(card_number)
    if not digits:
        errors.append("Card number is required")
    elif not CARD_NUMBER_RE.match(digits):
        errors.append("Invalid card number format")
    else:
        card_type = detect_card_type(digits)
        if card_type == CARD_TYPE_UNKNOWN:
            errors.append("Unsupported card type")
        if not luhn_checksum_ok(digits):
            errors.append("Invalid card number")

    errors.extend(_validate_expiry(expiry_date, now))

    cvv_value = (cvv or "").strip()
    if not cvv_value:
        errors.append("CVV is required")
    else:
        expected = required_cvv_length(card_type)
        if not CVV_RE.match(cvv_value) or len(cvv_value) != expected:
            errors.append(f"CVV must be {expected} digits")

    if cardholder_name is None or not str(cardholder_name).strip():
        if require_cardholder:
            errors.append("Cardholder name is required")
    elif len(str(cardholder_name).strip()) < 2:
        errors.append("Cardholder name is too short")

    return CardValidation(is_valid=not errors, errors=errors, card_type=card_type)
