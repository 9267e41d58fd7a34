from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from checkout.models import ORDER_STATUSES, VARIANT_TYPES
from checkout.services.card_validator import clean_card_number, validate_card


TRANSACTION_RESULTS = ("approved", "declined", "error")

ORDER_NUMBER_RE = re.compile(r"^ORD-[A-Z0-9]+-[A-Z0-9]+$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_RE = re.compile(r"^[+]?[1-9][\d\s\-()]{7,20}$")

# Country-specific postal code patterns; anything else uses the generic rule
POSTAL_CODE_PATTERNS = {
    "India": (re.compile(r"^[1-9]\d{5}$"), "PIN code (6 digits, cannot start with 0)"),
    "United States": (re.compile(r"^\d{5}(-\d{4})?$"), "ZIP code (5 digits or 5+4 format)"),
    "Canada": (re.compile(r"^[A-Z]\d[A-Z]\s?\d[A-Z]\d$", re.I), "postal code (A1A 1A1 format)"),
    "United Kingdom": (re.compile(r"^[A-Z]{1,2}\d[A-Z\d]?\s?\d[A-Z]{2}$", re.I), "postcode (UK format)"),
    "Australia": (re.compile(r"^\d{4}$"), "postcode (4 digits)"),
    "Germany": (re.compile(r"^\d{5}$"), "postcode (5 digits)"),
    "France": (re.compile(r"^\d{5}$"), "postal code (5 digits)"),
}
GENERIC_POSTAL_CODE_RE = re.compile(r"^[A-Z0-9\s-]{3,10}$", re.I)

# $9,999,999.99
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem, optionally with field-level messages."""

    def __init__(self, message: str = "Validation failed", errors: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])

    def to_dict(self) -> dict:
        body: dict = {"error": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class NotFoundError(LookupError):
    """404-level: the addressed resource does not exist (or is inactive)."""


class ConflictError(ValueError):
    """409-level business rule conflict (stock, lifecycle)."""


@dataclass
class FieldErrors:
    """Collects field-level messages so a request reports every problem at once."""
    errors: list[dict] = field(default_factory=list)

    def add(self, field_name: str, message: str) -> None:
        self.errors.append({"field": field_name, "message": message})

    def raise_if_any(self, message: str = "Validation failed") -> None:
        if self.errors:
            raise ValidationError(message, self.errors)


@dataclass
class OrderRequest:
    customer: dict
    product_id: int
    quantity: int
    selected_variants: list[dict]
    payment_info: dict
    transaction_result: str | None = None
    transaction_id: str | None = None


def parse_int(value: Any, field_name: str) -> int:
    """
    Strict integer coercion.

    Accepts ints (not bools) and plain digit strings. Rejects floats,
    decimals and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field_name} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field_name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field_name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field_name} must be an integer, not a decimal")
    raise ValidationError(f"{field_name} must be an integer")


def parse_positive_int(value: Any, field_name: str, *, max_value: int | None = None) -> int:
    number = parse_int(value, field_name)
    if number < 1:
        raise ValidationError(f"{field_name} must be a positive integer")
    if max_value is not None and number > max_value:
        raise ValidationError(f"{field_name} must be between 1 and {max_value}")
    return number


def parse_amount_cents(value: Any, field_name: str = "amount") -> int:
    """Currency amount (e.g. 199.99 or "199.99") to integer cents, half-up."""
    if value is None or isinstance(value, bool) or value == "":
        raise ValidationError(f"{field_name} is required")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number")

    cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents <= 0:
        raise ValidationError(f"{field_name} must be greater than 0")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field_name} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")
    return cents


def parse_price_filter(value: str | None, field_name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(value.strip())
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number")
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field_name} must be a non-negative number")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def json_object(payload: Any) -> dict:
    """Request body as a dict; a missing body counts as empty."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def validate_order_number(raw: Any) -> str:
    """Upper-case and check an order number path parameter."""
    if not isinstance(raw, str):
        raise ValidationError("Invalid order number format")
    order_number = raw.strip().upper()
    if not ORDER_NUMBER_RE.match(order_number):
        raise ValidationError("Invalid order number format")
    return order_number


def validate_order_status(raw: Any) -> str:
    if not isinstance(raw, str) or raw.strip().lower() not in ORDER_STATUSES:
        raise ValidationError(f"Invalid order status. Must be one of: {', '.join(ORDER_STATUSES)}")
    return raw.strip().lower()


def validate_transaction_result(raw: Any, *, required: bool = False) -> str | None:
    if raw is None or raw == "":
        if required:
            raise ValidationError("transactionResult is required")
        return None
    if not isinstance(raw, str) or raw.strip().lower() not in TRANSACTION_RESULTS:
        raise ValidationError("Transaction result must be approved, declined, or error")
    return raw.strip().lower()


def parse_variants(raw: Any, field_name: str = "variants", errors: FieldErrors | None = None) -> list[dict]:
    """
    Normalize a list of {type, value} selections.

    With `errors` the problems are collected; otherwise the first one raises.
    """
    collector = errors if errors is not None else FieldErrors()
    if raw is None:
        return []
    if not isinstance(raw, list):
        collector.add(field_name, "Variants must be an array")
        if errors is None:
            collector.raise_if_any()
        return []

    variants: list[dict] = []
    seen_types: set[str] = set()
    for index, item in enumerate(raw):
        path = f"{field_name}[{index}]"
        if not isinstance(item, dict):
            collector.add(path, "Variant must be an object with type and value")
            continue
        variant_type = item.get("type")
        value = item.get("value")
        if not isinstance(variant_type, str) or variant_type.strip().lower() not in VARIANT_TYPES:
            collector.add(f"{path}.type", f"Variant type must be one of: {', '.join(VARIANT_TYPES)}")
            continue
        if not isinstance(value, str) or not value.strip():
            collector.add(f"{path}.value", "Variant value is required")
            continue
        variant_type = variant_type.strip().lower()
        if variant_type in seen_types:
            collector.add(path, f"Only one {variant_type} may be selected")
            continue
        seen_types.add(variant_type)
        variants.append({"type": variant_type, "value": value.strip()})

    if errors is None:
        collector.raise_if_any()
    return variants


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def _check_length(errors: FieldErrors, field_name: str, value: str, low: int, high: int, message: str) -> None:
    if not (low <= len(value) <= high):
        errors.add(field_name, message)


def _validate_postal_code(errors: FieldErrors, zip_code: str, country: str) -> None:
    if not zip_code:
        errors.add("customer.address.zipCode", "Postal code is required")
        return
    rule = POSTAL_CODE_PATTERNS.get(country)
    if rule is not None:
        pattern, label = rule
        if not pattern.match(zip_code):
            errors.add("customer.address.zipCode", f"Invalid {label} format")
    elif not GENERIC_POSTAL_CODE_RE.match(zip_code):
        errors.add("customer.address.zipCode", "Invalid postal code format")


def _validate_customer(raw: Any, errors: FieldErrors) -> dict:
    if not isinstance(raw, dict):
        errors.add("customer", "Customer details are required")
        return {}
    address = raw.get("address") if isinstance(raw.get("address"), dict) else {}

    customer = {
        "full_name": _text(raw, "fullName"),
        "email": _text(raw, "email").lower(),
        "phone": _text(raw, "phone"),
        "street": _text(address, "street"),
        "city": _text(address, "city"),
        "state": _text(address, "state"),
        "zip_code": _text(address, "zipCode"),
        "country": _text(address, "country"),
    }

    _check_length(errors, "customer.fullName", customer["full_name"], 2, 100,
                  "Full name must be between 2 and 100 characters")
    if not EMAIL_RE.match(customer["email"]) or len(customer["email"]) > 255:
        errors.add("customer.email", "Valid email is required")
    if not customer["phone"]:
        errors.add("customer.phone", "Phone number is required")
    elif not PHONE_RE.match(customer["phone"]):
        errors.add("customer.phone", "Valid international phone number is required (include country code)")
    _check_length(errors, "customer.address.street", customer["street"], 5, 200,
                  "Street address must be between 5 and 200 characters")
    _check_length(errors, "customer.address.city", customer["city"], 2, 100,
                  "City must be between 2 and 100 characters")
    _check_length(errors, "customer.address.state", customer["state"], 2, 100,
                  "State/Province must be between 2 and 100 characters")
    _check_length(errors, "customer.address.country", customer["country"], 2, 100,
                  "Country is required")
    _validate_postal_code(errors, customer["zip_code"], customer["country"])
    return customer


def _validate_payment_info(raw: Any, errors: FieldErrors) -> dict:
    if not isinstance(raw, dict):
        errors.add("paymentInfo", "Payment details are required")
        return {}

    payment = {
        "card_number": clean_card_number(raw.get("cardNumber") if isinstance(raw.get("cardNumber"), str) else ""),
        "expiry_date": _text(raw, "expiryDate"),
        "cvv": _text(raw, "cvv"),
        "cardholder_name": _text(raw, "cardholderName"),
    }
    result = validate_card(
        payment["card_number"],
        payment["expiry_date"],
        payment["cvv"],
        payment["cardholder_name"],
    )
    for message in result.errors:
        errors.add("paymentInfo", message)
    if len(payment["cardholder_name"]) > 100:
        errors.add("paymentInfo.cardholderName", "Cardholder name must be between 2 and 100 characters")
    payment["card_type"] = result.card_type
    return payment


def validate_order_payload(payload: Any, *, max_quantity: int) -> OrderRequest:
    """
    Validate + normalize a POST /api/orders body.

    Raises ValidationError carrying every field-level problem found.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors = FieldErrors()
    customer = _validate_customer(payload.get("customer"), errors)

    product = payload.get("product")
    product_id = 0
    quantity = 0
    selected_variants: list[dict] = []
    if not isinstance(product, dict):
        errors.add("product", "Product details are required")
    else:
        try:
            product_id = parse_int(product.get("productId"), "productId")
            if product_id < 1:
                errors.add("product.productId", "Invalid product ID format")
        except ValidationError:
            errors.add("product.productId", "Invalid product ID format")
        try:
            quantity = parse_positive_int(product.get("quantity"), "quantity", max_value=max_quantity)
        except ValidationError:
            errors.add("product.quantity", f"Quantity must be between 1 and {max_quantity}")
        selected_variants = parse_variants(
            product.get("selectedVariants"), "product.selectedVariants", errors
        )

    payment_info = _validate_payment_info(payload.get("paymentInfo"), errors)

    transaction_result = None
    try:
        transaction_result = validate_transaction_result(payload.get("transactionResult"))
    except ValidationError as exc:
        errors.add("transactionResult", exc.message)

    transaction_id = payload.get("transactionId")
    if transaction_id is not None and (not isinstance(transaction_id, str) or len(transaction_id) > 64):
        errors.add("transactionId", "transactionId must be a string of at most 64 characters")
        transaction_id = None

    errors.raise_if_any()
    return OrderRequest(
        customer=customer,
        product_id=product_id,
        quantity=quantity,
        selected_variants=selected_variants,
        payment_info=payment_info,
        transaction_result=transaction_result,
        transaction_id=transaction_id.strip() if transaction_id else None,
    )
