# Overview: Allocation of human-facing order numbers.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Order
from checkout.identifiers import time_prefixed_id


class OrderNumberGenerationExhausted(Exception):
    """Raised when no unused order number was found within the allowed number of attempts."""
    pass


def new_order_number_candidate() -> str:
    """ORD-<base36 epoch ms>-<5 random base36 chars>."""
    return time_prefixed_id("ORD", 5)


def order_number_exists(order_number: str) -> bool:
    return db.session.query(Order.id).filter_by(order_number=order_number).first() is not None


def generate_order_number(*, max_attempts: int | None = None) -> str:
    """
    Return an order number not used by any existing order.

    The uq_orders_order_number constraint is the real guarantee; this lookup
    only avoids obvious collisions before the insert.

    Raises:
        OrderNumberGenerationExhausted: every candidate collided
    """
    if max_attempts is None:
        max_attempts = int(current_app.config.get("ORDER_NUMBER_MAX_ATTEMPTS", 5))
    max_attempts = max(1, max_attempts)

    for _ in range(max_attempts):
        candidate = new_order_number_candidate()
        if not order_number_exists(candidate):
            return candidate
        current_app.logger.warning("Order number collision on %s; regenerating", candidate)

    raise OrderNumberGenerationExhausted(
        f"Could not allocate a unique order number after {max_attempts} attempts"
    )
