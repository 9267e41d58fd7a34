# Overview: Service-layer operations for order status; lifecycle transitions and their stock effects.

"""
Order Status State Machine

STATES:
- pending:  order persisted before the gateway answered
- approved: payment captured, stock claimed
- declined: bank refused the card
- failed:   gateway/technical error
- refunded: terminal; money (and stock, if it was claimed) returned

TRANSITIONS (old -> new : stock effect):
- any non-refunded -> approved       : claim (reduce)
- approved         -> anything else  : return (increase)
- any other change between pending, declined, failed and refunded : none
- refunded         -> (nothing)

Setting the current status again is a no-op. Leaving refunded is rejected.

SERIALIZATION:
Each transition runs in one transaction that locks the order row and
bumps Order.version_id, so two concurrent updates on one order cannot both
apply their stock effect.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Order, ORDER_STATUSES
from checkout.validation import ConflictError, NotFoundError, ValidationError
from .concurrency import begin_write, lock_for_update, run_with_retry
from .inventory_service import apply_increase, apply_reduce


STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_DECLINED = "declined"
STATUS_FAILED = "failed"
STATUS_REFUNDED = "refunded"

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_APPROVED, STATUS_DECLINED, STATUS_FAILED, STATUS_REFUNDED},
    STATUS_APPROVED: {STATUS_PENDING, STATUS_DECLINED, STATUS_FAILED, STATUS_REFUNDED},
    STATUS_DECLINED: {STATUS_PENDING, STATUS_APPROVED, STATUS_FAILED, STATUS_REFUNDED},
    STATUS_FAILED: {STATUS_PENDING, STATUS_APPROVED, STATUS_DECLINED, STATUS_REFUNDED},
    STATUS_REFUNDED: set(),
}

# Gateway outcome -> order status
STATUS_FOR_RESULT = {
    "approved": STATUS_APPROVED,
    "declined": STATUS_DECLINED,
    "error": STATUS_FAILED,
}

EFFECT_REDUCE = "reduce"
EFFECT_INCREASE = "increase"


class OrderNotFoundError(NotFoundError):
    """No order with the given number or id."""


class InvalidStatusTransitionError(ConflictError):
    """The requested status change is not allowed from the current status."""

    def __init__(self, old_status: str, new_status: str, message: str | None = None):
        super().__init__(message or f"Cannot change order status from {old_status} to {new_status}")
        self.old_status = old_status
        self.new_status = new_status


@dataclass
class StatusChange:
    order: Order
    old_status: str
    new_status: str

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status

    def to_dict(self) -> dict:
        return {
            "orderNumber": self.order.order_number,
            "oldStatus": self.old_status,
            "newStatus": self.new_status,
        }


def status_for_result(transaction_result: str | None) -> str:
    """Initial order status for a gateway outcome; no outcome means pending."""
    if transaction_result is None:
        return STATUS_PENDING
    try:
        return STATUS_FOR_RESULT[transaction_result]
    except KeyError:
        raise ValidationError("Transaction result must be approved, declined, or error")


def can_transition(old_status: str, new_status: str) -> bool:
    if old_status == new_status:
        return True
    return new_status in ALLOWED_TRANSITIONS.get(old_status, set())


def allowed_next_statuses(old_status: str) -> list[str]:
    """Statuses reachable from old_status, in canonical order."""
    allowed = ALLOWED_TRANSITIONS.get(old_status, set())
    return [status for status in ORDER_STATUSES if status in allowed]


def inventory_effect(old_status: str, new_status: str) -> str | None:
    if old_status == new_status:
        return None
    if new_status == STATUS_APPROVED:
        return EFFECT_REDUCE
    if old_status == STATUS_APPROVED:
        return EFFECT_INCREASE
    return None


def _load_order_for_update(order_number: str) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(order_number=order_number)).first()
    if order is None:
        raise OrderNotFoundError("Order not found")
    return order


def apply_transition(order: Order, new_status: str) -> StatusChange:
    """
    Move a locked order to new_status and apply the stock effect.

    Runs inside the caller's transaction; does not commit.
    """
    old_status = order.status
    if old_status == new_status:
        return StatusChange(order, old_status, new_status)

    if not can_transition(old_status, new_status):
        raise InvalidStatusTransitionError(old_status, new_status)

    effect = inventory_effect(old_status, new_status)
    variants = list(order.selected_variants or [])
    if effect == EFFECT_REDUCE:
        apply_reduce(order.product_id, order.quantity, variants)
    elif effect == EFFECT_INCREASE:
        apply_increase(order.product_id, order.quantity, variants)

    order.status = new_status
    db.session.flush()
    return StatusChange(order, old_status, new_status)


def update_order_status(order_number: str, new_status: str) -> StatusChange:
    """
    Administrative status change.

    Raises:
        ValidationError: unknown status
        OrderNotFoundError: no such order
        InvalidStatusTransitionError: order is refunded
        ProductNotFoundError: claiming stock for a missing or inactive product
        InsufficientInventoryError: claiming stock failed (nothing changes)
    """
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid order status. Must be one of: {', '.join(ORDER_STATUSES)}")

    def _op() -> StatusChange:
        begin_write()
        order = _load_order_for_update(order_number)
        change = apply_transition(order, new_status)
        db.session.commit()
        return change

    change = run_with_retry(_op)
    if change.changed:
        current_app.logger.info(
            "Order %s status %s -> %s", order_number, change.old_status, change.new_status
        )
    return change


def apply_payment_result(
    order_number: str,
    transaction_result: str,
    transaction_id: str | None = None,
) -> StatusChange:
    """
    Resolve a pending order from an asynchronous gateway callback.

    A repeated callback carrying the outcome already applied is a no-op.
    Sends the matching notification after commit.
    """
    if transaction_result not in STATUS_FOR_RESULT:
        raise ValidationError("Transaction result must be approved, declined, or error")
    new_status = STATUS_FOR_RESULT[transaction_result]

    def _op() -> StatusChange:
        begin_write()
        order = _load_order_for_update(order_number)
        if order.status == new_status:
            return StatusChange(order, order.status, new_status)
        if order.status != STATUS_PENDING:
            raise InvalidStatusTransitionError(
                order.status,
                new_status,
                f"Payment result already applied; order {order_number} is {order.status}",
            )
        change = apply_transition(order, new_status)
        if transaction_id:
            order.transaction_id = transaction_id
        db.session.commit()
        return change

    change = run_with_retry(_op)
    if change.changed:
        current_app.logger.info("Order %s resolved by gateway: %s", order_number, change.new_status)
        from .order_service import notify_order
        notify_order(change.order)
    else:
        db.session.rollback()
    return change
