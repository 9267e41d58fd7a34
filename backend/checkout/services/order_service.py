# Overview: Service-layer operations for orders; checkout orchestration and order lookups.

"""
Order Orchestrator

WHY: Turn a validated checkout request plus an already-obtained payment
outcome into a persisted order with its stock claimed.

FLOW (create_order):
1. Upsert the customer (own commit; profile drift is acceptable)
2. Load the product; it must exist and be active
3. Re-check total inventory against the requested quantity
4. Allocate an order number
5. Insert the order with product + payment snapshots and totals
6. If approved, claim stock in the SAME transaction as the insert
7. After commit, send the confirmation/failure email (best-effort)

Steps 2-6 are one unit of work. If the claim loses a race the whole unit
rolls back, so an approved order never exists without its stock.

The payment simulator is NOT called here; the caller runs it first and
passes the outcome in.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, Product
from checkout.time_utils import utcnow
from checkout.validation import OrderRequest
from .concurrency import begin_write, run_with_retry
from .customer_service import upsert_customer
from .inventory_service import InsufficientInventoryError, apply_reduce, get_active_product
from .notification_service import NotificationError, send_order_notification
from .order_numbers import OrderNumberGenerationExhausted, generate_order_number
from .order_status import (
    OrderNotFoundError,
    STATUS_APPROVED,
    status_for_result,
)


DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200


def calculate_totals(unit_price_cents: int, quantity: int, tax_rate_bps: int = 0) -> tuple[int, int, int]:
    """
    (subtotal, tax, total) in cents.

    Tax is subtotal * bps / 10000, rounded half-up to the cent.
    """
    subtotal = unit_price_cents * quantity
    tax = (subtotal * tax_rate_bps + 5000) // 10000 if tax_rate_bps else 0
    return subtotal, tax, subtotal + tax


def _is_order_number_collision(exc: IntegrityError) -> bool:
    text = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    return "order_number" in text or "uq_orders_order_number" in text


def _insert_order(customer_id: int, request: OrderRequest, status: str, product: Product) -> Order:
    tax_rate_bps = int(current_app.config.get("TAX_RATE_BPS", 0))
    subtotal, tax, total = calculate_totals(product.price_cents, request.quantity, tax_rate_bps)
    payment = request.payment_info

    order = Order(
        order_number=generate_order_number(),
        customer_id=customer_id,
        product_id=product.id,
        product_name=product.name,
        product_image=product.image,
        unit_price_cents=product.price_cents,
        quantity=request.quantity,
        selected_variants=list(request.selected_variants),
        # Never store the full card number or the CVV
        card_last4=payment["card_number"][-4:],
        card_expiry=payment["expiry_date"],
        cardholder_name=payment["cardholder_name"],
        card_type=payment.get("card_type"),
        transaction_id=request.transaction_id,
        status=status,
        subtotal_cents=subtotal,
        tax_cents=tax,
        total_cents=total,
    )
    db.session.add(order)
    db.session.flush()
    return order


def create_order(request: OrderRequest) -> Order:
    """
    Persist an order for an already-resolved (or pending) payment.

    Raises:
        ProductNotFoundError: product missing or inactive
        InsufficientInventoryError: not enough stock (nothing persisted
            except the customer profile)
        OrderNumberGenerationExhausted: no unique order number found
    """
    status = status_for_result(request.transaction_result)
    customer = upsert_customer(request.customer)
    customer_id = customer.id
    max_attempts = max(1, int(current_app.config.get("ORDER_NUMBER_MAX_ATTEMPTS", 5)))

    def _op() -> Order:
        begin_write()
        product = get_active_product(request.product_id)

        if product.inventory < request.quantity:
            raise InsufficientInventoryError(
                f"Insufficient inventory. Only {product.inventory} items available",
                product_id=product.id,
                requested=request.quantity,
                available=product.inventory,
            )

        order = _insert_order(customer_id, request, status, product)

        if status == STATUS_APPROVED:
            try:
                apply_reduce(product.id, request.quantity, request.selected_variants)
            except InsufficientInventoryError:
                current_app.logger.warning(
                    "Stock claim lost a race for approved transaction %s (product %s, qty %s); order not created",
                    request.transaction_id or "<none>", product.id, request.quantity,
                )
                raise

        db.session.commit()
        return order

    for attempt in range(1, max_attempts + 1):
        try:
            order = run_with_retry(_op)
            break
        except IntegrityError as exc:
            if not _is_order_number_collision(exc):
                raise
            current_app.logger.warning("Order number collided on insert (attempt %s/%s)", attempt, max_attempts)
    else:
        raise OrderNumberGenerationExhausted(
            f"Could not allocate a unique order number after {max_attempts} attempts"
        )

    current_app.logger.info(
        "Created order %s (%s) for %s x%s, total %s cents",
        order.order_number, order.status, order.product_id, order.quantity, order.total_cents,
    )
    notify_order(order)
    return order


def notify_order(order: Order) -> bool:
    """
    Best-effort notification after commit.

    Never raises: failures are logged and the order stays as persisted.
    On success email_sent/email_sent_at are recorded in their own commit.
    """
    try:
        sent = send_order_notification(order)
    except NotificationError as exc:
        current_app.logger.warning("Notification failed for order %s: %s", order.order_number, exc)
        return False
    except Exception:
        current_app.logger.exception("Unexpected error sending notification for order %s", order.order_number)
        return False

    if not sent:
        return False

    sent_at = utcnow()

    def _record() -> None:
        order.email_sent = True
        order.email_sent_at = sent_at
        db.session.commit()

    try:
        run_with_retry(_record)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record email delivery for order %s", order.order_number)
    return True


def get_order(order_number: str) -> Order:
    order = db.session.query(Order).filter_by(order_number=order_number).first()
    if order is None:
        raise OrderNotFoundError("Order not found")
    return order


def get_order_by_id(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise OrderNotFoundError("Order not found")
    return order


def list_orders(status: str | None = None, limit: int = DEFAULT_LIST_LIMIT) -> list[Order]:
    """Newest first."""
    limit = max(1, min(limit, MAX_LIST_LIMIT))
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def resend_order_email(order_number: str) -> bool:
    """Re-send the notification for an order's current status."""
    order = get_order(order_number)
    return notify_order(order)
