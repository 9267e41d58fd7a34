# Overview: Order notification emails (render + hand off to the mail extension).

from __future__ import annotations

from email.message import EmailMessage

from flask import current_app, render_template
from jinja2 import TemplateError

from ..extensions import mail, MailDeliveryError
from ..models import Order


class NotificationError(Exception):
    """Raised when an order email cannot be rendered or delivered."""
    pass


FAILURE_REASONS = {
    "declined": "Your payment was declined by your bank.",
    "failed": "There was a technical error processing your payment.",
}
DEFAULT_FAILURE_REASON = "Payment processing failed."

CONFIRMATION_STATUSES = {"approved"}
FAILURE_STATUSES = {"declined", "failed"}


def _template_context(order: Order) -> dict:
    customer = order.customer
    variants = ", ".join(f"{v['type']}: {v['value']}" for v in (order.selected_variants or []))
    return {
        "order": order,
        "customer": customer,
        "variants": variants,
        "order_date": (order.created_at.strftime("%B %d, %Y") if order.created_at else ""),
        "unit_price": f"{order.unit_price_cents / 100:.2f}",
        "subtotal": f"{order.subtotal_cents / 100:.2f}",
        "tax": f"{order.tax_cents / 100:.2f}",
        "total": f"{order.total_cents / 100:.2f}",
        "website_url": current_app.config.get("CLIENT_URL", ""),
        "failure_reason": FAILURE_REASONS.get(order.status, DEFAULT_FAILURE_REASON),
    }


def _build_message(order: Order, template: str, subject: str) -> EmailMessage:
    context = _template_context(order)
    message = EmailMessage()
    message["Subject"] = subject
    message["To"] = order.customer.email
    message.set_content(render_template(f"email/{template}.txt", **context))
    message.add_alternative(render_template(f"email/{template}.html", **context), subtype="html")
    return message


def build_order_confirmation(order: Order) -> EmailMessage:
    return _build_message(order, "order_confirmation", f"Order Confirmation - {order.order_number}")


def build_order_failure(order: Order) -> EmailMessage:
    return _build_message(order, "order_failure", f"Order Payment Failed - {order.order_number}")


def send_order_notification(order: Order) -> bool:
    """
    Send the email matching the order's status.

    approved sends a confirmation; declined/failed send a failure notice;
    other statuses have nothing to send.

    Returns:
        True when a message was handed to the transport, False when the
        status has no notification.

    Raises:
        NotificationError: rendering or delivery failed
    """
    if order.status in CONFIRMATION_STATUSES:
        builder = build_order_confirmation
    elif order.status in FAILURE_STATUSES:
        builder = build_order_failure
    else:
        return False

    try:
        message = builder(order)
        mail.send(message)
    except (MailDeliveryError, TemplateError) as exc:
        raise NotificationError(f"Could not send {order.status} email for {order.order_number}: {exc}") from exc

    current_app.logger.info("Sent %s email for order %s to %s", order.status, order.order_number, order.customer.email)
    return True
