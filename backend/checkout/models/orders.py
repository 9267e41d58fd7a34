from __future__ import annotations

from ..extensions import db
from checkout.time_utils import to_utc_z
from .catalog import cents_to_amount

ORDER_STATUSES = ("pending", "approved", "declined", "failed", "refunded")


class Order(db.Model):
    """
    Checkout order (write-once business record).

    SNAPSHOT SEMANTICS:
    - product_* columns copy the product at purchase time; later catalogue
      edits never change an order.
    - card_* columns hold only the last four digits, expiry and cardholder
      name. The full card number and CVV are never persisted.

    MUTABILITY:
    - `status` is the only business field changed after creation, through
      order_status.update_order_status / apply_payment_result.
    - email_sent / email_sent_at record best-effort notification delivery.
    - version_id guards concurrent status updates (optimistic locking).
    """
    __tablename__ = "orders"
    __table_args__ = (
        # Uniqueness is enforced by the store; generator retries are a courtesy
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.CheckConstraint("quantity >= 1", name="ck_orders_quantity_positive"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(40), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    # Product snapshot
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(200), nullable=False)
    product_image = db.Column(db.String(500), nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    selected_variants = db.Column(db.JSON, nullable=False, default=list)

    # Payment snapshot (last 4 only)
    card_last4 = db.Column(db.String(4), nullable=False)
    card_expiry = db.Column(db.String(5), nullable=False)
    cardholder_name = db.Column(db.String(100), nullable=False)
    card_type = db.Column(db.String(16), nullable=True)
    transaction_id = db.Column(db.String(64), nullable=True)

    # Lifecycle status: pending, approved, declined, failed, refunded
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    email_sent = db.Column(db.Boolean, nullable=False, default=False)
    email_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order {self.order_number} status={self.status}>"

    def product_snapshot(self) -> dict:
        return {
            "productId": self.product_id,
            "name": self.product_name,
            "price": cents_to_amount(self.unit_price_cents),
            "priceCents": self.unit_price_cents,
            "quantity": self.quantity,
            "selectedVariants": list(self.selected_variants or []),
            "image": self.product_image,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "customer": self.customer.to_dict() if self.customer else None,
            "product": self.product_snapshot(),
            "paymentInfo": {
                "cardNumber": self.card_last4,
                "cardType": self.card_type,
                "expiryDate": self.card_expiry,
                "cardholderName": self.cardholder_name,
                "transactionId": self.transaction_id,
            },
            "status": self.status,
            "subtotal": cents_to_amount(self.subtotal_cents),
            "tax": cents_to_amount(self.tax_cents),
            "total": cents_to_amount(self.total_cents),
            "subtotalCents": self.subtotal_cents,
            "taxCents": self.tax_cents,
            "totalCents": self.total_cents,
            "emailSent": self.email_sent,
            "emailSentAt": to_utc_z(self.email_sent_at),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
