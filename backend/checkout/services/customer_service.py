# Overview: Customer profile upsert keyed by email.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer
from .concurrency import run_with_retry


CUSTOMER_FIELDS = ("full_name", "phone", "street", "city", "state", "zip_code", "country")


def _merge(customer: Customer, data: dict) -> None:
    # Only non-empty incoming values overwrite the stored profile
    for name in CUSTOMER_FIELDS:
        value = data.get(name)
        if value:
            setattr(customer, name, value)


def find_customer_by_email(email: str) -> Customer | None:
    return db.session.query(Customer).filter_by(email=(email or "").strip().lower()).first()


def upsert_customer(data: dict) -> Customer:
    """
    Create the customer for data["email"] or merge non-empty fields into it.

    Commits on its own. A concurrent insert of the same email trips
    uq_customers_email; the loser falls back to merging into the winner's row.
    """
    email = (data.get("email") or "").strip().lower()

    def _op() -> Customer:
        customer = find_customer_by_email(email)
        if customer is not None:
            _merge(customer, data)
            db.session.commit()
            return customer

        customer = Customer(email=email)
        _merge(customer, data)
        db.session.add(customer)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            current_app.logger.info("Customer %s created concurrently; merging instead", email)
            customer = find_customer_by_email(email)
            if customer is None:
                raise
            _merge(customer, data)
            db.session.commit()
        return customer

    return run_with_retry(_op)
