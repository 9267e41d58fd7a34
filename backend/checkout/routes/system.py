# backend/checkout/routes/system.py
"""
Liveness endpoint for load balancers and the storefront's status banner.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import Order, Product
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """SELECT 1 plus row counts for the two tables checkout depends on."""
    started = time.perf_counter()
    try:
        db.session.execute(text("SELECT 1"))
        counts = {
            "products": db.session.query(Product).filter(Product.is_active.is_(True)).count(),
            "orders": db.session.query(Order).count(),
        }
    except Exception:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "error": "Database error",
        }

    return {
        "status": "healthy",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "details": counts,
    }


@system_bp.get("/health")
def health():
    """200 when the database answers, 503 otherwise."""
    database = check_database_health()
    status = database["status"]
    return {
        "status": status,
        "database": database,
        "timestamp": to_utc_z(utcnow()),
    }, (200 if status == "healthy" else 503)
