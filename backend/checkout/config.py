# backend/checkout/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/checkout.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///checkout.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Pricing: tax in basis points (800 = 8%)
    TAX_RATE_BPS = int(os.environ.get("TAX_RATE_BPS", "0"))
    MAX_ORDER_QUANTITY = int(os.environ.get("MAX_ORDER_QUANTITY", "10"))

    # Order numbers are collision-checked; give up after this many candidates
    ORDER_NUMBER_MAX_ATTEMPTS = int(os.environ.get("ORDER_NUMBER_MAX_ATTEMPTS", "5"))

    # Simulated gateway round-trip (0 disables the delay)
    PAYMENT_LATENCY_MIN_MS = int(os.environ.get("PAYMENT_LATENCY_MIN_MS", "0"))
    PAYMENT_LATENCY_MAX_MS = int(os.environ.get("PAYMENT_LATENCY_MAX_MS", "0"))

    MAIL_HOST = os.environ.get("MAIL_HOST")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "2525"))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS")
    MAIL_FROM = os.environ.get("MAIL_FROM", "noreply@checkout.local")
    MAIL_TIMEOUT_SECONDS = float(os.environ.get("MAIL_TIMEOUT_SECONDS", "10"))
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND")

    CLIENT_URL = os.environ.get("CLIENT_URL", "http://localhost:3000")
    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]
