# Overview: Flask extension instances for database, migrations, and outbound mail.

from __future__ import annotations

import smtplib
from email.message import EmailMessage

from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate


class MailDeliveryError(Exception):
    """Raised when the SMTP transport cannot hand off a message."""


class Mailer:
    """
    Minimal SMTP mail extension.

    Every connection is opened with MAIL_TIMEOUT_SECONDS so a slow or
    unreachable relay cannot hold a request open indefinitely.

    MAIL_SUPPRESS_SEND keeps messages in an in-memory outbox instead of
    talking to a relay (tests and local development).
    """

    def __init__(self, app: Flask | None = None):
        self.outbox: list[EmailMessage] = []
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.config.setdefault("MAIL_HOST", None)
        app.config.setdefault("MAIL_PORT", 2525)
        app.config.setdefault("MAIL_USERNAME", None)
        app.config.setdefault("MAIL_PASSWORD", None)
        app.config.setdefault("MAIL_USE_TLS", False)
        app.config.setdefault("MAIL_FROM", "noreply@checkout.local")
        app.config.setdefault("MAIL_TIMEOUT_SECONDS", 10)
        app.config.setdefault("MAIL_SUPPRESS_SEND", False)
        app.extensions["mail"] = self

    def send(self, message: EmailMessage) -> None:
        config = current_app.config
        if not message.get("From"):
            message["From"] = config["MAIL_FROM"]

        if config["MAIL_SUPPRESS_SEND"]:
            self.outbox.append(message)
            return

        host = config["MAIL_HOST"]
        if not host:
            raise MailDeliveryError("Mail transport is not configured (MAIL_HOST missing)")

        try:
            with smtplib.SMTP(host, int(config["MAIL_PORT"]), timeout=float(config["MAIL_TIMEOUT_SECONDS"])) as smtp:
                if config["MAIL_USE_TLS"]:
                    smtp.starttls()
                if config["MAIL_USERNAME"]:
                    smtp.login(config["MAIL_USERNAME"], config["MAIL_PASSWORD"] or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(f"SMTP delivery to {message['To']} failed: {exc}") from exc


db = SQLAlchemy()
migrate = Migrate()
mail = Mailer()
