# Overview: Transaction helpers shared by the inventory, order and status services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# Lock timeouts / deadlocks and lost optimistic-version races
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Row-lock the rows a status change is about to rewrite.

    SQLite has no SELECT ... FOR UPDATE (the clause is dropped); there the
    database-wide lock taken by begin_write() gives the same serialization.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock up front on SQLite.

    A deferred SQLite transaction that reads and later writes can fail with
    "database is locked" instead of waiting; BEGIN IMMEDIATE waits on the busy
    timeout. Must be the first statement of the unit of work; a no-op when
    the connection already holds an open write transaction.
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_connection = db.session.connection().connection.dbapi_connection
    if getattr(dbapi_connection, "in_transaction", False):
        return
    db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS):
    """
    Run one unit of work, re-running it from scratch on transient conflicts.

    `func` must be safe to repeat: it starts its own transaction and commits
    at the end. The session is rolled back after every failure, retryable or
    not, so callers never inherit a half-finished transaction. Non-retryable
    exceptions propagate unchanged on the first occurrence.
    """
    attempt = 1
    while True:
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            if attempt >= attempts:
                current_app.logger.error("Giving up after %s attempts: %s", attempts, exc.__class__.__name__)
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            current_app.logger.warning(
                "Transient %s on attempt %s/%s; retrying in %.2fs",
                exc.__class__.__name__, attempt, attempts, delay,
            )
            time.sleep(delay)
            attempt += 1
        except Exception:
            db.session.rollback()
            raise
