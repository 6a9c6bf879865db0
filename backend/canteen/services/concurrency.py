# Overview: Transaction boundaries, row locking and bounded retry for write operations.

from __future__ import annotations

import time

from flask import current_app, has_app_context
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import Conflict
from ..extensions import db


# Lost races we can recover from by starting over:
# - OperationalError: database locked / deadlock
# - StaleDataError: optimistic version check failed on Stock
# - IntegrityError on a unique constraint: another writer inserted the same
#   Stock/StockHistory/Sale row first. Other integrity failures (NOT NULL,
#   foreign keys) are bugs and propagate unchanged.
RETRYABLE_ERRORS = (OperationalError, StaleDataError, IntegrityError)

# 23505 is unique_violation in PostgreSQL
UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate is not None:
        return sqlstate == UNIQUE_VIOLATION_SQLSTATE
    message = str(orig).lower()
    return "unique constraint" in message or "duplicate" in message


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks, so a read-modify-write of Stock is serialized by
    opening the transaction with BEGIN IMMEDIATE. No-op on other dialects and
    when the connection is already inside a transaction.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def _config(key: str, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation as one atomic unit with retry on write conflicts.

    Any exception rolls the session back, so a failed submission leaves no
    partial writes. Concurrency failures are retried with exponential backoff;
    once attempts are exhausted the caller gets Conflict. Every other
    exception (including ServiceError business rules) propagates unchanged.
    """
    if attempts is None:
        attempts = _config("CONFLICT_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = _config("CONFLICT_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if isinstance(exc, IntegrityError) and not is_unique_violation(exc):
                raise
            if has_app_context():
                current_app.logger.warning(
                    "Write conflict (attempt %s of %s): %s", attempt + 1, attempts, exc.__class__.__name__
                )
            if attempt >= attempts - 1:
                raise Conflict(
                    "The record was modified concurrently, please retry",
                    {"attempts": attempts},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    raise Conflict("The record was modified concurrently, please retry", {"attempts": attempts})
