# Overview: Unit-of-work helpers: row locking, transactional commit and retry on write conflicts.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StockroomError
from ..extensions import db


class RetryableConflict(Exception):
    """A concurrent writer won a race (e.g. unique key on find-or-create)."""


RETRYABLE_ERRORS = (OperationalError, StaleDataError, RetryableConflict)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the version_id columns catch the lost update instead and the
    unit of work is retried.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and RetryableConflict. The session is
    rolled back before every retry, so func must redo all of its reads.
    """
    if attempts is None:
        attempts = current_app.config.get("STOCKROOM_RETRY_ATTEMPTS", 5)
    if backoff_base is None:
        backoff_base = current_app.config.get("STOCKROOM_RETRY_BACKOFF", 0.05)

    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "write conflict (%s), retrying attempt %d/%d",
                type(exc).__name__, attempt + 2, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))


def run_in_transaction(func):
    """
    Run func as one unit of work: commit on success, roll back on any error.

    Business errors propagate unchanged after the rollback; write conflicts
    are retried from scratch.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except RETRYABLE_ERRORS:
            raise
        except StockroomError:
            db.session.rollback()
            raise
        except Exception:
            db.session.rollback()
            current_app.logger.exception("unit of work failed, rolled back")
            raise

    return run_with_retry(_op)
