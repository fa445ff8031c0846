# Overview: Locking and retry helpers for stock and order read-modify-write operations.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

# Deadlocks, lock timeouts and version_id_col mismatches on Stock/Order/Franchise
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows of `query`.

    SQLite ignores the lock; there a concurrent write surfaces as a
    StaleDataError from the model's version counter.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Call `func` until it succeeds or `attempts` conflicts have occurred.

    The session is rolled back before every new attempt, so `func` has to
    reload whatever it modifies. Business errors are never retried.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                current_app.logger.warning("Giving up after %d conflicting attempts: %s", attempts, exc)
                raise
            current_app.logger.info("Write conflict (attempt %d/%d), retrying", attempt, attempts)
            time.sleep(backoff_base * (2 ** (attempt - 1)))
