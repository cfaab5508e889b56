# Overview: Service-layer operations for concurrency; row locking and transport-level retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the Product.version_id optimistic check is what detects conflicts.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Re-run a whole atomic operation after a concurrency failure.

    Retries on:
    - StockConflict (stale product read detected by the version counter)
    - StaleDataError (same, if raised outside a service that converts it)
    - OperationalError (deadlocks, lock timeouts)

    Ledger rule violations (InsufficientStock, InvalidQuantity, ...) propagate
    immediately; re-running them cannot change the outcome.
    """
    from .inventory_service import StockConflict

    if attempts is None:
        attempts = current_app.config.get("CONFLICT_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("CONFLICT_RETRY_BACKOFF", 0.1)

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (StockConflict, OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Concurrent write conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
