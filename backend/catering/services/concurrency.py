# Overview: Row locking and retry helpers shared by services that read-modify-write.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the write lock taken by
    the first UPDATE and the version_id check serialize writers instead.
    """
    return query.with_for_update()


def default_attempts() -> int:
    return max(1, int(current_app.config.get("DB_RETRY_ATTEMPTS", 2)))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks, dropped connections) and
    StaleDataError (optimistic locking conflicts). func must be safe to rerun
    from scratch: the session is rolled back before every retry.
    """
    if attempts is None:
        attempts = default_attempts()
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error(
                    "Giving up after %d attempt(s): %s", attempts, exc.__class__.__name__
                )
                raise
            current_app.logger.warning(
                "Transient database failure (%s), retrying (%d/%d)",
                exc.__class__.__name__, attempt + 1, attempts - 1,
            )
            time.sleep(backoff_base * (2 ** attempt))
