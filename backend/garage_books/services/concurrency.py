# Overview: Row locking and retry helpers for read-modify-write paths.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    populate_existing() reloads rows already in the session so the caller
    sees the locked state, not a stale identity-map copy.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, session, *, attempts: int = 3, backoff_base: float = 0.1,
                   retry_on: tuple = RETRYABLE_ERRORS):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Defaults to OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Only for idempotent work such as sync
    stamping; posting transactions are never retried.
    """
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying after concurrency failure (attempt %s): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
