# Overview: Row locking and retry helpers for ledger and settlement writes.

"""
Write discipline for money-moving operations.

Voucher transitions and checkout follow one pattern: read the rows they
check through lock_for_update, validate, mutate, then commit once. The
version_id_col on User, VoucherCode and Order turns a concurrent write
between read and commit into a StaleDataError, which run_with_retry answers
by rolling back and re-running the whole check-then-set.
"""

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a check-then-set unit with retry on concurrency failures.

    func must re-read everything it checks: it is called again from scratch
    after a rollback. Service errors raised by func are not retried; the
    session is rolled back and the error propagates.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
