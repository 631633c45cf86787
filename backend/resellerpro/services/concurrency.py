# Overview: Row locking and retry helpers for balance-changing writes.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking to a query.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; Postgres honors it.
    Profile.version_id still catches lost updates on SQLite.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a unit of DB work, retrying on lock contention (OperationalError)
    and optimistic-version conflicts (StaleDataError).

    func must be safe to re-run from scratch: the session is rolled back
    before each retry.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
