# Overview: Locking and retry helpers shared by the write paths (sales, invoices, products).

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Row-lock the rows a write path is about to check and mutate.

    SQLite has no SELECT ... FOR UPDATE and SQLAlchemy omits the clause
    there; its single-writer lock gives the same guarantee.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a unit of work, retrying when the database reports lock contention.

    The session is rolled back before every retry, so ``func`` must redo
    all of its reads and checks from scratch. Business-rule failures raised
    by ``func`` are never retried.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Transient database error (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
