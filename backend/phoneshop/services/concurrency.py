# Overview: Transaction helpers shared by services: session resolution, row locks and retry.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def resolve_session(session: Session | None = None):
    """
    Return the unit-of-work session a service should use.

    Services that maintain multi-step invariants (installment payments,
    status transitions, number allocation) accept an explicit session so a
    caller can compose them into its own transaction. Without one they use
    the request-scoped Flask-SQLAlchemy session.
    """
    return session if session is not None else db.session


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, session: Session | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    session = resolve_session(session)
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
