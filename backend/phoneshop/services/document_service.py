# Overview: Service-layer operations for document numbers; allocates repair tickets and sale invoices.

"""
Daily Document Numbering

Format: <PREFIX>-<YYYYMMDD>-<NNNN>, e.g. RPR-20240501-0001.

- The date is the UTC calendar day of allocation.
- The counter starts at 0001 every day and is strictly increasing within a day.
- The first allocation of a day seeds the counter from the highest number
  already issued with that day's prefix (lexicographic-descending lookup),
  so numbers keep increasing even if rows were created before the counter
  existed.

WHY a counter row: a read-then-write "last ticket + 1" lets two concurrent
creations observe the same last ticket and issue the same number. The
DocumentSequence row is bumped with a single atomic UPDATE instead, and
the unique constraints on ticket_no / invoice_no are the backstop.

IMPORTANT: allocation may roll back the session if two requests race to
create the day's first counter row. Allocate the number before adding any
other pending objects to the session.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import DocumentSequence, RepairOrder, Sale
from phoneshop.time_utils import utcnow
from .concurrency import resolve_session, run_with_retry


DOCUMENT_PREFIXES = {
    "REPAIR": "RPR",
    "INVOICE": "INV",
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def day_prefix(document_type: str, now: datetime | None = None) -> str:
    """Return "<PREFIX>-<YYYYMMDD>-" for the UTC day of `now`."""
    if document_type not in DOCUMENT_PREFIXES:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")
    period = (now or utcnow()).strftime("%Y%m%d")
    return f"{DOCUMENT_PREFIXES[document_type]}-{period}-"


def _last_issued_number(session: Session, column, prefix: str) -> int:
    last = (
        session.query(column)
        .filter(column.startswith(prefix))
        .order_by(column.desc())
        .limit(1)
        .scalar()
    )
    if not last:
        return 0
    try:
        return int(last.rsplit("-", 1)[-1])
    except ValueError:
        return 0


def next_daily_number(
    *,
    document_type: str,
    column,
    now: datetime | None = None,
    pad: int = 4,
    session: Session | None = None,
) -> str:
    """
    Atomically allocate the next number for document_type on the day of `now`.

    `column` is the model column holding issued numbers; it is only read to
    seed a day's counter the first time that day is used.
    """
    session = resolve_session(session)
    prefix = day_prefix(document_type, now)
    period = prefix.split("-")[1]

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    def _current() -> int:
        return (
            session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, period=period)
            .scalar()
        )

    def _op() -> str:
        result = session.execute(stmt)
        if result.rowcount:
            next_num = _current() - 1
        else:
            next_num = _last_issued_number(session, column, prefix) + 1
            seq = DocumentSequence(document_type=document_type, period=period, next_number=next_num + 1)
            session.add(seq)
            try:
                session.flush()
            except IntegrityError:
                # Another request created the day's row first; bump it instead.
                session.rollback()
                result = session.execute(stmt)
                if not result.rowcount:
                    raise
                next_num = _current() - 1

        return f"{prefix}{next_num:0{pad}d}"

    return run_with_retry(_op, session=session)


def generate_ticket_no(now: datetime | None = None, session: Session | None = None) -> str:
    """Next repair ticket number: RPR-YYYYMMDD-NNNN."""
    return next_daily_number(
        document_type="REPAIR",
        column=RepairOrder.ticket_no,
        now=now,
        session=session,
    )


def generate_invoice_no(now: datetime | None = None, session: Session | None = None) -> str:
    """Next sale invoice number: INV-YYYYMMDD-NNNN."""
    return next_daily_number(
        document_type="INVOICE",
        column=Sale.invoice_no,
        now=now,
        session=session,
    )
