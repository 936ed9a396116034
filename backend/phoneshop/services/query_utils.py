# Overview: Shared list-query helpers: text search, date ranges, paging and the list envelope.

from __future__ import annotations

import math

from ..extensions import db
from phoneshop.validation import ListCriteria


def search_filter(q: str | None, *columns):
    """
    Case-insensitive substring match of q against any of the columns.

    Returns None when there is nothing to search for.
    """
    if not q:
        return None
    search_term = f"%{q}%"
    return db.or_(*[column.ilike(search_term) for column in columns])


def apply_date_range(query, column, criteria: ListCriteria):
    """Restrict column to [date_from, date_to] (both inclusive, either optional)."""
    if criteria.date_from is not None:
        query = query.filter(column >= criteria.date_from)
    if criteria.date_to is not None:
        query = query.filter(column <= criteria.date_to)
    return query


def paginate(query, criteria: ListCriteria, *order_by) -> tuple[list, int]:
    """Count, order and slice a query. Returns (rows, total)."""
    # Get total count before pagination
    total = query.order_by(None).count()

    if order_by:
        query = query.order_by(*order_by)
    rows = query.offset(criteria.offset).limit(criteria.limit).all()
    return rows, total


def page_envelope(rows, total: int, criteria: ListCriteria, serializer=None, **extra) -> dict:
    """Standard list response: {data, total, page, limit, totalPages}."""
    serialize = serializer or (lambda row: row.to_dict())
    body = {
        "data": [serialize(row) for row in rows],
        "total": total,
        "page": criteria.page,
        "limit": criteria.limit,
        "totalPages": math.ceil(total / criteria.limit) if criteria.limit else 0,
    }
    body.update(extra)
    return body
