# Overview: Service-layer operations for operating expenses and their categories.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..models import Expense, ExpenseCategory
from phoneshop.money import sum_money
from phoneshop.time_utils import utcnow
from phoneshop.validation import (
    ConflictError,
    InvalidStateError,
    ListCriteria,
    ModelValidationPolicy,
    NotFoundError,
    validate_payload,
)
from . import events
from .concurrency import resolve_session
from .query_utils import apply_date_range, paginate, search_filter


# =============================================================================
# EXPENSE CATEGORIES
# =============================================================================

EXPENSE_CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name"},
    required_on_create={"name"},
)


def list_expense_categories(criteria: ListCriteria) -> tuple[list[dict], int]:
    """Categories by name, each with the number of expenses filed under it."""
    session = resolve_session()
    counts = (
        session.query(Expense.category_id, func.count(Expense.id).label("expense_count"))
        .group_by(Expense.category_id)
        .subquery()
    )
    query = (
        session.query(ExpenseCategory, func.coalesce(counts.c.expense_count, 0))
        .outerjoin(counts, counts.c.category_id == ExpenseCategory.id)
    )
    search = search_filter(criteria.q, ExpenseCategory.name)
    if search is not None:
        query = query.filter(search)

    rows, total = paginate(query, criteria, ExpenseCategory.name.asc(), ExpenseCategory.id.asc())
    return [{**category.to_dict(), "expense_count": int(count)} for category, count in rows], total


def create_expense_category(payload: dict) -> ExpenseCategory:
    session = resolve_session()
    patch = validate_payload(model=ExpenseCategory, payload=payload, policy=EXPENSE_CATEGORY_POLICY, partial=False)

    if session.query(ExpenseCategory.id).filter(ExpenseCategory.name == patch["name"]).first():
        raise ConflictError("Category name already exists")

    category = ExpenseCategory(**patch)
    session.add(category)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Category name already exists")

    events.record_audit(action="CREATE", entity="ExpenseCategory", entity_id=category.id, new_data=category.to_dict())
    return category


def delete_expense_category(category_id: int) -> None:
    """Blocked (400) while any expense still uses the category."""
    session = resolve_session()
    category = session.get(ExpenseCategory, category_id)
    if not category:
        raise NotFoundError("Category not found")

    count = session.query(Expense.id).filter(Expense.category_id == category_id).count()
    if count > 0:
        raise InvalidStateError(f"Cannot delete: {count} expense(s) use this category")

    old = category.to_dict()
    session.delete(category)
    session.commit()
    events.record_audit(action="DELETE", entity="ExpenseCategory", entity_id=category_id, old_data=old)


# =============================================================================
# EXPENSES
# =============================================================================

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"title", "amount", "category_id", "note", "date"},
    required_on_create={"title", "amount"},
    positive_fields={"amount", "category_id"},
)

LIST_FILTERS = {"category_id": int}


def _filtered_expenses(session, criteria: ListCriteria):
    query = session.query(Expense)
    search = search_filter(criteria.q, Expense.title, Expense.note)
    if search is not None:
        query = query.filter(search)
    if criteria.get("category_id"):
        query = query.filter(Expense.category_id == criteria.get("category_id"))
    return apply_date_range(query, Expense.date, criteria)


def list_expenses(criteria: ListCriteria) -> tuple[list[Expense], int, float]:
    """
    Newest expense date first.

    Returns (rows, total, total_amount) where total_amount sums every
    matching expense, not just the current page.
    """
    session = resolve_session()
    query = _filtered_expenses(session, criteria)
    rows, total = paginate(query, criteria, Expense.date.desc(), Expense.id.desc())

    amount_sum = query.order_by(None).with_entities(func.sum(Expense.amount)).scalar()
    return rows, total, float(sum_money([amount_sum]))


def get_expense(expense_id: int) -> Expense:
    expense = resolve_session().get(Expense, expense_id)
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def _require_category(session, patch: dict) -> None:
    if patch.get("category_id") and not session.get(ExpenseCategory, patch["category_id"]):
        raise NotFoundError("Category not found")


def create_expense(payload: dict, user_id: int | None = None) -> Expense:
    session = resolve_session()
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    _require_category(session, patch)

    if patch.get("date") is None:
        patch["date"] = utcnow()

    expense = Expense(**patch, user_id=user_id)
    session.add(expense)
    session.commit()

    events.record_audit(action="CREATE", entity="Expense", entity_id=expense.id, new_data=expense.to_dict())
    return expense


def update_expense(expense_id: int, payload: dict) -> Expense:
    session = resolve_session()
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    expense = get_expense(expense_id)
    _require_category(session, patch)

    old = expense.to_dict()
    for k, v in patch.items():
        setattr(expense, k, v)
    session.commit()

    events.record_audit(action="UPDATE", entity="Expense", entity_id=expense.id, old_data=old, new_data=expense.to_dict())
    return expense


def delete_expense(expense_id: int) -> None:
    session = resolve_session()
    expense = get_expense(expense_id)
    old = expense.to_dict()
    session.delete(expense)
    session.commit()
    events.record_audit(action="DELETE", entity="Expense", entity_id=expense_id, old_data=old)
