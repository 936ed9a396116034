# Overview: Flask API routes for expenses and expense categories; parses input and returns JSON responses.

"""
Expense Routes

SECURITY: Any signed-in user may list and record expenses; deleting an
expense or an expense category is ADMIN-only.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import SERVICE_ERRORS, error_response, require_admin, require_auth
from ..services import expense_service
from ..services.query_utils import page_envelope
from phoneshop.validation import parse_list_criteria


expenses_bp = Blueprint("expenses", __name__, url_prefix="/expenses")


# =============================================================================
# EXPENSE CATEGORIES
# =============================================================================

@expenses_bp.get("/categories")
@require_auth
def list_expense_categories_route():
    """Each category carries expense_count."""
    try:
        criteria = parse_list_criteria(request.args)
        categories, total = expense_service.list_expense_categories(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(categories, total, criteria, serializer=lambda row: row))


@expenses_bp.post("/categories")
@require_auth
def create_expense_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        category = expense_service.create_expense_category(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(category.to_dict()), 201


@expenses_bp.delete("/categories/<int:category_id>")
@require_auth
@require_admin
def delete_expense_category_route(category_id: int):
    try:
        expense_service.delete_expense_category(category_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Category deleted successfully"})


# =============================================================================
# EXPENSES
# =============================================================================

@expenses_bp.get("")
@require_auth
def list_expenses_route():
    """
    Query parameters: q (title or note), category_id, from, to, page, limit.

    Returns:
        {data, total, page, limit, totalPages, totalAmount}; totalAmount
        covers every matching expense, not only this page.
    """
    try:
        criteria = parse_list_criteria(request.args, filters=expense_service.LIST_FILTERS, date_range=True)
        expenses, total, total_amount = expense_service.list_expenses(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(expenses, total, criteria, totalAmount=total_amount))


@expenses_bp.get("/<int:expense_id>")
@require_auth
def get_expense_route(expense_id: int):
    try:
        expense = expense_service.get_expense(expense_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(expense.to_dict())


@expenses_bp.post("")
@require_auth
def create_expense_route():
    """
    Request body:
    {
        "title": "Electricity bill",
        "amount": 85000,          // > 0
        "category_id": 2,         // optional
        "note": "...",            // optional
        "date": "2026-10-01"      // optional, defaults to now
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        expense = expense_service.create_expense(payload, user_id=g.current_user.id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(expense.to_dict()), 201


@expenses_bp.route("/<int:expense_id>", methods=["PUT", "PATCH"])
@require_auth
def update_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        expense = expense_service.update_expense(expense_id, payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(expense.to_dict())


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_admin
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Expense deleted successfully"})
