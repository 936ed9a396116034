# Overview: Flask API routes for installment plans and their payments; parses input and returns JSON responses.

"""
Installment Routes

SECURITY: Any signed-in user may open plans and take payments.

Plans are never deleted; payments are append-only.
"""

from flask import Blueprint, jsonify, request

from ..decorators import SERVICE_ERRORS, error_response, require_auth
from ..services import installment_service
from ..services.query_utils import page_envelope
from phoneshop.validation import parse_list_criteria


installments_bp = Blueprint("installments", __name__, url_prefix="/installments")


@installments_bp.get("")
@require_auth
def list_installments_route():
    """Query parameters: q (customer name or phone), status, customer_id, page, limit."""
    try:
        criteria = parse_list_criteria(request.args, filters=installment_service.LIST_FILTERS)
        installments, total = installment_service.list_installments(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(installments, total, criteria))


@installments_bp.get("/<int:installment_id>")
@require_auth
def get_installment_route(installment_id: int):
    """Plan with customer, sale (with items) and payments newest first."""
    try:
        installment = installment_service.get_installment(installment_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(installment.to_dict(include_detail=True))


@installments_bp.post("")
@require_auth
def create_installment_route():
    """
    Request body:
    {
        "sale_id": 12,
        "customer_id": 3,
        "total_amount": 900000,
        "down_payment": 300000,    // optional, default 0
        "monthly_amount": 100000,
        "total_months": 6,
        "start_date": "2026-10-01" // optional, default now
    }

    409 if the sale already has a plan.
    """
    payload = request.get_json(silent=True) or {}
    try:
        installment = installment_service.create_installment(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(installment.to_dict()), 201


@installments_bp.post("/<int:installment_id>/payments")
@require_auth
def add_payment_route(installment_id: int):
    """
    Request body: {"amount": 100000, "note": "October"}

    Returns:
        The created payment entry. The plan turns COMPLETED when its
        remaining balance reaches zero; 400 once it is already COMPLETED.
    """
    payload = request.get_json(silent=True) or {}
    try:
        payment = installment_service.add_payment(
            installment_id,
            payload.get("amount"),
            note=payload.get("note"),
        )
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(payment.to_dict()), 201
