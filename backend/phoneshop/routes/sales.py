# Overview: Flask API routes for counter sales; parses input and returns JSON responses.

"""
Sales Routes

SECURITY: Any signed-in user may list, view and check out; void and refund
are ADMIN-only.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import SERVICE_ERRORS, error_response, require_admin, require_auth
from ..services import sale_service
from ..services.query_utils import page_envelope
from phoneshop.validation import parse_list_criteria


sales_bp = Blueprint("sales", __name__, url_prefix="/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query parameters:
    - q: invoice number, customer name or phone
    - status, payment_method, customer_id
    - from, to: ISO dates (to is inclusive)
    - page, limit
    """
    try:
        criteria = parse_list_criteria(request.args, filters=sale_service.LIST_FILTERS, date_range=True)
        sales, total = sale_service.list_sales(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(sales, total, criteria, serializer=lambda s: s.to_dict(include_items=False)))


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sale_service.get_sale(sale_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(sale.to_dict())


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Checkout.

    Request body:
    {
        "customer_id": 1,              // optional (walk-in)
        "subtotal": 450000,
        "discount": 0,
        "tax": 0,
        "total_amount": 450000,
        "paid_amount": 450000,
        "change_amount": 0,
        "payment_method": "CASH",
        "items": [{"product_id": 1, "imei_id": 7, "quantity": 1, "unit_price": 450000}]
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        sale = sale_service.create_sale(payload, user_id=g.current_user.id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(sale.to_dict()), 201


@sales_bp.post("/<int:sale_id>/void")
@require_auth
@require_admin
def void_sale_route(sale_id: int):
    try:
        sale = sale_service.void_sale(sale_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(sale.to_dict())


@sales_bp.post("/<int:sale_id>/refund")
@require_auth
@require_admin
def refund_sale_route(sale_id: int):
    try:
        sale = sale_service.refund_sale(sale_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(sale.to_dict())
