# Overview: Flask API routes for supplier purchases; parses input and returns JSON responses.

"""
Purchase Routes

SECURITY: Reads need any signed-in user; create, update (including
receiving) and delete are ADMIN-only.
"""

from flask import Blueprint, jsonify, request

from ..decorators import SERVICE_ERRORS, error_response, require_admin, require_auth
from ..services import purchase_service
from ..services.query_utils import page_envelope
from phoneshop.validation import parse_list_criteria


purchases_bp = Blueprint("purchases", __name__, url_prefix="/purchases")


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    """Query parameters: q (supplier name or note), status, supplier_id, from, to, page, limit."""
    try:
        criteria = parse_list_criteria(request.args, filters=purchase_service.LIST_FILTERS, date_range=True)
        purchases, total = purchase_service.list_purchases(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(purchases, total, criteria, serializer=lambda p: p.to_dict(include_items=False)))


@purchases_bp.get("/<int:purchase_id>")
@require_auth
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(purchase_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(purchase.to_dict())


@purchases_bp.post("")
@require_auth
@require_admin
def create_purchase_route():
    """
    Request body:
    {
        "supplier_id": 1,
        "total_amount": 1200000,          // gross
        "reduce_amount": 0,               // optional
        "paid_amount": 1200000,           // optional
        "credit_amount": 0,               // optional
        "payment_method": "CASH",         // optional
        "additional_expenses": [{"label": "Delivery", "amount": 5000}],
        "items": [{"product_id": 1, "quantity": 3, "unit_cost": 400000}]
    }

    The purchase is created PENDING; stock moves when it is RECEIVED.
    """
    payload = request.get_json(silent=True) or {}
    try:
        purchase = purchase_service.create_purchase(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(purchase.to_dict()), 201


@purchases_bp.route("/<int:purchase_id>", methods=["PUT", "PATCH"])
@require_auth
@require_admin
def update_purchase_route(purchase_id: int):
    """Partial update; {"status": "RECEIVED"} receives the goods into stock."""
    payload = request.get_json(silent=True) or {}
    try:
        purchase = purchase_service.update_purchase(purchase_id, payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(purchase.to_dict())


@purchases_bp.delete("/<int:purchase_id>")
@require_auth
@require_admin
def delete_purchase_route(purchase_id: int):
    try:
        purchase_service.delete_purchase(purchase_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Purchase deleted successfully"})
