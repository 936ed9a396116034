# Overview: Flask API routes for repairs, trade-ins and warranties; parses input and returns JSON responses.

"""
After-Sales Routes

SECURITY: Any signed-in user may work repairs, trade-ins and warranties;
deleting a warranty is ADMIN-only.

Status changes go through each service's update_status, which rejects
values outside the entity's status set with 400.
"""

from flask import Blueprint, jsonify, request

from ..decorators import SERVICE_ERRORS, error_response, require_admin, require_auth
from ..services import repair_service, tradein_service, warranty_service
from ..services.query_utils import page_envelope
from phoneshop.validation import parse_list_criteria


repairs_bp = Blueprint("repairs", __name__, url_prefix="/repairs")
trade_ins_bp = Blueprint("trade_ins", __name__, url_prefix="/trade-ins")
warranties_bp = Blueprint("warranties", __name__, url_prefix="/warranties")


# =============================================================================
# REPAIRS
# =============================================================================

@repairs_bp.get("")
@require_auth
def list_repairs_route():
    """Query parameters: q (ticket, customer name or device), status, customer_id, page, limit."""
    try:
        criteria = parse_list_criteria(request.args, filters=repair_service.LIST_FILTERS)
        orders, total = repair_service.list_repair_orders(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(orders, total, criteria))


@repairs_bp.get("/<int:order_id>")
@require_auth
def get_repair_route(order_id: int):
    try:
        order = repair_service.get_repair_order(order_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(order.to_dict())


@repairs_bp.post("")
@require_auth
def create_repair_route():
    """
    Request body:
    {
        "customer_id": 3,
        "imei_id": 7,                 // optional
        "device_info": "iPhone 12, black",
        "issue": "Cracked screen",
        "repair_cost": 0              // optional
    }

    The order is created RECEIVED with a fresh RPR-YYYYMMDD-NNNN ticket.
    """
    payload = request.get_json(silent=True) or {}
    try:
        order = repair_service.create_repair_order(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(order.to_dict()), 201


@repairs_bp.route("/<int:order_id>", methods=["PUT", "PATCH"])
@require_auth
def update_repair_route(order_id: int):
    """Request body: any of status, diagnosis, repair_cost."""
    payload = request.get_json(silent=True) or {}
    try:
        order = repair_service.update_repair_order(order_id, payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(order.to_dict())


@repairs_bp.patch("/<int:order_id>/status")
@require_auth
def update_repair_status_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        order = repair_service.update_status(order_id, payload.get("status"))
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(order.to_dict())


# =============================================================================
# TRADE-INS
# =============================================================================

@trade_ins_bp.get("")
@require_auth
def list_trade_ins_route():
    try:
        criteria = parse_list_criteria(request.args, filters=tradein_service.LIST_FILTERS)
        trade_ins, total = tradein_service.list_trade_ins(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(trade_ins, total, criteria))


@trade_ins_bp.get("/<int:trade_in_id>")
@require_auth
def get_trade_in_route(trade_in_id: int):
    try:
        trade_in = tradein_service.get_trade_in(trade_in_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(trade_in.to_dict())


@trade_ins_bp.post("")
@require_auth
def create_trade_in_route():
    """
    Request body:
    {
        "device_name": "Redmi Note 11",
        "condition": "Good, minor scratches",
        "offered_price": 150000,
        "customer_id": 3,     // optional
        "imei_id": 9,         // optional
        "product_id": 2,      // optional
        "note": "..."         // optional
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        trade_in = tradein_service.create_trade_in(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(trade_in.to_dict()), 201


@trade_ins_bp.route("/<int:trade_in_id>", methods=["PUT", "PATCH"])
@trade_ins_bp.patch("/<int:trade_in_id>/status")
@require_auth
def update_trade_in_status_route(trade_in_id: int):
    """
    Request body: {"status": "ACCEPTED"}

    ACCEPTED also marks the linked IMEI TRADED_IN, in the same transaction.
    """
    payload = request.get_json(silent=True) or {}
    try:
        trade_in = tradein_service.update_status(trade_in_id, payload.get("status"))
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(trade_in.to_dict())


# =============================================================================
# WARRANTIES
# =============================================================================

@warranties_bp.get("")
@require_auth
def list_warranties_route():
    """Query parameters: q (product, customer or IMEI), status, type, customer_id, product_id, page, limit."""
    try:
        criteria = parse_list_criteria(request.args, filters=warranty_service.LIST_FILTERS)
        warranties, total = warranty_service.list_warranties(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(warranties, total, criteria))


@warranties_bp.get("/<int:warranty_id>")
@require_auth
def get_warranty_route(warranty_id: int):
    try:
        warranty = warranty_service.get_warranty(warranty_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(warranty.to_dict())


@warranties_bp.post("")
@require_auth
def create_warranty_route():
    """
    Request body:
    {
        "product_id": 1,
        "imei_id": 7,             // optional
        "customer_id": 3,         // optional
        "type": "SHOP",           // MANUFACTURER | SHOP | EXTENDED
        "start_date": "2026-10-01",
        "end_date": "2027-10-01", // on or after start_date
        "note": "..."
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        warranty = warranty_service.create_warranty(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(warranty.to_dict()), 201


@warranties_bp.route("/<int:warranty_id>", methods=["PUT", "PATCH"])
@require_auth
def update_warranty_route(warranty_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        warranty = warranty_service.update_warranty(warranty_id, payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(warranty.to_dict())


@warranties_bp.patch("/<int:warranty_id>/status")
@require_auth
def update_warranty_status_route(warranty_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        warranty = warranty_service.update_status(warranty_id, payload.get("status"))
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(warranty.to_dict())


@warranties_bp.delete("/<int:warranty_id>")
@require_auth
@require_admin
def delete_warranty_route(warranty_id: int):
    try:
        warranty_service.delete_warranty(warranty_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Warranty deleted successfully"})
