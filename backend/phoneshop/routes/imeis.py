# Overview: Flask API routes for IMEI-tracked stock; parses input and returns JSON responses.

"""
IMEI Routes

SECURITY: Reads need any signed-in user; writes (single, bulk, status,
delete) are ADMIN-only.
"""

from flask import Blueprint, jsonify, request

from ..decorators import SERVICE_ERRORS, error_response, require_admin, require_auth
from ..services import imei_service
from ..services.query_utils import page_envelope
from phoneshop.validation import parse_list_criteria


imeis_bp = Blueprint("imeis", __name__, url_prefix="/imeis")


@imeis_bp.get("")
@require_auth
def list_imeis_route():
    """Query parameters: q (IMEI or product name), product_id, status, page, limit."""
    try:
        criteria = parse_list_criteria(request.args, filters=imei_service.LIST_FILTERS)
        imeis, total = imei_service.list_imeis(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(imeis, total, criteria))


@imeis_bp.get("/<int:imei_id>")
@require_auth
def get_imei_route(imei_id: int):
    try:
        imei = imei_service.get_imei(imei_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(imei.to_dict())


@imeis_bp.post("")
@require_auth
@require_admin
def create_imei_route():
    payload = request.get_json(silent=True) or {}
    try:
        imei = imei_service.create_imei(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(imei.to_dict()), 201


@imeis_bp.post("/bulk")
@require_auth
@require_admin
def bulk_create_imeis_route():
    """
    Register many IMEIs for one product.

    Request body:
    {
        "product_id": 1,
        "imeis": ["356789012345678", "356789012345679"]
    }

    Returns:
        {count} on success; 409 {error, duplicates} if any IMEI already
        exists or is repeated, in which case nothing is inserted.
    """
    payload = request.get_json(silent=True) or {}
    try:
        count = imei_service.bulk_create_imeis(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": f"{count} IMEIs added successfully", "count": count}), 201


@imeis_bp.route("/<int:imei_id>", methods=["PUT", "PATCH"])
@require_auth
@require_admin
def update_imei_route(imei_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        imei = imei_service.update_imei(imei_id, payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(imei.to_dict())


@imeis_bp.patch("/<int:imei_id>/status")
@require_auth
@require_admin
def update_imei_status_route(imei_id: int):
    """Request body: {"status": "DEFECTIVE"}. Any IMEI status may be set."""
    payload = request.get_json(silent=True) or {}
    try:
        imei = imei_service.update_status(imei_id, payload.get("status"))
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(imei.to_dict())


@imeis_bp.delete("/<int:imei_id>")
@require_auth
@require_admin
def delete_imei_route(imei_id: int):
    """400 once the IMEI has been sold."""
    try:
        imei_service.delete_imei(imei_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "IMEI deleted successfully"})
