# Overview: Flask API routes for staff user management; parses input and returns JSON responses.

"""
User Routes

SECURITY: All routes require an ADMIN session.
"""

from flask import Blueprint, jsonify, request

from ..decorators import SERVICE_ERRORS, error_response, require_admin, require_auth
from ..services import user_service
from ..services.query_utils import page_envelope
from phoneshop.validation import parse_list_criteria


users_bp = Blueprint("users", __name__, url_prefix="/users")


@users_bp.get("")
@require_auth
@require_admin
def list_users_route():
    """
    Query parameters: q (name/phone), role, status, page, limit.

    Returns:
        {data: User[], total, page, limit, totalPages}
    """
    try:
        criteria = parse_list_criteria(request.args, filters=user_service.LIST_FILTERS)
        users, total = user_service.list_users(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(users, total, criteria))


@users_bp.get("/<int:user_id>")
@require_auth
@require_admin
def get_user_route(user_id: int):
    try:
        user = user_service.get_user(user_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(user.to_dict())


@users_bp.post("")
@require_auth
@require_admin
def create_user_route():
    """
    Request body:
    {
        "name": "Aung Aung",
        "phone": "09...",
        "password": "...",    // min 6 chars
        "role": "SELLER",     // ADMIN | SELLER
        "status": "ACTIVE"    // optional
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        user = user_service.create_user(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(user.to_dict()), 201


@users_bp.route("/<int:user_id>", methods=["PUT", "PATCH"])
@require_auth
@require_admin
def update_user_route(user_id: int):
    """Partial update. A new password or deactivation signs the user out everywhere."""
    payload = request.get_json(silent=True) or {}
    try:
        user = user_service.update_user(user_id, payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(user.to_dict())


@users_bp.delete("/<int:user_id>")
@require_auth
@require_admin
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(user_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "User deleted successfully"})
