# Overview: Flask API routes for customers and suppliers; parses input and returns JSON responses.

"""
Customer & Supplier Routes

SECURITY:
- Customers: any signed-in user may read, create and edit; delete is ADMIN-only.
- Suppliers: reads for any signed-in user; writes are ADMIN-only.

Both are soft-deleted.
"""

from flask import Blueprint, jsonify, request

from ..decorators import SERVICE_ERRORS, error_response, require_admin, require_auth
from ..services import partner_service
from ..services.query_utils import page_envelope
from phoneshop.validation import parse_list_criteria


customers_bp = Blueprint("customers", __name__, url_prefix="/customers")
suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/suppliers")


# =============================================================================
# CUSTOMERS
# =============================================================================

@customers_bp.get("")
@require_auth
def list_customers_route():
    """Query parameters: q (name, phone or email), page, limit."""
    try:
        criteria = parse_list_criteria(request.args)
        customers, total = partner_service.list_customers(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(customers, total, criteria))


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = partner_service.get_customer(customer_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(customer.to_dict())


@customers_bp.post("")
@require_auth
def create_customer_route():
    """
    Request body:
    {
        "name": "Ma Hla",      // min 2 chars
        "phone": "09...",      // unique among active customers
        "email": "...",        // optional
        "address": "..."       // optional
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        customer = partner_service.create_customer(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(customer.to_dict()), 201


@customers_bp.route("/<int:customer_id>", methods=["PUT", "PATCH"])
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer = partner_service.update_customer(customer_id, payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(customer.to_dict())


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_admin
def delete_customer_route(customer_id: int):
    try:
        partner_service.delete_customer(customer_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Customer deleted successfully"})


# =============================================================================
# SUPPLIERS
# =============================================================================

@suppliers_bp.get("")
@require_auth
def list_suppliers_route():
    try:
        criteria = parse_list_criteria(request.args)
        suppliers, total = partner_service.list_suppliers(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(suppliers, total, criteria))


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
def get_supplier_route(supplier_id: int):
    try:
        supplier = partner_service.get_supplier(supplier_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(supplier.to_dict())


@suppliers_bp.post("")
@require_auth
@require_admin
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        supplier = partner_service.create_supplier(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(supplier.to_dict()), 201


@suppliers_bp.route("/<int:supplier_id>", methods=["PUT", "PATCH"])
@require_auth
@require_admin
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        supplier = partner_service.update_supplier(supplier_id, payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(supplier.to_dict())


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_admin
def delete_supplier_route(supplier_id: int):
    try:
        partner_service.delete_supplier(supplier_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Supplier deleted successfully"})
