# Overview: Flask API routes for categories and products; parses input and returns JSON responses.

"""
Catalog Routes

SECURITY: Reads need any signed-in user; writes are ADMIN-only.
"""

from flask import Blueprint, jsonify, request

from ..decorators import SERVICE_ERRORS, error_response, require_admin, require_auth
from ..services import catalog_service
from ..services.query_utils import page_envelope
from phoneshop.validation import parse_list_criteria


categories_bp = Blueprint("categories", __name__, url_prefix="/categories")
products_bp = Blueprint("products", __name__, url_prefix="/products")


# =============================================================================
# CATEGORIES
# =============================================================================

@categories_bp.get("")
@require_auth
def list_categories_route():
    try:
        criteria = parse_list_criteria(request.args)
        categories, total = catalog_service.list_categories(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(categories, total, criteria))


@categories_bp.get("/<int:category_id>")
@require_auth
def get_category_route(category_id: int):
    try:
        category = catalog_service.get_category(category_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(category.to_dict())


@categories_bp.post("")
@require_auth
@require_admin
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        category = catalog_service.create_category(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(category.to_dict()), 201


@categories_bp.route("/<int:category_id>", methods=["PUT", "PATCH"])
@require_auth
@require_admin
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        category = catalog_service.update_category(category_id, payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(category.to_dict())


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_admin
def delete_category_route(category_id: int):
    """409 while any product still belongs to the category."""
    try:
        catalog_service.delete_category(category_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Category deleted successfully"})


# =============================================================================
# PRODUCTS
# =============================================================================

@products_bp.get("")
@require_auth
def list_products_route():
    """
    List catalog products (soft-deleted ones are hidden).

    Query parameters:
    - q: matches name, brand or barcode
    - category_id: exact match
    - sortBy: barcode | name | brand | price | stock (default: newest first)
    - sortOrder: asc | desc
    - page, limit
    """
    try:
        criteria = parse_list_criteria(request.args, filters=catalog_service.LIST_FILTERS)
        products, total = catalog_service.list_products(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(products, total, criteria))


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(product.to_dict())


@products_bp.post("")
@require_auth
@require_admin
def create_product_route():
    """
    Request body:
    {
        "name": "Galaxy A15",
        "brand": "Samsung",
        "model": "SM-A155",
        "barcode": "8806095...",   // unique
        "category_id": 1,
        "price": 450000,           // > 0
        "cost_price": 400000,      // optional, >= 0
        "stock": 0                 // optional, 0..10000
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(product.to_dict()), 201


@products_bp.route("/<int:product_id>", methods=["PUT", "PATCH"])
@require_auth
@require_admin
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.update_product(product_id, payload)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(product.to_dict())


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: int):
    """Products with sales, purchases, IMEIs, warranties or trade-ins are soft-deleted."""
    try:
        soft = catalog_service.delete_product(product_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Product deleted successfully", "soft_deleted": soft})
