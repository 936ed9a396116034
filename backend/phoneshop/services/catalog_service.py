# Overview: Service-layer operations for the product catalog (categories and products).

"""
Catalog Service

- Category names are unique; a category that still has products cannot be
  deleted (Conflict).
- Product barcodes are unique across the shop.
- Products that appear in any history (sales, purchases, IMEIs, warranties,
  trade-ins) are soft-deleted so those rows keep their product; products with
  no history are removed outright.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..models import (
    Category,
    IMEI,
    Product,
    PurchaseItem,
    SaleItem,
    TradeIn,
    Warranty,
)
from phoneshop.validation import (
    ConflictError,
    ListCriteria,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from . import events
from .concurrency import resolve_session
from .query_utils import paginate, search_filter


# =============================================================================
# CATEGORIES
# =============================================================================

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)


def list_categories(criteria: ListCriteria) -> tuple[list[Category], int]:
    session = resolve_session()
    query = session.query(Category)
    search = search_filter(criteria.q, Category.name)
    if search is not None:
        query = query.filter(search)
    return paginate(query, criteria, Category.name.asc(), Category.id.asc())


def get_category(category_id: int) -> Category:
    category = resolve_session().get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def create_category(payload: dict) -> Category:
    session = resolve_session()
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)

    if session.query(Category.id).filter(Category.name == patch["name"]).first():
        raise ConflictError("Category with this name already exists")

    category = Category(**patch)
    session.add(category)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Category with this name already exists")

    events.record_audit(action="CREATE", entity="Category", entity_id=category.id, new_data=category.to_dict())
    return category


def update_category(category_id: int, payload: dict) -> Category:
    session = resolve_session()
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    category = get_category(category_id)

    if "name" in patch:
        clash = session.query(Category.id).filter(Category.name == patch["name"], Category.id != category_id).first()
        if clash:
            raise ConflictError("Category with this name already exists")

    old = category.to_dict()
    for k, v in patch.items():
        setattr(category, k, v)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Category with this name already exists")

    events.record_audit(action="UPDATE", entity="Category", entity_id=category.id, old_data=old, new_data=category.to_dict())
    return category


def delete_category(category_id: int) -> None:
    session = resolve_session()
    category = get_category(category_id)

    product_count = session.query(Product.id).filter(Product.category_id == category_id).count()
    if product_count > 0:
        raise ConflictError("Cannot delete category with existing products")

    old = category.to_dict()
    session.delete(category)
    session.commit()
    events.record_audit(action="DELETE", entity="Category", entity_id=category_id, old_data=old)


# =============================================================================
# PRODUCTS
# =============================================================================

MAX_STOCK = 10000

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "brand", "model", "price", "cost_price", "barcode", "stock", "category_id"},
    required_on_create={"name", "brand", "model", "price", "barcode", "category_id"},
    positive_fields={"price", "category_id"},
    non_negative_fields={"cost_price", "stock"},
)

PRODUCT_SORT_FIELDS = ("barcode", "name", "brand", "price", "stock")

LIST_FILTERS = {"category_id": int, "sortBy": str, "sortOrder": ("asc", "desc")}


def _check_product_patch(session, patch: dict, product_id: int | None = None) -> None:
    if patch.get("stock") is not None and patch["stock"] > MAX_STOCK:
        raise ValidationError(f"Stock cannot exceed {MAX_STOCK}", field="stock")
    if "category_id" in patch and not session.get(Category, patch["category_id"]):
        raise NotFoundError("Category not found")
    if "barcode" in patch:
        query = session.query(Product.id).filter(Product.barcode == patch["barcode"])
        if product_id is not None:
            query = query.filter(Product.id != product_id)
        if query.first():
            raise ConflictError("Product with this barcode already exists")


def list_products(criteria: ListCriteria) -> tuple[list[Product], int]:
    """
    Non-deleted products. q matches name, brand or barcode.

    sortBy is one of PRODUCT_SORT_FIELDS (anything else falls back to name);
    sortOrder is asc (default) or desc.
    """
    session = resolve_session()
    query = session.query(Product).filter(Product.is_deleted.is_(False))

    search = search_filter(criteria.q, Product.name, Product.brand, Product.barcode)
    if search is not None:
        query = query.filter(search)
    if criteria.get("category_id"):
        query = query.filter(Product.category_id == criteria.get("category_id"))

    sort_by = criteria.get("sortBy")
    column = getattr(Product, sort_by) if sort_by in PRODUCT_SORT_FIELDS else Product.name
    order = column.desc() if criteria.get("sortOrder") == "desc" else column.asc()

    return paginate(query, criteria, order, Product.id.asc())


def get_product(product_id: int) -> Product:
    product = resolve_session().get(Product, product_id)
    if not product or product.is_deleted:
        raise NotFoundError("Product not found")
    return product


def create_product(payload: dict) -> Product:
    session = resolve_session()
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    _check_product_patch(session, patch)

    for key in ("cost_price", "stock"):
        if patch.get(key) is None:
            patch.pop(key, None)

    product = Product(**patch)
    session.add(product)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Product with this barcode already exists")

    events.record_audit(action="CREATE", entity="Product", entity_id=product.id, new_data=product.to_dict())
    return product


def update_product(product_id: int, payload: dict) -> Product:
    session = resolve_session()
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    product = get_product(product_id)
    _check_product_patch(session, patch, product_id=product_id)

    old = product.to_dict()
    for k, v in patch.items():
        setattr(product, k, v)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Product with this barcode already exists")

    events.record_audit(action="UPDATE", entity="Product", entity_id=product.id, old_data=old, new_data=product.to_dict())
    return product


def _has_history(session, product_id: int) -> bool:
    for model in (SaleItem, PurchaseItem, IMEI, Warranty, TradeIn):
        if session.query(model.id).filter(model.product_id == product_id).first():
            return True
    return False


def delete_product(product_id: int) -> bool:
    """
    Remove a product from the catalog.

    Returns True when the row was soft-deleted (it has history), False when
    it was hard-deleted.
    """
    session = resolve_session()
    product = get_product(product_id)
    old = product.to_dict()

    soft = _has_history(session, product_id)
    if soft:
        product.is_deleted = True
    else:
        session.delete(product)
    session.commit()

    events.record_audit(action="DELETE", entity="Product", entity_id=product_id, old_data=old)
    return soft
