# Overview: Service-layer operations for counter sales; checkout, void and refund.

"""
Sales Service

LIFECYCLE: a sale is created COMPLETED, then may move once to VOIDED or
REFUNDED. Both reversals restore stock and return sold IMEIs to IN_STOCK.

INVARIANTS:
- Checkout is one transaction: invoice number, sale, items, stock
  decrements and IMEI SOLD marks commit together or not at all.
- Stock never goes negative; an item asking for more than is on hand is
  rejected before anything is written.
- An IMEI can only be sold while IN_STOCK and only as its own product.
"""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy.orm import Session

from ..models import Customer, IMEI, Product, Sale, SaleItem, PAYMENT_METHODS, SALE_STATUSES
from phoneshop.money import ZERO
from phoneshop.validation import (
    InvalidStateError,
    ListCriteria,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from . import events
from .concurrency import lock_for_update, resolve_session
from .document_service import generate_invoice_no
from .query_utils import apply_date_range, paginate, search_filter


LOW_STOCK_THRESHOLD = 5

SALE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id", "subtotal", "discount", "tax", "total_amount",
        "paid_amount", "change_amount", "payment_method", "note",
    },
    required_on_create={"subtotal", "total_amount", "paid_amount", "payment_method"},
    choices={"payment_method": PAYMENT_METHODS},
    positive_fields={"customer_id", "subtotal", "total_amount"},
    non_negative_fields={"discount", "tax", "paid_amount", "change_amount"},
)

SALE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "imei_id", "quantity", "unit_price", "discount"},
    required_on_create={"product_id", "quantity", "unit_price"},
    positive_fields={"product_id", "imei_id", "quantity", "unit_price"},
    non_negative_fields={"discount"},
)

LIST_FILTERS = {"status": SALE_STATUSES, "payment_method": PAYMENT_METHODS, "customer_id": int}


def _validate_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required", field="items")

    items: list[dict] = []
    errors: list[dict] = []
    for index, raw in enumerate(raw_items):
        try:
            item = validate_payload(model=SaleItem, payload=raw, policy=SALE_ITEM_POLICY, partial=False)
        except ValidationError as e:
            errors.extend(
                {"field": f"items[{index}].{err.get('field')}", "message": err["message"]}
                for err in (e.errors or [{"field": None, "message": str(e)}])
            )
            continue
        if item.get("discount") is None:
            item["discount"] = ZERO
        items.append(item)

    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return items


def list_sales(criteria: ListCriteria) -> tuple[list[Sale], int]:
    """Newest first. q matches invoice number, customer name or phone."""
    session = resolve_session()
    query = session.query(Sale).outerjoin(Customer, Sale.customer_id == Customer.id)

    search = search_filter(criteria.q, Sale.invoice_no, Customer.name, Customer.phone)
    if search is not None:
        query = query.filter(search)
    if criteria.get("status"):
        query = query.filter(Sale.status == criteria.get("status"))
    if criteria.get("payment_method"):
        query = query.filter(Sale.payment_method == criteria.get("payment_method"))
    if criteria.get("customer_id"):
        query = query.filter(Sale.customer_id == criteria.get("customer_id"))
    query = apply_date_range(query, Sale.created_at, criteria)

    return paginate(query, criteria, Sale.created_at.desc(), Sale.id.desc())


def get_sale(sale_id: int, session: Session | None = None) -> Sale:
    session = resolve_session(session)
    sale = session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def create_sale(payload: dict, user_id: int | None = None) -> Sale:
    """
    Checkout.

    Body: sale totals + payment_method + items[{product_id, imei_id?,
    quantity, unit_price, discount?}]. Totals are taken as submitted.

    Raises:
        ValidationError: bad totals or items
        NotFoundError: unknown customer, product or IMEI
        InvalidStateError: not enough stock, or IMEI not sellable
    """
    session = resolve_session()
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    raw_items = payload.pop("items", None)

    patch = validate_payload(model=Sale, payload=payload, policy=SALE_POLICY, partial=False)
    items = _validate_items(raw_items)

    if patch.get("customer_id"):
        customer = session.get(Customer, patch["customer_id"])
        if not customer or customer.is_deleted:
            raise NotFoundError("Customer not found")

    # Quantities per product are checked against stock as a whole
    wanted: dict[int, int] = defaultdict(int)
    for item in items:
        wanted[item["product_id"]] += item["quantity"]

    for key in ("discount", "tax", "change_amount"):
        if patch.get(key) is None:
            patch[key] = ZERO

    # Allocate before locking products: allocation may roll back the session.
    invoice_no = generate_invoice_no(session=session)

    try:
        products: dict[int, Product] = {}
        for product_id, quantity in wanted.items():
            product = lock_for_update(session.query(Product).filter(Product.id == product_id)).first()
            if not product or product.is_deleted:
                raise NotFoundError(f"Product {product_id} not found")
            if product.stock < quantity:
                raise InvalidStateError(f"Insufficient stock for {product.name} (available: {product.stock})")
            products[product_id] = product

        seen_imeis: set[int] = set()
        for item in items:
            imei_id = item.get("imei_id")
            if not imei_id:
                continue
            if imei_id in seen_imeis:
                raise ValidationError("The same IMEI cannot be sold twice in one sale", field="items")
            seen_imeis.add(imei_id)
            imei = session.get(IMEI, imei_id)
            if not imei:
                raise NotFoundError(f"IMEI {imei_id} not found")
            if imei.product_id != item["product_id"]:
                raise ValidationError(f"IMEI {imei.imei} does not belong to product {item['product_id']}", field="items")
            if imei.status != "IN_STOCK":
                raise InvalidStateError(f"IMEI {imei.imei} is not available ({imei.status})")

        sale = Sale(**patch, invoice_no=invoice_no, user_id=user_id, status="COMPLETED")
        sale.items = [SaleItem(**item) for item in items]
        session.add(sale)

        for product_id, quantity in wanted.items():
            products[product_id].stock -= quantity
        for imei_id in seen_imeis:
            session.get(IMEI, imei_id).status = "SOLD"

        session.commit()
    except Exception:
        session.rollback()
        raise

    events.record_audit(action="CREATE", entity="Sale", entity_id=sale.id, new_data=sale.to_dict(include_items=False))
    for product in products.values():
        if 0 < product.stock <= LOW_STOCK_THRESHOLD:
            events.notify_admins(
                title="Low stock",
                message=f"{product.name} has only {product.stock} unit(s) left.",
                type="WARNING",
            )
    return sale


def _reverse_sale(sale_id: int, new_status: str, action: str) -> Sale:
    """Restore stock and IMEIs for a COMPLETED sale and mark it new_status."""
    session = resolve_session()
    try:
        sale = lock_for_update(session.query(Sale).filter(Sale.id == sale_id)).first()
        if not sale:
            raise NotFoundError("Sale not found")
        if sale.status != "COMPLETED":
            raise InvalidStateError(f"Cannot {action.lower()} a {sale.status.lower()} sale")

        for item in sale.items:
            product = session.get(Product, item.product_id)
            if product is not None:
                product.stock += item.quantity
            if item.imei_id:
                imei = session.get(IMEI, item.imei_id)
                if imei is not None:
                    imei.status = "IN_STOCK"

        sale.status = new_status
        session.commit()
    except Exception:
        session.rollback()
        raise

    events.record_audit(
        action=action,
        entity="Sale",
        entity_id=sale.id,
        old_data={"status": "COMPLETED"},
        new_data={"status": new_status},
    )
    return sale


def void_sale(sale_id: int) -> Sale:
    return _reverse_sale(sale_id, "VOIDED", "VOID")


def refund_sale(sale_id: int) -> Sale:
    return _reverse_sale(sale_id, "REFUNDED", "REFUND")
