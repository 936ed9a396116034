# Overview: Service-layer operations for supplier purchases; ordering, receiving and cost totals.

"""
Purchases Service

LIFECYCLE: PENDING -> RECEIVED | CANCELLED, and RECEIVED -> CANCELLED.

INVARIANTS:
- total_amount is stored net:
      gross - reduce_amount + sum(additional_expenses[].amount)
  where gross is the submitted total on create and sum(quantity * unit_cost)
  whenever the items are replaced.
- Receiving increments product stock exactly once (only on the transition
  into RECEIVED). Cancelling a received purchase takes that stock back out.
- Items of a RECEIVED purchase are frozen.
- A RECEIVED purchase cannot be deleted; cancel it first.
"""

from __future__ import annotations

from decimal import Decimal

from ..models import Product, Purchase, PurchaseItem, Supplier, PAYMENT_METHODS, PURCHASE_STATUSES
from phoneshop.money import ZERO
from phoneshop.time_utils import utcnow
from phoneshop.validation import (
    InvalidStateError,
    ListCriteria,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_decimal,
    validate_payload,
)
from . import events
from .concurrency import lock_for_update, resolve_session
from .query_utils import apply_date_range, paginate, search_filter


PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={
        "supplier_id", "total_amount", "reduce_amount", "paid_amount",
        "credit_amount", "payment_method", "note", "status",
    },
    required_on_create={"supplier_id", "total_amount"},
    choices={"payment_method": PAYMENT_METHODS, "status": PURCHASE_STATUSES},
    positive_fields={"supplier_id", "total_amount"},
    non_negative_fields={"reduce_amount", "paid_amount", "credit_amount"},
)

PURCHASE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "imei_id", "quantity", "unit_cost"},
    required_on_create={"product_id", "quantity", "unit_cost"},
    positive_fields={"product_id", "imei_id", "quantity", "unit_cost"},
)

LIST_FILTERS = {"status": PURCHASE_STATUSES, "supplier_id": int}

ALLOWED_TRANSITIONS = {
    "PENDING": {"RECEIVED", "CANCELLED"},
    "RECEIVED": {"CANCELLED"},
    "CANCELLED": set(),
}


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================

def _validate_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required", field="items")

    items: list[dict] = []
    errors: list[dict] = []
    for index, raw in enumerate(raw_items):
        try:
            items.append(validate_payload(model=PurchaseItem, payload=raw, policy=PURCHASE_ITEM_POLICY, partial=False))
        except ValidationError as e:
            errors.extend(
                {"field": f"items[{index}].{err.get('field')}", "message": err["message"]}
                for err in (e.errors or [{"field": None, "message": str(e)}])
            )
    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return items


def _validate_additional_expenses(raw) -> list[dict]:
    """[{label, amount >= 0}] -> JSON-safe list (amounts as floats)."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("additional_expenses must be a list", field="additional_expenses")

    cleaned = []
    for index, entry in enumerate(raw):
        field = f"additional_expenses[{index}]"
        if not isinstance(entry, dict):
            raise ValidationError(f"{field} must be an object", field=field)
        label = entry.get("label")
        if not isinstance(label, str) or not label.strip():
            raise ValidationError(f"{field}.label is required", field=f"{field}.label")
        amount = coerce_decimal(entry.get("amount"), f"{field}.amount")
        if amount < 0:
            raise ValidationError(f"{field}.amount must be >= 0", field=f"{field}.amount")
        cleaned.append({"label": label.strip(), "amount": float(amount)})
    return cleaned


def _extras_total(additional_expenses) -> Decimal:
    return sum((Decimal(str(e.get("amount") or 0)) for e in additional_expenses or []), ZERO)


def _items_total(items) -> Decimal:
    return sum((Decimal(item["unit_cost"]) * item["quantity"] for item in items), ZERO)


def _require_products(session, items: list[dict]) -> None:
    for product_id in {item["product_id"] for item in items}:
        product = session.get(Product, product_id)
        if not product or product.is_deleted:
            raise NotFoundError(f"Product {product_id} not found")


def _adjust_stock(session, items, sign: int) -> None:
    for item in items:
        product = lock_for_update(session.query(Product).filter(Product.id == item.product_id)).first()
        if product is None:
            raise NotFoundError(f"Product {item.product_id} not found")
        new_stock = product.stock + sign * item.quantity
        if new_stock < 0:
            raise InvalidStateError(f"Cannot cancel: {product.name} stock would go negative")
        product.stock = new_stock


# =============================================================================
# QUERIES
# =============================================================================

def list_purchases(criteria: ListCriteria) -> tuple[list[Purchase], int]:
    """Newest first. q matches supplier name or note."""
    session = resolve_session()
    query = session.query(Purchase).join(Supplier, Purchase.supplier_id == Supplier.id)

    search = search_filter(criteria.q, Supplier.name, Purchase.note)
    if search is not None:
        query = query.filter(search)
    if criteria.get("status"):
        query = query.filter(Purchase.status == criteria.get("status"))
    if criteria.get("supplier_id"):
        query = query.filter(Purchase.supplier_id == criteria.get("supplier_id"))
    query = apply_date_range(query, Purchase.created_at, criteria)

    return paginate(query, criteria, Purchase.created_at.desc(), Purchase.id.desc())


def get_purchase(purchase_id: int) -> Purchase:
    purchase = resolve_session().get(Purchase, purchase_id)
    if not purchase:
        raise NotFoundError("Purchase not found")
    return purchase


# =============================================================================
# COMMANDS
# =============================================================================

def create_purchase(payload: dict) -> Purchase:
    """
    Record a PENDING purchase.

    total_amount in the body is the gross; the stored total is net of
    reduce_amount plus additional expenses.
    """
    session = resolve_session()
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    raw_items = payload.pop("items", None)
    raw_extras = payload.pop("additional_expenses", None)

    patch = validate_payload(model=Purchase, payload=payload, policy=PURCHASE_POLICY, partial=False)
    patch.pop("status", None)
    items = _validate_items(raw_items)
    extras = _validate_additional_expenses(raw_extras)

    supplier = session.get(Supplier, patch["supplier_id"])
    if not supplier or supplier.is_deleted:
        raise NotFoundError("Supplier not found")
    _require_products(session, items)

    for key in ("reduce_amount", "paid_amount", "credit_amount"):
        if patch.get(key) is None:
            patch[key] = ZERO
    patch["payment_method"] = patch.get("payment_method") or "CASH"
    patch["total_amount"] = patch["total_amount"] - patch["reduce_amount"] + _extras_total(extras)
    if patch["total_amount"] < 0:
        raise ValidationError("reduce_amount cannot exceed the total", field="reduce_amount")

    try:
        purchase = Purchase(**patch, additional_expenses=extras, status="PENDING")
        purchase.items = [PurchaseItem(**item) for item in items]
        session.add(purchase)
        session.commit()
    except Exception:
        session.rollback()
        raise

    events.record_audit(action="CREATE", entity="Purchase", entity_id=purchase.id, new_data=purchase.to_dict(include_items=False))
    return purchase


def update_purchase(purchase_id: int, payload: dict) -> Purchase:
    """
    Partial update.

    - items (if given) replace the existing lines and the net total is
      recomputed from them.
    - status RECEIVED (from PENDING) adds the item quantities to stock and
      stamps received_at; RECEIVED -> CANCELLED takes them back out.
    """
    session = resolve_session()
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    raw_items = payload.pop("items", None)
    has_extras = "additional_expenses" in payload
    raw_extras = payload.pop("additional_expenses", None)

    patch = validate_payload(model=Purchase, payload=payload, policy=PURCHASE_POLICY, partial=True)
    patch.pop("supplier_id", None)
    patch.pop("total_amount", None)
    items = _validate_items(raw_items) if raw_items is not None else None
    extras = _validate_additional_expenses(raw_extras) if has_extras else None

    try:
        purchase = lock_for_update(session.query(Purchase).filter(Purchase.id == purchase_id)).first()
        if not purchase:
            raise NotFoundError("Purchase not found")
        old = purchase.to_dict(include_items=False)
        old_status = purchase.status

        new_status = patch.pop("status", None)
        if new_status is not None and new_status != old_status:
            if new_status not in ALLOWED_TRANSITIONS[old_status]:
                raise InvalidStateError(f"Cannot change purchase from {old_status} to {new_status}")
        else:
            new_status = None

        if items is not None:
            if old_status != "PENDING":
                raise InvalidStateError(f"Cannot change items of a {old_status.lower()} purchase")
            _require_products(session, items)
            purchase.items = [PurchaseItem(**item) for item in items]

        for k, v in patch.items():
            if v is None and k in ("reduce_amount", "paid_amount", "credit_amount", "payment_method"):
                continue
            setattr(purchase, k, v)
        if extras is not None:
            purchase.additional_expenses = extras

        if items is not None:
            reduce_amount = Decimal(purchase.reduce_amount or 0)
            purchase.total_amount = _items_total(items) - reduce_amount + _extras_total(purchase.additional_expenses)
            if purchase.total_amount < 0:
                raise ValidationError("reduce_amount cannot exceed the total", field="reduce_amount")

        if new_status == "RECEIVED":
            session.flush()
            _adjust_stock(session, purchase.items, +1)
            purchase.received_at = utcnow()
        elif new_status == "CANCELLED" and old_status == "RECEIVED":
            _adjust_stock(session, purchase.items, -1)
        if new_status is not None:
            purchase.status = new_status

        session.commit()
    except Exception:
        session.rollback()
        raise

    events.record_audit(
        action="UPDATE",
        entity="Purchase",
        entity_id=purchase.id,
        old_data=old,
        new_data=purchase.to_dict(include_items=False),
    )
    if new_status == "RECEIVED":
        supplier_name = purchase.supplier.name if purchase.supplier else "supplier"
        events.notify_admins(
            title="Purchase received",
            message=f"Purchase #{purchase.id} from {supplier_name} was received into stock.",
            type="SUCCESS",
        )
    return purchase


def delete_purchase(purchase_id: int) -> None:
    session = resolve_session()
    purchase = get_purchase(purchase_id)
    if purchase.status == "RECEIVED":
        raise InvalidStateError("Cannot delete a received purchase. Cancel it first.")

    old = purchase.to_dict(include_items=False)
    session.delete(purchase)
    session.commit()
    events.record_audit(action="DELETE", entity="Purchase", entity_id=purchase_id, old_data=old)
