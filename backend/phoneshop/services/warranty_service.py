# Overview: Service-layer operations for warranties; registration, lookups and status changes.

from __future__ import annotations

from sqlalchemy.orm import Session

from ..models import Customer, IMEI, Product, Warranty, WARRANTY_STATUSES, WARRANTY_TYPES
from phoneshop.validation import (
    ListCriteria,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_warranty,
    validate_payload,
)
from . import events
from .concurrency import resolve_session
from .query_utils import paginate, search_filter


WARRANTY_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "imei_id", "customer_id", "type", "start_date", "end_date", "note", "status"},
    required_on_create={"product_id", "type", "start_date", "end_date"},
    choices={"type": WARRANTY_TYPES, "status": WARRANTY_STATUSES},
    positive_fields={"product_id", "imei_id", "customer_id"},
)

LIST_FILTERS = {"status": WARRANTY_STATUSES, "type": WARRANTY_TYPES, "customer_id": int, "product_id": int}


def _check_links(session: Session, patch: dict) -> None:
    if patch.get("product_id") and not session.get(Product, patch["product_id"]):
        raise NotFoundError("Product not found")
    if patch.get("imei_id") and not session.get(IMEI, patch["imei_id"]):
        raise NotFoundError("IMEI not found")
    if patch.get("customer_id") and not session.get(Customer, patch["customer_id"]):
        raise NotFoundError("Customer not found")


def list_warranties(criteria: ListCriteria) -> tuple[list[Warranty], int]:
    """Newest first. q matches product name, customer name or IMEI."""
    session = resolve_session()
    query = (
        session.query(Warranty)
        .join(Product, Warranty.product_id == Product.id)
        .outerjoin(Customer, Warranty.customer_id == Customer.id)
        .outerjoin(IMEI, Warranty.imei_id == IMEI.id)
    )

    search = search_filter(criteria.q, Product.name, Customer.name, IMEI.imei)
    if search is not None:
        query = query.filter(search)
    for key in ("status", "type", "customer_id", "product_id"):
        if criteria.get(key):
            query = query.filter(getattr(Warranty, key) == criteria.get(key))

    return paginate(query, criteria, Warranty.created_at.desc(), Warranty.id.desc())


def get_warranty(warranty_id: int, session: Session | None = None) -> Warranty:
    session = resolve_session(session)
    warranty = session.get(Warranty, warranty_id)
    if not warranty:
        raise NotFoundError("Warranty not found")
    return warranty


def create_warranty(payload: dict) -> Warranty:
    session = resolve_session()
    patch = validate_payload(model=Warranty, payload=payload, policy=WARRANTY_POLICY, partial=False)
    enforce_rules_warranty(patch)
    _check_links(session, patch)

    patch["status"] = patch.get("status") or "ACTIVE"
    warranty = Warranty(**patch)
    session.add(warranty)
    session.commit()

    events.record_audit(action="CREATE", entity="Warranty", entity_id=warranty.id, new_data=warranty.to_dict())
    return warranty


def update_warranty(warranty_id: int, payload: dict) -> Warranty:
    """Partial update; the merged start/end dates must still be ordered."""
    session = resolve_session()
    patch = validate_payload(model=Warranty, payload=payload, policy=WARRANTY_POLICY, partial=True)

    warranty = get_warranty(warranty_id, session)
    enforce_rules_warranty({
        "start_date": patch.get("start_date", warranty.start_date),
        "end_date": patch.get("end_date", warranty.end_date),
    })
    _check_links(session, patch)

    old = warranty.to_dict()
    for k, v in patch.items():
        setattr(warranty, k, v)
    session.commit()

    events.record_audit(action="UPDATE", entity="Warranty", entity_id=warranty.id, old_data=old, new_data=warranty.to_dict())
    return warranty


def update_status(warranty_id: int, new_status: str, session: Session | None = None) -> Warranty:
    """Any WARRANTY_STATUSES value may be set; there is no transition table."""
    session = resolve_session(session)
    if new_status not in WARRANTY_STATUSES:
        raise ValidationError("Invalid status", field="status")

    warranty = get_warranty(warranty_id, session)
    old_status = warranty.status
    warranty.status = new_status
    session.commit()

    events.record_audit(
        action="STATUS_CHANGE",
        entity="Warranty",
        entity_id=warranty.id,
        old_data={"status": old_status},
        new_data={"status": new_status},
    )
    return warranty


def delete_warranty(warranty_id: int) -> None:
    session = resolve_session()
    warranty = get_warranty(warranty_id, session)
    old = warranty.to_dict()
    session.delete(warranty)
    session.commit()
    events.record_audit(action="DELETE", entity="Warranty", entity_id=warranty_id, old_data=old)
