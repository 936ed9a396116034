# Overview: Service-layer operations for IMEI-tracked stock; encapsulates business logic and database work.

"""
IMEI Registry

- IMEI strings are unique across the shop (15-20 characters).
- Status may be set to any value in IMEI_STATUSES directly; there is no
  enforced transition table. Sales set SOLD, void/refund restore IN_STOCK,
  trade-in acceptance sets TRADED_IN.
- A SOLD IMEI cannot be deleted.
- Bulk registration is all-or-nothing: if any submitted IMEI already exists
  (or is repeated inside the batch) nothing is inserted.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import IMEI, Product, IMEI_STATUSES
from phoneshop.validation import (
    ConflictError,
    InvalidStateError,
    ListCriteria,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
    validate_payload,
)
from . import events
from .concurrency import resolve_session
from .query_utils import paginate, search_filter


IMEI_MIN_LENGTH = 15

IMEI_POLICY = ModelValidationPolicy(
    writable_fields={"imei", "product_id", "status"},
    required_on_create={"imei", "product_id"},
    choices={"status": IMEI_STATUSES},
    min_length={"imei": IMEI_MIN_LENGTH},
    positive_fields={"product_id"},
)

LIST_FILTERS = {"product_id": int, "status": IMEI_STATUSES}


class DuplicateIMEIError(ConflictError):
    """Raised when one or more IMEI strings are already registered."""

    def __init__(self, duplicates: list[str]):
        super().__init__(f"Duplicate IMEIs found: {', '.join(duplicates)}")
        self.duplicates = duplicates


def _require_product(session: Session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if not product or product.is_deleted:
        raise NotFoundError("Product not found")
    return product


def list_imeis(criteria: ListCriteria) -> tuple[list[IMEI], int]:
    """Newest first. q matches the IMEI, product name or barcode."""
    session = resolve_session()
    query = session.query(IMEI).join(Product, IMEI.product_id == Product.id)

    search = search_filter(criteria.q, IMEI.imei, Product.name, Product.barcode)
    if search is not None:
        query = query.filter(search)
    if criteria.get("product_id"):
        query = query.filter(IMEI.product_id == criteria.get("product_id"))
    if criteria.get("status"):
        query = query.filter(IMEI.status == criteria.get("status"))

    return paginate(query, criteria, IMEI.created_at.desc(), IMEI.id.desc())


def get_imei(imei_id: int, session: Session | None = None) -> IMEI:
    session = resolve_session(session)
    imei = session.get(IMEI, imei_id)
    if not imei:
        raise NotFoundError("IMEI not found")
    return imei


def create_imei(payload: dict) -> IMEI:
    session = resolve_session()
    patch = validate_payload(model=IMEI, payload=payload, policy=IMEI_POLICY, partial=False)

    if session.query(IMEI.id).filter_by(imei=patch["imei"]).first():
        raise ConflictError("IMEI already exists in the system")
    _require_product(session, patch["product_id"])

    imei = IMEI(
        imei=patch["imei"],
        product_id=patch["product_id"],
        status=patch.get("status") or "IN_STOCK",
    )
    session.add(imei)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("IMEI already exists in the system")

    events.record_audit(action="CREATE", entity="IMEI", entity_id=imei.id, new_data=imei.to_dict())
    return imei


def bulk_create_imeis(payload: dict) -> int:
    """
    Register many IMEIs for one product in a single transaction.

    Body: {product_id, imeis: [str, ...]}. Returns the number inserted.

    Raises DuplicateIMEIError listing every submitted string that is already
    registered or repeated inside the batch; zero rows are inserted then.
    """
    session = resolve_session()
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []
    product_id = None
    try:
        product_id = coerce_int(payload.get("product_id"), "product_id")
        if product_id <= 0:
            raise ValidationError("product_id must be greater than 0", field="product_id")
    except ValidationError as e:
        errors.extend(e.errors)

    raw_imeis = payload.get("imeis")
    if not isinstance(raw_imeis, list) or not raw_imeis:
        errors.append({"field": "imeis", "message": "At least one IMEI is required"})
        raw_imeis = []

    max_length = IMEI.__table__.c.imei.type.length
    imeis: list[str] = []
    for index, value in enumerate(raw_imeis):
        if not isinstance(value, str):
            errors.append({"field": f"imeis[{index}]", "message": "IMEI must be a string"})
            continue
        value = value.strip()
        if not IMEI_MIN_LENGTH <= len(value) <= max_length:
            errors.append({
                "field": f"imeis[{index}]",
                "message": f"IMEI must be {IMEI_MIN_LENGTH}-{max_length} characters",
            })
            continue
        imeis.append(value)

    if errors:
        raise ValidationError("Validation failed", errors=errors)

    _require_product(session, product_id)

    seen: set[str] = set()
    repeated: list[str] = []
    for value in imeis:
        if value in seen and value not in repeated:
            repeated.append(value)
        seen.add(value)

    existing = [row.imei for row in session.query(IMEI.imei).filter(IMEI.imei.in_(seen))]
    duplicates = sorted(set(existing) | set(repeated))
    if duplicates:
        raise DuplicateIMEIError(duplicates)

    try:
        session.add_all([IMEI(imei=value, product_id=product_id, status="IN_STOCK") for value in imeis])
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("One or more IMEIs already exist")

    events.record_audit(
        action="BULK_CREATE",
        entity="IMEI",
        new_data={"product_id": product_id, "count": len(imeis)},
    )
    return len(imeis)


def update_imei(imei_id: int, payload: dict) -> IMEI:
    """Partial update of imei / product_id / status (any status may be set)."""
    session = resolve_session()
    patch = validate_payload(model=IMEI, payload=payload, policy=IMEI_POLICY, partial=True)

    imei = get_imei(imei_id, session)
    old = imei.to_dict()

    if "imei" in patch:
        clash = session.query(IMEI.id).filter(IMEI.imei == patch["imei"], IMEI.id != imei_id).first()
        if clash:
            raise ConflictError("IMEI already exists")
    if "product_id" in patch:
        _require_product(session, patch["product_id"])

    for k, v in patch.items():
        setattr(imei, k, v)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("IMEI already exists")

    events.record_audit(action="UPDATE", entity="IMEI", entity_id=imei.id, old_data=old, new_data=imei.to_dict())
    return imei


def update_status(imei_id: int, new_status: str, session: Session | None = None) -> IMEI:
    """Set an IMEI's status directly. No transition table is enforced."""
    session = resolve_session(session)
    if new_status not in IMEI_STATUSES:
        raise ValidationError("Invalid status", field="status")

    imei = get_imei(imei_id, session)
    old_status = imei.status
    imei.status = new_status
    session.commit()

    events.record_audit(
        action="STATUS_CHANGE",
        entity="IMEI",
        entity_id=imei.id,
        old_data={"status": old_status},
        new_data={"status": new_status},
    )
    return imei


def delete_imei(imei_id: int) -> None:
    session = resolve_session()
    imei = get_imei(imei_id, session)
    if imei.status == "SOLD":
        raise InvalidStateError("Cannot delete a sold IMEI")

    old = imei.to_dict()
    session.delete(imei)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("IMEI is referenced by other records")

    events.record_audit(action="DELETE", entity="IMEI", entity_id=imei_id, old_data=old)
