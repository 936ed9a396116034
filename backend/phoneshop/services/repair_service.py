# Overview: Service-layer operations for repair orders; ticket allocation and status updates.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import Customer, IMEI, RepairOrder, REPAIR_STATUSES
from phoneshop.time_utils import utcnow
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
from .document_service import generate_ticket_no
from .query_utils import paginate, search_filter


REPAIR_POLICY = ModelValidationPolicy(
    writable_fields={"customer_id", "imei_id", "device_info", "issue", "diagnosis", "repair_cost"},
    required_on_create={"customer_id", "device_info", "issue"},
    positive_fields={"customer_id", "imei_id"},
    non_negative_fields={"repair_cost"},
)

REPAIR_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"status", "diagnosis", "repair_cost"},
    choices={"status": REPAIR_STATUSES},
    non_negative_fields={"repair_cost"},
)

LIST_FILTERS = {"status": REPAIR_STATUSES, "customer_id": int}


def list_repair_orders(criteria: ListCriteria) -> tuple[list[RepairOrder], int]:
    """Newest first. q matches ticket number, customer name or device info."""
    session = resolve_session()
    query = session.query(RepairOrder).join(Customer, RepairOrder.customer_id == Customer.id)

    search = search_filter(criteria.q, RepairOrder.ticket_no, Customer.name, RepairOrder.device_info)
    if search is not None:
        query = query.filter(search)
    if criteria.get("status"):
        query = query.filter(RepairOrder.status == criteria.get("status"))
    if criteria.get("customer_id"):
        query = query.filter(RepairOrder.customer_id == criteria.get("customer_id"))

    return paginate(query, criteria, RepairOrder.created_at.desc(), RepairOrder.id.desc())


def get_repair_order(order_id: int, session: Session | None = None) -> RepairOrder:
    session = resolve_session(session)
    order = session.get(RepairOrder, order_id)
    if not order:
        raise NotFoundError("Repair order not found")
    return order


def create_repair_order(payload: dict) -> RepairOrder:
    """
    Open a repair ticket in status RECEIVED with the next RPR-YYYYMMDD-NNNN number.
    """
    session = resolve_session()
    patch = validate_payload(model=RepairOrder, payload=payload, policy=REPAIR_POLICY, partial=False)

    customer = session.get(Customer, patch["customer_id"])
    if not customer or customer.is_deleted:
        raise NotFoundError("Customer not found")
    if patch.get("imei_id") and not session.get(IMEI, patch["imei_id"]):
        raise NotFoundError("IMEI not found")

    # Allocate before adding the order: allocation may roll back the session.
    ticket_no = generate_ticket_no(session=session)

    if patch.get("repair_cost") is None:
        patch.pop("repair_cost", None)
    order = RepairOrder(**patch, ticket_no=ticket_no, status="RECEIVED")
    session.add(order)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Ticket number already in use, please retry")

    events.record_audit(action="CREATE", entity="RepairOrder", entity_id=order.id, new_data=order.to_dict())
    return order


def update_repair_order(order_id: int, payload: dict, session: Session | None = None) -> RepairOrder:
    """
    Update status / diagnosis / repair_cost.

    Moving to COMPLETED stamps completed_at; other statuses leave it alone.
    """
    session = resolve_session(session)
    patch = validate_payload(model=RepairOrder, payload=payload, policy=REPAIR_UPDATE_POLICY, partial=True)
    if "status" in patch and patch["status"] is None:
        raise ValidationError("Invalid status", field="status")

    order = get_repair_order(order_id, session)
    old = {"status": order.status, "diagnosis": order.diagnosis, "repair_cost": float(order.repair_cost or 0)}

    if patch.get("repair_cost") is None:
        patch.pop("repair_cost", None)

    completed_now = False
    for k, v in patch.items():
        setattr(order, k, v)
    if patch.get("status") == "COMPLETED":
        order.completed_at = utcnow()
        completed_now = old["status"] != "COMPLETED"

    session.commit()

    events.record_audit(
        action="UPDATE",
        entity="RepairOrder",
        entity_id=order.id,
        old_data=old,
        new_data={k: (float(v) if k == "repair_cost" else v) for k, v in patch.items()},
    )
    if completed_now:
        events.notify_admins(
            title="Repair completed",
            message=f"Repair {order.ticket_no} is ready for pickup.",
            type="SUCCESS",
        )
    return order


def update_status(order_id: int, new_status: str, session: Session | None = None) -> RepairOrder:
    if new_status not in REPAIR_STATUSES:
        raise ValidationError("Invalid status", field="status")
    return update_repair_order(order_id, {"status": new_status}, session=session)
