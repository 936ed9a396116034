# Overview: Service-layer operations for trade-ins; creation, listing and status transitions.

from __future__ import annotations

from sqlalchemy.orm import Session

from ..models import Customer, IMEI, Product, TradeIn, TRADE_IN_STATUSES
from phoneshop.validation import (
    ListCriteria,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from . import events
from .concurrency import lock_for_update, resolve_session
from .query_utils import paginate, search_filter


TRADE_IN_POLICY = ModelValidationPolicy(
    writable_fields={"customer_id", "imei_id", "product_id", "device_name", "condition", "offered_price", "note"},
    required_on_create={"device_name", "condition", "offered_price"},
    positive_fields={"customer_id", "imei_id", "product_id", "offered_price"},
)

LIST_FILTERS = {"status": TRADE_IN_STATUSES, "customer_id": int}


def list_trade_ins(criteria: ListCriteria) -> tuple[list[TradeIn], int]:
    """Newest first. q matches device name or customer name."""
    session = resolve_session()
    query = session.query(TradeIn).outerjoin(Customer, TradeIn.customer_id == Customer.id)

    search = search_filter(criteria.q, TradeIn.device_name, Customer.name)
    if search is not None:
        query = query.filter(search)
    if criteria.get("status"):
        query = query.filter(TradeIn.status == criteria.get("status"))
    if criteria.get("customer_id"):
        query = query.filter(TradeIn.customer_id == criteria.get("customer_id"))

    return paginate(query, criteria, TradeIn.created_at.desc(), TradeIn.id.desc())


def get_trade_in(trade_in_id: int, session: Session | None = None) -> TradeIn:
    session = resolve_session(session)
    trade_in = session.get(TradeIn, trade_in_id)
    if not trade_in:
        raise NotFoundError("Trade-in not found")
    return trade_in


def create_trade_in(payload: dict) -> TradeIn:
    """New trade-ins start PENDING. Linked customer / IMEI / product must exist."""
    session = resolve_session()
    patch = validate_payload(model=TradeIn, payload=payload, policy=TRADE_IN_POLICY, partial=False)

    if patch.get("customer_id") and not session.get(Customer, patch["customer_id"]):
        raise NotFoundError("Customer not found")
    if patch.get("imei_id") and not session.get(IMEI, patch["imei_id"]):
        raise NotFoundError("IMEI not found")
    if patch.get("product_id") and not session.get(Product, patch["product_id"]):
        raise NotFoundError("Product not found")

    trade_in = TradeIn(**patch, status="PENDING")
    session.add(trade_in)
    session.commit()

    events.record_audit(action="CREATE", entity="TradeIn", entity_id=trade_in.id, new_data=trade_in.to_dict())
    events.notify_admins(
        title="New trade-in",
        message=f"Trade-in #{trade_in.id} ({trade_in.device_name}) is waiting for review.",
    )
    return trade_in


def update_status(trade_in_id: int, new_status: str, session: Session | None = None) -> TradeIn:
    """
    Move a trade-in to new_status.

    ACCEPTED with a linked IMEI also sets that IMEI to TRADED_IN; both writes
    commit together. The trade-in is loaded first, so a missing trade-in is
    reported before the IMEI is touched. REJECTED / RESOLD never touch the IMEI.
    """
    session = resolve_session(session)
    if new_status not in TRADE_IN_STATUSES:
        raise ValidationError("Invalid status", field="status")

    try:
        trade_in = lock_for_update(
            session.query(TradeIn).filter(TradeIn.id == trade_in_id)
        ).first()
        if not trade_in:
            raise NotFoundError("Trade-in not found")
        old_status = trade_in.status

        if new_status == "ACCEPTED" and trade_in.imei_id:
            imei = session.get(IMEI, trade_in.imei_id)
            if not imei:
                raise NotFoundError("IMEI not found")
            imei.status = "TRADED_IN"

        trade_in.status = new_status
        session.commit()
    except Exception:
        session.rollback()
        raise

    events.record_audit(
        action="STATUS_CHANGE",
        entity="TradeIn",
        entity_id=trade_in.id,
        old_data={"status": old_status},
        new_data={"status": new_status},
    )
    return trade_in
