# Overview: Service-layer operations for installment plans and their payment ledger.

"""
Installment / Payment Tracker

INVARIANTS:
- One plan per sale (unique sale_id); a second plan for the same sale is a Conflict.
- remaining = total_amount - down_payment at creation, then only ever
  reduced by payments and clamped at zero.
- After any sequence of payments:
      remaining == max(0, total_amount - down_payment - sum(payments))
- status flips ACTIVE -> COMPLETED exactly when remaining reaches 0 and
  never reverts; COMPLETED plans accept no further payments.
- Payments are append-only.

add_payment is one unit of work: the payment row, the new balance and the
status change commit together or not at all.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import Customer, Installment, InstallmentPayment, Sale, INSTALLMENT_STATUSES
from phoneshop.money import ZERO
from phoneshop.time_utils import utcnow
from phoneshop.validation import (
    ConflictError,
    InvalidStateError,
    ListCriteria,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_decimal,
    enforce_rules_installment,
    validate_payload,
)
from . import events
from .concurrency import lock_for_update, resolve_session
from .query_utils import paginate, search_filter


INSTALLMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sale_id", "customer_id", "total_amount", "down_payment",
        "monthly_amount", "total_months", "start_date",
    },
    required_on_create={"sale_id", "customer_id", "total_amount", "monthly_amount", "total_months"},
    positive_fields={"sale_id", "customer_id", "total_amount", "monthly_amount", "total_months"},
    non_negative_fields={"down_payment"},
)

LIST_FILTERS = {"status": INSTALLMENT_STATUSES, "customer_id": int}


def list_installments(criteria: ListCriteria, session: Session | None = None) -> tuple[list[Installment], int]:
    """Newest first. q matches customer name/phone; filters: status, customer_id."""
    session = resolve_session(session)
    query = session.query(Installment).join(Customer, Installment.customer_id == Customer.id)

    search = search_filter(criteria.q, Customer.name, Customer.phone)
    if search is not None:
        query = query.filter(search)
    if criteria.get("status"):
        query = query.filter(Installment.status == criteria.get("status"))
    if criteria.get("customer_id"):
        query = query.filter(Installment.customer_id == criteria.get("customer_id"))

    return paginate(query, criteria, Installment.created_at.desc(), Installment.id.desc())


def get_installment(installment_id: int, session: Session | None = None) -> Installment:
    session = resolve_session(session)
    installment = session.get(Installment, installment_id)
    if not installment:
        raise NotFoundError("Installment not found")
    return installment


def create_installment(payload: dict, session: Session | None = None) -> Installment:
    """
    Open an installment plan for a sale.

    Required: sale_id, customer_id, total_amount, monthly_amount, total_months.
    Optional: down_payment (default 0), start_date (default now).

    Raises:
        ValidationError: non-positive amounts/months, negative down payment,
            or down payment not below the total
        NotFoundError: unknown sale or customer
        ConflictError: the sale already has a plan
    """
    session = resolve_session(session)

    patch = validate_payload(model=Installment, payload=payload, policy=INSTALLMENT_POLICY, partial=False)
    if patch.get("down_payment") is None:
        patch["down_payment"] = ZERO
    enforce_rules_installment(patch)

    if not session.get(Sale, patch["sale_id"]):
        raise NotFoundError("Sale not found")

    customer = session.get(Customer, patch["customer_id"])
    if not customer or customer.is_deleted:
        raise NotFoundError("Customer not found")

    existing = session.query(Installment.id).filter_by(sale_id=patch["sale_id"]).first()
    if existing:
        raise ConflictError("Installment already exists for this sale")

    if patch.get("start_date") is None:
        patch.pop("start_date", None)

    installment = Installment(
        **patch,
        remaining=patch["total_amount"] - patch["down_payment"],
        status="ACTIVE",
    )
    session.add(installment)
    try:
        session.commit()
    except IntegrityError:
        # Lost a race against another plan for the same sale
        session.rollback()
        raise ConflictError("Installment already exists for this sale")

    events.record_audit(
        action="CREATE",
        entity="Installment",
        entity_id=installment.id,
        new_data=installment.to_dict(),
    )
    return installment


def add_payment(
    installment_id: int,
    amount,
    note: str | None = None,
    session: Session | None = None,
) -> InstallmentPayment:
    """
    Record a payment against an ACTIVE plan.

    Steps (single transaction):
    1. load the plan under a row lock (NotFoundError if absent)
    2. require status ACTIVE (InvalidStateError otherwise)
    3. append the payment
    4. remaining = max(0, remaining - amount); COMPLETED when it reaches 0

    Overshooting payments are accepted; the balance clamps at zero.
    """
    session = resolve_session(session)

    amount = coerce_decimal(amount, "amount")
    if amount <= 0:
        raise ValidationError("amount must be greater than 0", field="amount")
    if note is not None and not isinstance(note, str):
        raise ValidationError("note must be a string", field="note")

    try:
        installment = lock_for_update(
            session.query(Installment).filter(Installment.id == installment_id)
        ).first()
        if not installment:
            raise NotFoundError("Installment not found")
        if installment.status != "ACTIVE":
            raise InvalidStateError("Installment is not active")

        payment = InstallmentPayment(
            installment_id=installment.id,
            amount=amount,
            note=(note or "").strip() or None,
            paid_at=utcnow(),
        )
        session.add(payment)

        new_remaining = Decimal(installment.remaining) - amount
        completed = new_remaining <= 0
        installment.remaining = ZERO if completed else new_remaining
        if completed:
            installment.status = "COMPLETED"

        session.commit()
    except Exception:
        session.rollback()
        raise

    events.record_audit(
        action="PAYMENT",
        entity="Installment",
        entity_id=installment.id,
        new_data={
            "payment_id": payment.id,
            "amount": float(amount),
            "remaining": float(installment.remaining),
            "status": installment.status,
        },
    )
    if completed:
        customer_name = installment.customer.name if installment.customer else "customer"
        events.notify_admins(
            title="Installment completed",
            message=f"Installment #{installment.id} for {customer_name} has been fully paid.",
            type="SUCCESS",
        )
    return payment
