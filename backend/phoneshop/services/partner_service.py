# Overview: Service-layer operations for customers and suppliers (soft-deleted ledgers).

"""
Customers & Suppliers

Both ledgers are soft-deleted: rows stay for sales, purchases, repairs and
warranties that reference them, but vanish from lists and lookups.

Customer phone numbers are unique. Creating a customer with the phone of a
soft-deleted one reactivates that row with the new details.
"""

from __future__ import annotations

import re

from sqlalchemy.exc import IntegrityError

from ..models import Customer, Supplier
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


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "note"},
    required_on_create={"name", "phone"},
    min_length={"name": 2, "phone": 9},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address"},
    required_on_create={"name"},
    min_length={"name": 2},
)


def _check_email(patch: dict) -> None:
    email = patch.get("email")
    if email and not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address", field="email")


# =============================================================================
# CUSTOMERS
# =============================================================================

def list_customers(criteria: ListCriteria) -> tuple[list[Customer], int]:
    """Active customers by name. q matches name, phone or email."""
    session = resolve_session()
    query = session.query(Customer).filter(Customer.is_deleted.is_(False))
    search = search_filter(criteria.q, Customer.name, Customer.phone, Customer.email)
    if search is not None:
        query = query.filter(search)
    return paginate(query, criteria, Customer.name.asc(), Customer.id.asc())


def get_customer(customer_id: int) -> Customer:
    customer = resolve_session().get(Customer, customer_id)
    if not customer or customer.is_deleted:
        raise NotFoundError("Customer not found")
    return customer


def create_customer(payload: dict) -> Customer:
    session = resolve_session()
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    _check_email(patch)

    existing = session.query(Customer).filter(Customer.phone == patch["phone"]).first()
    if existing is not None:
        if not existing.is_deleted:
            raise ConflictError("Customer with this phone already exists")
        # Reactivate with the submitted details; omitted optionals are cleared
        for key in ("email", "address", "note"):
            setattr(existing, key, patch.get(key))
        existing.name = patch["name"]
        existing.is_deleted = False
        session.commit()
        events.record_audit(action="RESTORE", entity="Customer", entity_id=existing.id, new_data=existing.to_dict())
        return existing

    customer = Customer(**patch)
    session.add(customer)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Customer with this phone already exists")

    events.record_audit(action="CREATE", entity="Customer", entity_id=customer.id, new_data=customer.to_dict())
    return customer


def update_customer(customer_id: int, payload: dict) -> Customer:
    session = resolve_session()
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    _check_email(patch)
    customer = get_customer(customer_id)

    if "phone" in patch:
        clash = (
            session.query(Customer.id)
            .filter(Customer.phone == patch["phone"], Customer.id != customer_id)
            .first()
        )
        if clash:
            raise ConflictError("Phone number already in use by another customer")

    old = customer.to_dict()
    for k, v in patch.items():
        setattr(customer, k, v)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Phone number already in use by another customer")

    events.record_audit(action="UPDATE", entity="Customer", entity_id=customer.id, old_data=old, new_data=customer.to_dict())
    return customer


def delete_customer(customer_id: int) -> None:
    session = resolve_session()
    customer = get_customer(customer_id)
    customer.is_deleted = True
    session.commit()
    events.record_audit(action="DELETE", entity="Customer", entity_id=customer_id, old_data=customer.to_dict())


# =============================================================================
# SUPPLIERS
# =============================================================================

def list_suppliers(criteria: ListCriteria) -> tuple[list[Supplier], int]:
    session = resolve_session()
    query = session.query(Supplier).filter(Supplier.is_deleted.is_(False))
    search = search_filter(criteria.q, Supplier.name, Supplier.phone, Supplier.email)
    if search is not None:
        query = query.filter(search)
    return paginate(query, criteria, Supplier.name.asc(), Supplier.id.asc())


def get_supplier(supplier_id: int) -> Supplier:
    supplier = resolve_session().get(Supplier, supplier_id)
    if not supplier or supplier.is_deleted:
        raise NotFoundError("Supplier not found")
    return supplier


def create_supplier(payload: dict) -> Supplier:
    session = resolve_session()
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    _check_email(patch)

    supplier = Supplier(**patch)
    session.add(supplier)
    session.commit()
    events.record_audit(action="CREATE", entity="Supplier", entity_id=supplier.id, new_data=supplier.to_dict())
    return supplier


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    session = resolve_session()
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    _check_email(patch)
    supplier = get_supplier(supplier_id)

    old = supplier.to_dict()
    for k, v in patch.items():
        setattr(supplier, k, v)
    session.commit()
    events.record_audit(action="UPDATE", entity="Supplier", entity_id=supplier.id, old_data=old, new_data=supplier.to_dict())
    return supplier


def delete_supplier(supplier_id: int) -> None:
    session = resolve_session()
    supplier = get_supplier(supplier_id)
    supplier.is_deleted = True
    session.commit()
    events.record_audit(action="DELETE", entity="Supplier", entity_id=supplier_id, old_data=supplier.to_dict())
