# Overview: Service-layer operations for staff accounts; creation, role changes and removal.

"""
User Management

INVARIANTS:
- Phone numbers are stored normalized (09...) and are unique.
- Passwords are only ever stored as bcrypt hashes.
- The last ADMIN account cannot be deleted.
- Changing a password or deactivating an account revokes its sessions.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..models import User, USER_ROLES, USER_STATUSES
from phoneshop.phone_utils import is_valid_local_phone, normalize_phone
from phoneshop.validation import (
    ConflictError,
    InvalidStateError,
    ListCriteria,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from . import events
from .auth_service import hash_password, validate_password_strength
from .concurrency import resolve_session
from .query_utils import paginate, search_filter
from .session_service import revoke_all_user_sessions


DEFAULT_ADMIN_PHONE = "09123456789"
DEFAULT_ADMIN_PASSWORD = "password123"

USER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "role", "status"},
    required_on_create={"name", "phone", "role"},
    choices={"role": USER_ROLES, "status": USER_STATUSES},
    min_length={"name": 2},
)

LIST_FILTERS = {"role": USER_ROLES, "status": USER_STATUSES}


def _split_password(payload: dict) -> tuple[dict, str | None]:
    """password is not a column; pull it out before column validation."""
    if payload is None:
        return {}, None
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    return payload, payload.pop("password", None)


def _normalized_phone(raw: str) -> str:
    phone = normalize_phone(raw)
    if not is_valid_local_phone(phone):
        raise ValidationError("Phone must start with 09 and contain 9-11 digits", field="phone")
    return phone


def list_users(criteria: ListCriteria) -> tuple[list[User], int]:
    session = resolve_session()
    query = session.query(User)
    search = search_filter(criteria.q, User.name, User.phone)
    if search is not None:
        query = query.filter(search)
    if criteria.get("role"):
        query = query.filter(User.role == criteria.get("role"))
    if criteria.get("status"):
        query = query.filter(User.status == criteria.get("status"))
    return paginate(query, criteria, User.created_at.desc(), User.id.desc())


def get_user(user_id: int) -> User:
    user = resolve_session().get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def create_user(payload: dict) -> User:
    session = resolve_session()
    payload, password = _split_password(payload)
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=False)

    if password is None:
        raise ValidationError("password is required", field="password")
    validate_password_strength(password)

    patch["phone"] = _normalized_phone(patch["phone"])
    if session.query(User.id).filter(User.phone == patch["phone"]).first():
        raise ConflictError("User with this phone already exists")

    patch["status"] = patch.get("status") or "ACTIVE"
    user = User(**patch, password_hash=hash_password(password))
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("User with this phone already exists")

    events.record_audit(action="CREATE", entity="User", entity_id=user.id, new_data=user.to_dict())
    return user


def update_user(user_id: int, payload: dict) -> User:
    session = resolve_session()
    payload, password = _split_password(payload)
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)
    user = get_user(user_id)

    if patch.get("phone"):
        patch["phone"] = _normalized_phone(patch["phone"])
        clash = session.query(User.id).filter(User.phone == patch["phone"], User.id != user_id).first()
        if clash:
            raise ConflictError("Phone number already in use")

    if password:
        patch["password_hash"] = hash_password(password)

    old = user.to_dict()
    for k, v in patch.items():
        setattr(user, k, v)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Phone number already in use")

    if password:
        revoke_all_user_sessions(user.id, reason="Password changed")
    elif patch.get("status") and patch["status"] != "ACTIVE":
        revoke_all_user_sessions(user.id, reason="Account deactivated")

    events.record_audit(action="UPDATE", entity="User", entity_id=user.id, old_data=old, new_data=user.to_dict())
    return user


def delete_user(user_id: int) -> None:
    session = resolve_session()
    user = get_user(user_id)

    if user.role == "ADMIN":
        admin_count = session.query(User.id).filter(User.role == "ADMIN").count()
        if admin_count <= 1:
            raise InvalidStateError("Cannot delete the last admin user.")

    old = user.to_dict()
    session.delete(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("User is referenced by other records")

    events.record_audit(action="DELETE", entity="User", entity_id=user_id, old_data=old)


def ensure_admin(
    *,
    name: str = "Admin",
    phone: str = DEFAULT_ADMIN_PHONE,
    password: str = DEFAULT_ADMIN_PASSWORD,
) -> tuple[User, bool]:
    """
    Seed the first admin account.

    Returns (user, created). An existing account with the phone is left as is.
    """
    session = resolve_session()
    phone = _normalized_phone(phone)
    existing = session.query(User).filter(User.phone == phone).first()
    if existing is not None:
        return existing, False

    user = User(name=name, phone=phone, role="ADMIN", status="ACTIVE", password_hash=hash_password(password))
    session.add(user)
    session.commit()
    return user, True
