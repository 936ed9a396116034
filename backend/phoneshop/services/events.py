# Overview: Outbound side-channel for audit log entries and user notifications.

"""
Audit / Notification Side-Channel

Invariants:
- Called only AFTER the primary operation has committed.
- Each write runs in its own short transaction on the request session.
- Delivery failures are logged and rolled back; they never raise into,
  or undo, the operation that triggered them.
- No domain logic here: callers decide what happened and who to tell.
"""

from __future__ import annotations

from typing import Any, Callable

from flask import current_app, g, has_app_context, has_request_context, request

from ..extensions import db
from ..models import AuditLog, Notification, User


def _current_actor_id() -> int | None:
    if has_request_context() and getattr(g, "current_user", None) is not None:
        return g.current_user.id
    return None


def _current_ip() -> str | None:
    if has_request_context():
        return request.remote_addr
    return None


def _deliver(kind: str, build: Callable[[], list]) -> bool:
    try:
        db.session.add_all(build())
        db.session.commit()
        return True
    except Exception:
        db.session.rollback()
        if has_app_context():
            current_app.logger.exception("Failed to record %s", kind)
        return False


def record_audit(
    *,
    action: str,
    entity: str,
    entity_id: int | None = None,
    old_data: Any = None,
    new_data: Any = None,
    user_id: int | None = None,
    ip_address: str | None = None,
) -> bool:
    """
    Append an audit log entry. Actor and IP default to the current request.

    Returns False (after logging) if the entry could not be written.
    """
    def _build() -> list:
        return [AuditLog(
            user_id=user_id if user_id is not None else _current_actor_id(),
            action=action,
            entity=entity,
            entity_id=entity_id,
            old_data=old_data,
            new_data=new_data,
            ip_address=ip_address if ip_address is not None else _current_ip(),
        )]

    return _deliver("audit log", _build)


def notify(*, user_id: int, title: str, message: str, type: str = "INFO") -> bool:
    """Send one notification to one user."""
    return _deliver(
        "notification",
        lambda: [Notification(user_id=user_id, title=title, message=message, type=type)],
    )


def notify_admins(*, title: str, message: str, type: str = "INFO") -> int:
    """
    Send a notification to every ACTIVE admin.

    Returns the number of notifications written (0 on failure).
    """
    try:
        admin_ids = [
            row.id for row in db.session.query(User.id).filter(
                User.role == "ADMIN",
                User.status == "ACTIVE",
            )
        ]
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to resolve notification recipients")
        return 0

    if not admin_ids:
        return 0

    def _build() -> list:
        return [Notification(user_id=uid, title=title, message=message, type=type) for uid in admin_ids]

    return len(admin_ids) if _deliver("notification", _build) else 0
