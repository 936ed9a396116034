# Overview: Service-layer operations for the notification inbox and the audit-log viewer.

from __future__ import annotations

from ..extensions import db
from ..models import AuditLog, Notification, User
from phoneshop.validation import ListCriteria, NotFoundError
from .query_utils import apply_date_range, paginate, search_filter


NOTIFICATION_FILTERS = {"unread_only": bool}
AUDIT_FILTERS = {"entity": str, "action": str, "user_id": int}


# =============================================================================
# NOTIFICATIONS (always scoped to one user)
# =============================================================================

def unread_count(user_id: int) -> int:
    return (
        db.session.query(Notification.id)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .count()
    )


def list_notifications(user_id: int, criteria: ListCriteria) -> tuple[list[Notification], int, int]:
    """Newest first. Returns (rows, total, unread_count)."""
    query = db.session.query(Notification).filter(Notification.user_id == user_id)
    if criteria.get("unread_only"):
        query = query.filter(Notification.is_read.is_(False))
    rows, total = paginate(query, criteria, Notification.created_at.desc(), Notification.id.desc())
    return rows, total, unread_count(user_id)


def _own_notification(user_id: int, notification_id: int) -> Notification:
    notification = (
        db.session.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


def mark_as_read(user_id: int, notification_id: int) -> Notification:
    notification = _own_notification(user_id, notification_id)
    notification.is_read = True
    db.session.commit()
    return notification


def mark_all_as_read(user_id: int) -> int:
    count = (
        db.session.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({"is_read": True}, synchronize_session=False)
    )
    db.session.commit()
    return count


def delete_notification(user_id: int, notification_id: int) -> None:
    notification = _own_notification(user_id, notification_id)
    db.session.delete(notification)
    db.session.commit()


# =============================================================================
# AUDIT LOG (read-only)
# =============================================================================

def list_audit_logs(criteria: ListCriteria) -> tuple[list[AuditLog], int]:
    """Newest first. q matches entity, action or the acting user's name."""
    query = db.session.query(AuditLog).outerjoin(User, AuditLog.user_id == User.id)

    search = search_filter(criteria.q, AuditLog.entity, AuditLog.action, User.name)
    if search is not None:
        query = query.filter(search)
    if criteria.get("entity"):
        query = query.filter(AuditLog.entity == criteria.get("entity"))
    if criteria.get("action"):
        query = query.filter(AuditLog.action == criteria.get("action"))
    if criteria.get("user_id"):
        query = query.filter(AuditLog.user_id == criteria.get("user_id"))
    query = apply_date_range(query, AuditLog.created_at, criteria)

    return paginate(query, criteria, AuditLog.created_at.desc(), AuditLog.id.desc())


def audit_filter_options() -> dict:
    """Distinct entity and action values, for filter dropdowns."""
    entities = db.session.query(AuditLog.entity).distinct().order_by(AuditLog.entity.asc()).all()
    actions = db.session.query(AuditLog.action).distinct().order_by(AuditLog.action.asc()).all()
    return {
        "entities": [row[0] for row in entities],
        "actions": [row[0] for row in actions],
    }
