# Overview: Flask API routes for the notification inbox and audit log; parses input and returns JSON responses.

"""
Notification & Audit Routes

SECURITY:
- Notifications are always scoped to the signed-in user; another user's
  notification is reported as not found.
- The audit log is ADMIN-only and read-only.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import SERVICE_ERRORS, error_response, require_admin, require_auth
from ..services import communications_service
from ..services.query_utils import page_envelope
from phoneshop.validation import parse_list_criteria


notifications_bp = Blueprint("notifications", __name__, url_prefix="/notifications")
audit_logs_bp = Blueprint("audit_logs", __name__, url_prefix="/audit-logs")


# =============================================================================
# NOTIFICATIONS
# =============================================================================

@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """
    Query parameters: unread_only (true/false), page, limit.

    Returns:
        {data, total, page, limit, totalPages, unreadCount}
    """
    user_id = g.current_user.id
    try:
        criteria = parse_list_criteria(
            request.args,
            filters=communications_service.NOTIFICATION_FILTERS,
            default_limit=20,
        )
        notifications, total, unread = communications_service.list_notifications(user_id, criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(notifications, total, criteria, unreadCount=unread))


@notifications_bp.get("/unread-count")
@require_auth
def unread_count_route():
    return jsonify({"count": communications_service.unread_count(g.current_user.id)})


@notifications_bp.route("/<int:notification_id>/read", methods=["PUT", "PATCH"])
@require_auth
def mark_read_route(notification_id: int):
    try:
        notification = communications_service.mark_as_read(g.current_user.id, notification_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(notification.to_dict())


@notifications_bp.route("/read-all", methods=["PUT", "PATCH"])
@require_auth
def mark_all_read_route():
    count = communications_service.mark_all_as_read(g.current_user.id)
    return jsonify({"message": "All notifications marked as read", "count": count})


@notifications_bp.delete("/<int:notification_id>")
@require_auth
def delete_notification_route(notification_id: int):
    try:
        communications_service.delete_notification(g.current_user.id, notification_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Notification deleted"})


# =============================================================================
# AUDIT LOG
# =============================================================================

@audit_logs_bp.get("")
@require_auth
@require_admin
def list_audit_logs_route():
    """Query parameters: q, entity, action, user_id, from, to, page, limit."""
    try:
        criteria = parse_list_criteria(
            request.args,
            filters=communications_service.AUDIT_FILTERS,
            date_range=True,
            default_limit=20,
        )
        logs, total = communications_service.list_audit_logs(criteria)
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(page_envelope(logs, total, criteria))


@audit_logs_bp.get("/filters")
@require_auth
@require_admin
def audit_filter_options_route():
    return jsonify(communications_service.audit_filter_options())
