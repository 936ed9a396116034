# Overview: Flask API routes for reports and the dashboard; parses input and returns JSON responses.

"""
Reporting Routes

SECURITY: Any signed-in user may read the dashboard and the sales, expense
and inventory reports; profit & loss is ADMIN-only.

Query parameters for ranged reports: from, to (ISO dates; to is inclusive).
"""

from flask import Blueprint, jsonify, request

from ..decorators import SERVICE_ERRORS, error_response, require_admin, require_auth
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/reports")
dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")


@dashboard_bp.get("/stats")
@require_auth
def dashboard_stats_route():
    return jsonify(reporting_service.dashboard_stats())


@reports_bp.get("/sales")
@require_auth
def sales_report_route():
    """Also accepts groupBy=day|month (default day)."""
    try:
        report = reporting_service.sales_report(
            start=request.args.get("from"),
            end=request.args.get("to"),
            group_by=request.args.get("groupBy", "day"),
        )
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(report)


@reports_bp.get("/expenses")
@require_auth
def expense_report_route():
    try:
        report = reporting_service.expense_report(start=request.args.get("from"), end=request.args.get("to"))
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(report)


@reports_bp.get("/profit-loss")
@require_auth
@require_admin
def profit_loss_report_route():
    try:
        report = reporting_service.profit_loss_report(start=request.args.get("from"), end=request.args.get("to"))
    except SERVICE_ERRORS as e:
        return error_response(e)
    return jsonify(report)


@reports_bp.get("/inventory")
@require_auth
def inventory_report_route():
    return jsonify(reporting_service.inventory_report())
