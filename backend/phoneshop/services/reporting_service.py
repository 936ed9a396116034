# Overview: Service-layer operations for reporting; read-only aggregates over sales, expenses, purchases and stock.

"""
Reports & Dashboard

Each report is a bulk read of the matching rows followed by in-memory
summing and grouping. Money is summed as Decimal and serialized as float.

Date ranges: `start` is inclusive; a date-only `end` covers the whole of
that day (see time_utils.parse_date_range).
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Expense, IMEI, Product, Purchase, Sale, Supplier
from phoneshop.money import ZERO, sum_money
from phoneshop.time_utils import parse_date_range, to_utc_z, utcnow
from phoneshop.validation import ValidationError


LOW_STOCK_THRESHOLD = 5
RECENT_LIMIT = 5
GROUP_BY_CHOICES = ("day", "month")


def _range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        return parse_date_range(start, end)
    except ValueError:
        raise ValidationError("from/to must be ISO-8601 dates", field="from")


def _within(query, column, start_dt, end_dt):
    if start_dt is not None:
        query = query.filter(column >= start_dt)
    if end_dt is not None:
        query = query.filter(column <= end_dt)
    return query


def _money(value) -> float:
    return float(value or ZERO)


# =============================================================================
# SALES
# =============================================================================

def sales_report(*, start: str | None = None, end: str | None = None, group_by: str = "day") -> dict:
    """
    COMPLETED sales in range.

    summary.netRevenue = totalSales - totalDiscount. grouped is sorted by
    period key ascending (YYYY-MM-DD or YYYY-MM).
    """
    if group_by not in GROUP_BY_CHOICES:
        raise ValidationError("groupBy must be day or month", field="groupBy")
    start_dt, end_dt = _range(start, end)

    query = db.session.query(Sale).filter(Sale.status == "COMPLETED")
    sales = _within(query, Sale.created_at, start_dt, end_dt).order_by(Sale.created_at.desc()).all()

    total_sales = sum_money(s.total_amount for s in sales)
    total_discount = sum_money(s.discount for s in sales)
    total_tax = sum_money(s.tax for s in sales)

    key_format = "%Y-%m" if group_by == "month" else "%Y-%m-%d"
    grouped: dict[str, dict] = {}
    for sale in sales:
        key = sale.created_at.strftime(key_format)
        bucket = grouped.setdefault(key, {"count": 0, "revenue": ZERO})
        bucket["count"] += 1
        bucket["revenue"] += Decimal(sale.total_amount)

    return {
        "summary": {
            "totalSales": _money(total_sales),
            "totalDiscount": _money(total_discount),
            "totalTax": _money(total_tax),
            "netRevenue": _money(total_sales - total_discount),
            "count": len(sales),
        },
        "grouped": [
            {"date": key, "count": val["count"], "revenue": _money(val["revenue"])}
            for key, val in sorted(grouped.items())
        ],
        "sales": [s.to_dict() for s in sales],
    }


# =============================================================================
# EXPENSES
# =============================================================================

def expense_report(*, start: str | None = None, end: str | None = None) -> dict:
    """Totals plus per-category sums (largest first; "Uncategorized" for none)."""
    start_dt, end_dt = _range(start, end)
    expenses = (
        _within(db.session.query(Expense), Expense.date, start_dt, end_dt)
        .order_by(Expense.date.desc())
        .all()
    )

    by_category: dict[str, Decimal] = OrderedDict()
    for expense in expenses:
        name = expense.category.name if expense.category else "Uncategorized"
        by_category[name] = by_category.get(name, ZERO) + Decimal(expense.amount)

    return {
        "summary": {
            "totalExpense": _money(sum_money(e.amount for e in expenses)),
            "count": len(expenses),
        },
        "byCategory": [
            {"category": name, "amount": _money(amount)}
            for name, amount in sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)
        ],
        "expenses": [e.to_dict() for e in expenses],
    }


# =============================================================================
# PROFIT & LOSS
# =============================================================================

def profit_loss_report(*, start: str | None = None, end: str | None = None) -> dict:
    """
    revenue.net   = completed sales total - discounts
    costs.cogs    = total of RECEIVED purchases
    profit.gross  = revenue.net - costs.cogs
    profit.net    = profit.gross - expenses
    """
    start_dt, end_dt = _range(start, end)

    sales = _within(
        db.session.query(Sale.total_amount, Sale.discount, Sale.tax).filter(Sale.status == "COMPLETED"),
        Sale.created_at, start_dt, end_dt,
    ).all()
    purchases = _within(
        db.session.query(Purchase.total_amount).filter(Purchase.status == "RECEIVED"),
        Purchase.created_at, start_dt, end_dt,
    ).all()
    expenses = _within(db.session.query(Expense.amount), Expense.date, start_dt, end_dt).all()

    total_revenue = sum_money(row.total_amount for row in sales)
    total_discount = sum_money(row.discount for row in sales)
    total_tax = sum_money(row.tax for row in sales)
    net_revenue = total_revenue - total_discount
    cogs = sum_money(row.total_amount for row in purchases)
    total_expense = sum_money(row.amount for row in expenses)
    gross_profit = net_revenue - cogs

    return {
        "revenue": {
            "total": _money(total_revenue),
            "discount": _money(total_discount),
            "tax": _money(total_tax),
            "net": _money(net_revenue),
            "salesCount": len(sales),
        },
        "costs": {"cogs": _money(cogs), "purchaseCount": len(purchases)},
        "expenses": {"total": _money(total_expense), "expenseCount": len(expenses)},
        "profit": {"gross": _money(gross_profit), "net": _money(gross_profit - total_expense)},
    }


# =============================================================================
# INVENTORY
# =============================================================================

def inventory_report() -> dict:
    """Stock and valuation (stock x cost price) for catalog products."""
    products = (
        db.session.query(Product)
        .filter(Product.is_deleted.is_(False))
        .order_by(Product.name.asc())
        .all()
    )

    imei_counts = dict(
        db.session.query(IMEI.product_id, func.count(IMEI.id)).group_by(IMEI.product_id).all()
    )
    status_rows = db.session.query(IMEI.status, func.count(IMEI.id)).group_by(IMEI.status).all()

    total_stock = sum(p.stock for p in products)
    total_value = sum((Decimal(p.cost_price or 0) * p.stock for p in products), ZERO)
    low_stock = [p for p in products if 0 < p.stock <= LOW_STOCK_THRESHOLD]

    return {
        "summary": {
            "totalProducts": len(products),
            "totalStock": total_stock,
            "totalValue": _money(total_value),
            "lowStockCount": len(low_stock),
        },
        "imeiStatusBreakdown": [{"status": status, "count": count} for status, count in status_rows],
        "lowStock": [
            {"id": p.id, "name": p.name, "stock": p.stock, "category": p.category.name if p.category else None}
            for p in low_stock
        ],
        "products": [
            {
                "id": p.id,
                "name": p.name,
                "stock": p.stock,
                "costPrice": _money(p.cost_price),
                "salePrice": _money(p.price),
                "value": _money(Decimal(p.cost_price or 0) * p.stock),
                "category": p.category.name if p.category else None,
                "imeiCount": int(imei_counts.get(p.id, 0)),
            }
            for p in products
        ],
    }


# =============================================================================
# DASHBOARD
# =============================================================================

def dashboard_stats(now: datetime | None = None) -> dict:
    """Headline counts, this month's and today's takings, and recent activity (UTC days)."""
    now = now or utcnow()
    start_of_day = datetime(now.year, now.month, now.day)
    start_of_month = datetime(now.year, now.month, 1)

    def _sales_since(since: datetime) -> tuple[Decimal, int]:
        total, count = (
            db.session.query(func.sum(Sale.total_amount), func.count(Sale.id))
            .filter(Sale.status == "COMPLETED", Sale.created_at >= since)
            .one()
        )
        return sum_money([total]), int(count or 0)

    month_sales, month_sales_count = _sales_since(start_of_month)
    today_sales, today_sales_count = _sales_since(start_of_day)

    month_expense, month_expense_count = (
        db.session.query(func.sum(Expense.amount), func.count(Expense.id))
        .filter(Expense.date >= start_of_month)
        .one()
    )
    month_expense = sum_money([month_expense])

    active_products = db.session.query(Product.id).filter(Product.is_deleted.is_(False))

    recent_sales = db.session.query(Sale).order_by(Sale.created_at.desc(), Sale.id.desc()).limit(RECENT_LIMIT).all()
    recent_expenses = (
        db.session.query(Expense).order_by(Expense.date.desc(), Expense.id.desc()).limit(RECENT_LIMIT).all()
    )

    return {
        "overview": {
            "totalProducts": active_products.count(),
            "totalCustomers": db.session.query(Customer.id).filter(Customer.is_deleted.is_(False)).count(),
            "totalSuppliers": db.session.query(Supplier.id).filter(Supplier.is_deleted.is_(False)).count(),
            "lowStockProducts": active_products.filter(Product.stock <= LOW_STOCK_THRESHOLD).count(),
            "pendingPurchases": db.session.query(Purchase.id).filter(Purchase.status == "PENDING").count(),
            "totalSalesCount": db.session.query(Sale.id).filter(Sale.status == "COMPLETED").count(),
        },
        "monthly": {
            "salesAmount": _money(month_sales),
            "salesCount": month_sales_count,
            "expenseAmount": _money(month_expense),
            "expenseCount": int(month_expense_count or 0),
            "profit": _money(month_sales - month_expense),
        },
        "today": {
            "salesAmount": _money(today_sales),
            "salesCount": today_sales_count,
        },
        "recentSales": [s.to_dict(include_items=False) for s in recent_sales],
        "recentExpenses": [e.to_dict() for e in recent_expenses],
        "generated_at": to_utc_z(now),
    }
