from __future__ import annotations

from ..extensions import db
from phoneshop.money import to_money
from phoneshop.time_utils import to_utc_z


PAYMENT_METHODS = ("CASH", "BANK_TRANSFER", "KPAY", "WAVE_PAY", "INSTALLMENT", "OTHER")
SALE_STATUSES = ("COMPLETED", "VOIDED", "REFUNDED")
INSTALLMENT_STATUSES = ("ACTIVE", "COMPLETED")


class Sale(db.Model):
    """
    Completed counter sale with its invoice number.

    WHY: A sale is recorded once, already COMPLETED. Corrections happen by
    voiding or refunding the whole document, which restores stock and IMEIs.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "INV-20240501-0001")
    invoice_no = db.Column(db.String(32), nullable=False, unique=True, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    change_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, default="CASH")
    status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    user = db.relationship("User", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_no": self.invoice_no,
            "customer_id": self.customer_id,
            "customer": self.customer.to_summary() if self.customer else None,
            "user_id": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "subtotal": to_money(self.subtotal),
            "discount": to_money(self.discount),
            "tax": to_money(self.tax),
            "total_amount": to_money(self.total_amount),
            "paid_amount": to_money(self.paid_amount),
            "change_amount": to_money(self.change_amount),
            "payment_method": self.payment_method,
            "status": self.status,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Sale line: product, quantity and unit price, optionally one IMEI."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    imei_id = db.Column(db.Integer, db.ForeignKey("imeis.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")
    imei = db.relationship("IMEI")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product": self.product.to_summary() if self.product else None,
            "imei_id": self.imei_id,
            "imei": self.imei.to_summary() if self.imei else None,
            "quantity": self.quantity,
            "unit_price": to_money(self.unit_price),
            "discount": to_money(self.discount),
        }


class Installment(db.Model):
    """
    Installment plan financing one sale.

    INVARIANTS:
    - exactly one plan per sale (unique sale_id)
    - remaining is never negative
    - status becomes COMPLETED exactly when remaining reaches 0 and never reverts
    - plans are never deleted; payments are append-only
    """
    __tablename__ = "installments"
    __table_args__ = (
        db.UniqueConstraint("sale_id", name="uq_installments_sale"),
        db.CheckConstraint("remaining >= 0", name="ck_installments_remaining_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    down_payment = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    remaining = db.Column(db.Numeric(12, 2), nullable=False)
    monthly_amount = db.Column(db.Numeric(12, 2), nullable=False)
    total_months = db.Column(db.Integer, nullable=False)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    status = db.Column(db.String(16), nullable=False, default="ACTIVE", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("installment", uselist=False, lazy=True))
    customer = db.relationship("Customer", backref=db.backref("installments", lazy=True))
    payments = db.relationship(
        "InstallmentPayment",
        back_populates="installment",
        order_by="InstallmentPayment.id.desc()",
    )

    def to_dict(self, include_detail: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "customer": self.customer.to_summary() if self.customer else None,
            "total_amount": to_money(self.total_amount),
            "down_payment": to_money(self.down_payment),
            "remaining": to_money(self.remaining),
            "monthly_amount": to_money(self.monthly_amount),
            "total_months": self.total_months,
            "start_date": to_utc_z(self.start_date),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_detail:
            data["customer"] = self.customer.to_dict() if self.customer else None
            data["sale"] = self.sale.to_dict() if self.sale else None
            data["payments"] = [p.to_dict() for p in self.payments]
        else:
            data["sale"] = {"id": self.sale.id, "invoice_no": self.sale.invoice_no} if self.sale else None
        return data


class InstallmentPayment(db.Model):
    """
    Immutable payment entry against an installment plan.

    WHY: Append-only. Corrections are not supported; the balance on the plan
    is always derivable from total - down payment - sum(payments), clamped at 0.
    """
    __tablename__ = "installment_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_installment_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    installment_id = db.Column(db.Integer, db.ForeignKey("installments.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    note = db.Column(db.Text, nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    installment = db.relationship("Installment", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "installment_id": self.installment_id,
            "amount": to_money(self.amount),
            "note": self.note,
            "paid_at": to_utc_z(self.paid_at),
        }
