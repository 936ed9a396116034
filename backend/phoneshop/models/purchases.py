from __future__ import annotations

from ..extensions import db
from phoneshop.money import to_money
from phoneshop.time_utils import to_utc_z


PURCHASE_STATUSES = ("PENDING", "RECEIVED", "CANCELLED")


class Purchase(db.Model):
    """
    Stock purchase from a supplier.

    LIFECYCLE: PENDING -> RECEIVED (stock incremented once) or CANCELLED.

    total_amount is stored net: items/gross total - reduce_amount + sum of
    additional_expenses (a JSON list of {label, amount}, e.g. shipping).
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    reduce_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    credit_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, default="CASH")
    additional_expenses = db.Column(db.JSON, nullable=False, default=list)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    items = db.relationship(
        "PurchaseItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier": self.supplier.to_summary() if self.supplier else None,
            "total_amount": to_money(self.total_amount),
            "reduce_amount": to_money(self.reduce_amount),
            "paid_amount": to_money(self.paid_amount),
            "credit_amount": to_money(self.credit_amount),
            "payment_method": self.payment_method,
            "additional_expenses": self.additional_expenses or [],
            "note": self.note,
            "status": self.status,
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseItem(db.Model):
    """Purchase line: product, quantity and unit cost."""
    __tablename__ = "purchase_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    imei_id = db.Column(db.Integer, db.ForeignKey("imeis.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False)

    purchase = db.relationship("Purchase", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "product": self.product.to_summary() if self.product else None,
            "imei_id": self.imei_id,
            "quantity": self.quantity,
            "unit_cost": to_money(self.unit_cost),
        }
