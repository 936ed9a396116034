from __future__ import annotations

from ..extensions import db
from phoneshop.money import to_money
from phoneshop.time_utils import to_utc_z


TRADE_IN_STATUSES = ("PENDING", "ACCEPTED", "REJECTED", "RESOLD")
REPAIR_STATUSES = (
    "RECEIVED",
    "DIAGNOSING",
    "WAITING_PARTS",
    "REPAIRING",
    "COMPLETED",
    "DELIVERED",
    "CANCELLED",
)
WARRANTY_TYPES = ("MANUFACTURER", "SHOP", "EXTENDED")
WARRANTY_STATUSES = ("ACTIVE", "EXPIRED", "CLAIMED", "VOIDED")


class TradeIn(db.Model):
    """
    Used device offered by a customer in exchange for credit.

    WHY: Accepting a trade-in that references a known IMEI moves that IMEI to
    TRADED_IN in the same transaction. REJECTED and RESOLD never touch it.
    """
    __tablename__ = "trade_ins"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    imei_id = db.Column(db.Integer, db.ForeignKey("imeis.id"), nullable=True, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    device_name = db.Column(db.String(100), nullable=False)
    condition = db.Column(db.String(100), nullable=False)
    offered_price = db.Column(db.Numeric(12, 2), nullable=False)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("trade_ins", lazy=True))
    imei = db.relationship("IMEI", backref=db.backref("trade_ins", lazy=True))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer": self.customer.to_summary() if self.customer else None,
            "imei_id": self.imei_id,
            "imei": self.imei.to_summary() if self.imei else None,
            "product_id": self.product_id,
            "product": {"id": self.product.id, "name": self.product.name} if self.product else None,
            "device_name": self.device_name,
            "condition": self.condition,
            "offered_price": to_money(self.offered_price),
            "note": self.note,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class RepairOrder(db.Model):
    """
    Repair job ticket.

    ticket_no format: RPR-YYYYMMDD-NNNN (UTC date, counter reset daily).
    Allocated through DocumentSequence; the unique constraint is the backstop.
    """
    __tablename__ = "repair_orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    ticket_no = db.Column(db.String(32), nullable=False, unique=True, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    imei_id = db.Column(db.Integer, db.ForeignKey("imeis.id"), nullable=True, index=True)

    device_info = db.Column(db.String(255), nullable=False)
    issue = db.Column(db.Text, nullable=False)
    diagnosis = db.Column(db.Text, nullable=True)
    repair_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="RECEIVED", index=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("repair_orders", lazy=True))
    imei = db.relationship("IMEI")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_no": self.ticket_no,
            "customer_id": self.customer_id,
            "customer": self.customer.to_summary() if self.customer else None,
            "imei_id": self.imei_id,
            "imei": self.imei.to_summary() if self.imei else None,
            "device_info": self.device_info,
            "issue": self.issue,
            "diagnosis": self.diagnosis,
            "repair_cost": to_money(self.repair_cost),
            "status": self.status,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Warranty(db.Model):
    """
    Warranty coverage for a product (optionally a specific IMEI / customer).

    Status is admin-settable; there is no automatic expiry sweep.
    """
    __tablename__ = "warranties"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    imei_id = db.Column(db.Integer, db.ForeignKey("imeis.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    type = db.Column(db.String(16), nullable=False)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="ACTIVE", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    product = db.relationship("Product")
    imei = db.relationship("IMEI")
    customer = db.relationship("Customer", backref=db.backref("warranties", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": {"id": self.product.id, "name": self.product.name, "brand": self.product.brand} if self.product else None,
            "imei_id": self.imei_id,
            "imei": self.imei.to_summary() if self.imei else None,
            "customer_id": self.customer_id,
            "customer": self.customer.to_summary() if self.customer else None,
            "type": self.type,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "note": self.note,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
