from __future__ import annotations

from ..extensions import db
from phoneshop.money import to_money
from phoneshop.time_utils import to_utc_z


IMEI_STATUSES = ("IN_STOCK", "SOLD", "RESERVED", "DEFECTIVE", "TRADED_IN", "TRANSFERRED")


class Category(db.Model):
    """Product category (e.g., Smartphones, Accessories)."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable catalog item.

    `stock` is the on-hand unit count. It is incremented when a purchase is
    received and decremented by sales; void/refund restore it.

    WHY is_deleted: products referenced by sales or purchases keep their
    history rows, so deleting them only hides them from the catalog.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False, index=True)
    brand = db.Column(db.String(50), nullable=False)
    model = db.Column(db.String(50), nullable=False)

    price = db.Column(db.Numeric(12, 2), nullable=False)
    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    barcode = db.Column(db.String(30), nullable=False, unique=True, index=True)
    stock = db.Column(db.Integer, nullable=False, default=0)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "brand": self.brand, "barcode": self.barcode}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "model": self.model,
            "price": to_money(self.price),
            "cost_price": to_money(self.cost_price),
            "barcode": self.barcode,
            "stock": self.stock,
            "category_id": self.category_id,
            "category": self.category.to_dict() if self.category else None,
            "is_deleted": self.is_deleted,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class IMEI(db.Model):
    """
    A single serialized handset, identified by its IMEI string.

    Status has no enforced transition table: sales mark SOLD, void/refund
    restore IN_STOCK, trade-in acceptance marks TRADED_IN, and admins may set
    any status directly. Deletion is blocked once SOLD.
    """
    __tablename__ = "imeis"
    __table_args__ = (
        db.Index("ix_imeis_product_status", "product_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    imei = db.Column(db.String(20), nullable=False, unique=True, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="IN_STOCK", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    product = db.relationship("Product", backref=db.backref("imeis", lazy=True))

    def to_summary(self) -> dict:
        return {"id": self.id, "imei": self.imei}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "imei": self.imei,
            "product_id": self.product_id,
            "product": self.product.to_summary() if self.product else None,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
