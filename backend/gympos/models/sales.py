from __future__ import annotations

from ..extensions import db
from gympos.money import money_json
from gympos.time_utils import to_utc_z


PAYMENT_METHODS = ("cash", "card")


class Sale(db.Model):
    """
    Point-of-sale header.

    ATOMIC: a Sale, its SaleItem rows and the matching `sale` ledger entries
    are written in one DB transaction by sales_service.record_sale().
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_branch_created", "branch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    tax = db.Column(db.Numeric(10, 2), nullable=False)
    discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    payment_method = db.Column(
        db.Enum(*PAYMENT_METHODS, name="sale_payment_method", native_enum=False),
        nullable=False,
    )

    customer_id = db.Column(db.Integer, nullable=True)
    customer_name = db.Column(db.String(100), nullable=True)
    customer_email = db.Column(db.String(100), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    creator = db.relationship("User", foreign_keys=[created_by])
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "subtotal": money_json(self.subtotal),
            "tax": money_json(self.tax),
            "discount": money_json(self.discount),
            "total": money_json(self.total),
            "payment_method": self.payment_method,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "created_by": self.created_by,
            "created_by_name": self.creator.name if self.creator else None,
            "branch_id": self.branch_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class SaleItem(db.Model):
    """Sale line; 1:1 with a `sale` InventoryTransaction."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)

    # RESTRICT: items with recorded sales cannot be deleted
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    inventory_transaction_id = db.Column(db.Integer, db.ForeignKey("inventory_transactions.id"), nullable=True)

    sale = db.relationship("Sale", back_populates="items")
    item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_id": self.item_id,
            "name": self.item.name if self.item else None,
            "sku": self.item.sku if self.item else None,
            "barcode": self.item.barcode if self.item else None,
            "quantity": self.quantity,
            "price": money_json(self.price),
            "total": money_json(self.total),
            "inventory_transaction_id": self.inventory_transaction_id,
        }
