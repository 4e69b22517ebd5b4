from __future__ import annotations

from ..extensions import db
from gympos.money import money_json
from gympos.time_utils import to_utc_z


# Direction of each ledger entry kind. Quantities are stored as positive
# magnitudes; the sign comes from the kind.
INBOUND_KINDS = ("purchase", "adjustment_in", "beginning")
OUTBOUND_KINDS = ("sale", "adjustment_out")
TRANSACTION_KINDS = INBOUND_KINDS + OUTBOUND_KINDS
BULK_KINDS = ("purchase", "sale")


class InventoryItem(db.Model):
    """
    Item master data plus the cached on-hand quantity.

    QUANTITY CACHE:
    quantity is a derived value. It must always equal the signed sum of the
    item's InventoryTransaction rows and is written ONLY by the stock ledger
    service (gympos.services.stock_ledger_service), in the same DB
    transaction as the ledger row that moves it. update_item() never touches it.

    BRANCH SCOPE:
    branch_id NULL means the item is shared by every branch.

    CONCURRENCY:
    version_id is an optimistic lock. A stale UPDATE raises StaleDataError,
    which run_with_retry() turns into a re-read and retry.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_branch_name", "branch_id", "name"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sku = db.Column(db.String(50), nullable=False, unique=True, index=True)
    barcode = db.Column(db.String(100), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    price = db.Column(db.Numeric(10, 2), nullable=False)
    cost = db.Column(db.Numeric(10, 2), nullable=False)

    category = db.Column(db.String(50), nullable=True)
    image_src = db.Column(db.Text, nullable=True)

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    branch = db.relationship("Branch", backref=db.backref("inventory_items", lazy=True))
    transactions = db.relationship(
        "InventoryTransaction",
        back_populates="item",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} sku={self.sku!r} quantity={self.quantity}>"

    def is_visible_to(self, branch_id: int | None) -> bool:
        if branch_id is None or self.branch_id is None:
            return True
        return self.branch_id == branch_id

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description or "",
            "sku": self.sku,
            "barcode": self.barcode or "",
            "quantity": self.quantity,
            "price": money_json(self.price),
            "cost": money_json(self.cost),
            "category": self.category or "Uncategorized",
            "imageSrc": self.image_src or "",
            "branchId": str(self.branch_id) if self.branch_id is not None else None,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Append-only stock ledger entry.

    IMMUTABLE: rows are never updated. They disappear only through the
    cascade when their owning item is deleted.

    quantity is the positive magnitude; the type decides the direction
    (see INBOUND_KINDS / OUTBOUND_KINDS).
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_invtx_item_created", "item_id", "created_at"),
        db.Index("ix_invtx_branch_created", "branch_id", "created_at"),
        db.CheckConstraint("quantity > 0", name="ck_invtx_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(
        db.Integer,
        db.ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type = db.Column(
        db.Enum(*TRANSACTION_KINDS, name="inventory_transaction_type", native_enum=False),
        nullable=False,
        index=True,
    )
    quantity = db.Column(db.Integer, nullable=False)

    # Effective unit price at the time of the transaction
    price = db.Column(db.Numeric(10, 2), nullable=True)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)

    notes = db.Column(db.Text, nullable=True)
    customer_supplier = db.Column(db.String(100), nullable=True)
    payment_status = db.Column(db.String(50), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    # Set for POS sale lines
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    item = db.relationship("InventoryItem", back_populates="transactions")
    creator = db.relationship("User", foreign_keys=[created_by])

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.type in INBOUND_KINDS else -self.quantity

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "itemId": str(self.item_id),
            "itemName": self.item.name if self.item else None,
            "itemSku": self.item.sku if self.item else None,
            "type": self.type,
            "quantity": self.quantity,
            "price": money_json(self.price),
            "totalAmount": money_json(self.total_amount),
            "notes": self.notes or "",
            "customerSupplier": self.customer_supplier or "",
            "paymentStatus": self.payment_status or "",
            "createdBy": str(self.created_by) if self.created_by is not None else None,
            "createdByName": self.creator.name if self.creator else "System",
            "branchId": str(self.branch_id) if self.branch_id is not None else None,
            "saleId": str(self.sale_id) if self.sale_id is not None else None,
            "createdAt": to_utc_z(self.created_at),
        }
