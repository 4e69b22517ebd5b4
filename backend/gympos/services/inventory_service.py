# Overview: Service-layer operations for inventory items and ledger reads.

from __future__ import annotations

import time
from decimal import Decimal

from sqlalchemy import or_

from ..extensions import db
from ..models import InventoryItem, InventoryTransaction, SaleItem
from ..validation import ConflictError
from .concurrency import begin_write, lock_for_update, run_with_retry
from .stock_ledger_service import NotFoundError, apply_beginning_balance


def _visible_to(query, branch_id: int | None):
    if branch_id is None:
        return query
    return query.filter(or_(InventoryItem.branch_id == branch_id, InventoryItem.branch_id.is_(None)))


def _default_sku() -> str:
    return f"ITEM-{int(time.time() * 1000)}"


def _ensure_sku_free(sku: str, exclude_item_id: int | None = None) -> None:
    q = db.session.query(InventoryItem.id).filter(InventoryItem.sku == sku)
    if exclude_item_id is not None:
        q = q.filter(InventoryItem.id != exclude_item_id)
    if q.first() is not None:
        if exclude_item_id is None:
            raise ConflictError("Item with this SKU already exists")
        raise ConflictError("Another item with this SKU already exists")


def get_item(item_id: int, branch_id: int | None = None) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None or not item.is_visible_to(branch_id):
        raise NotFoundError(item_id)
    return item


def list_items(branch_id: int | None = None) -> list[InventoryItem]:
    q = _visible_to(db.session.query(InventoryItem), branch_id)
    return q.order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).all()


def create_item(
    *,
    name: str,
    price: Decimal,
    cost: Decimal,
    sku: str | None = None,
    quantity: int = 0,
    description: str | None = None,
    barcode: str | None = None,
    category: str | None = None,
    image_src: str | None = None,
    branch_id: int | None = None,
    actor_user_id: int | None = None,
) -> InventoryItem:
    """
    Create an item.

    The item always starts at quantity 0. A positive starting quantity is
    posted as a `beginning` ledger entry in the same commit, so the cache and
    the ledger agree from the first row.
    """
    item_sku = sku or _default_sku()

    def _op():
        begin_write()
        _ensure_sku_free(item_sku)

        item = InventoryItem(
            name=name,
            description=description,
            sku=item_sku,
            barcode=barcode,
            quantity=0,
            price=price,
            cost=cost,
            category=category,
            image_src=image_src,
            branch_id=branch_id,
        )
        db.session.add(item)
        db.session.flush()

        if quantity and quantity > 0:
            apply_beginning_balance(
                item,
                quantity,
                actor_user_id=actor_user_id,
                branch_id=branch_id,
            )

        db.session.commit()
        return item

    return run_with_retry(_op)


def update_item(
    item_id: int,
    *,
    branch_id: int | None = None,
    name: str | None = None,
    sku: str | None = None,
    price: Decimal | None = None,
    cost: Decimal | None = None,
    description: str | None = None,
    barcode: str | None = None,
    category: str | None = None,
    image_src: str | None = None,
) -> InventoryItem:
    """Edit item master data. Quantity is never touched here; use the ledger."""
    def _op():
        item = lock_for_update(db.session.query(InventoryItem).filter_by(id=item_id)).first()
        if item is None or not item.is_visible_to(branch_id):
            raise NotFoundError(item_id)

        if sku is not None and sku != item.sku:
            _ensure_sku_free(sku, exclude_item_id=item.id)
            item.sku = sku

        if name is not None:
            item.name = name
        if price is not None:
            item.price = price
        if cost is not None:
            item.cost = cost
        if description is not None:
            item.description = description
        if barcode is not None:
            item.barcode = barcode
        if category is not None:
            item.category = category
        if image_src is not None:
            item.image_src = image_src

        db.session.commit()
        return item

    return run_with_retry(_op)


def delete_item(item_id: int, branch_id: int | None = None) -> None:
    """
    Delete an item and, by cascade, its ledger entries.

    Items referenced by sale lines are kept so sales history stays intact.
    """
    def _op():
        begin_write()
        item = lock_for_update(db.session.query(InventoryItem).filter_by(id=item_id)).first()
        if item is None or not item.is_visible_to(branch_id):
            raise NotFoundError(item_id)

        if db.session.query(SaleItem.id).filter_by(item_id=item_id).first() is not None:
            raise ConflictError("Item has recorded sales and cannot be deleted")

        db.session.delete(item)
        db.session.commit()

    run_with_retry(_op)


def list_transactions(branch_id: int | None = None, limit: int = 100) -> list[InventoryTransaction]:
    q = db.session.query(InventoryTransaction)
    if branch_id is not None:
        q = q.filter(or_(InventoryTransaction.branch_id == branch_id, InventoryTransaction.branch_id.is_(None)))
    return q.order_by(
        InventoryTransaction.created_at.desc(),
        InventoryTransaction.id.desc(),
    ).limit(limit).all()


def list_item_transactions(item_id: int, branch_id: int | None = None) -> list[InventoryTransaction]:
    get_item(item_id, branch_id=branch_id)
    return db.session.query(InventoryTransaction).filter_by(item_id=item_id).order_by(
        InventoryTransaction.created_at.desc(),
        InventoryTransaction.id.desc(),
    ).all()
