# Overview: Stock ledger; the only writer of inventory quantities and ledger rows.

"""
Stock Ledger Invariants (authoritative)

Ledger model:
- InventoryTransaction rows are append-only. quantity is a positive
  magnitude; purchase/adjustment_in/beginning add, sale/adjustment_out subtract.
- InventoryItem.quantity is a cache of the signed ledger sum and is written
  only here, in the same DB transaction as the ledger row that moves it.

Business invariants:
- quantity >= 0 after every committed operation.
- Multi-line operations (bulk, POS sale) are all-or-nothing: every line is
  checked against locked rows before the first write, and any failure rolls
  the whole unit back.

Price rule (one rule for every path):
- caller price if given, else item.price for `sale`, else item.cost.
- total_amount = price * quantity, rounded half-up to cents.

Serialization:
- Item rows are locked in ascending id order (FOR UPDATE; BEGIN IMMEDIATE on
  SQLite) so concurrent writers on the same item are linearized and bulk
  writers cannot deadlock each other.
- InventoryItem.version_id catches any stale write that slips through;
  StaleDataError/OperationalError are retried, domain errors never are.

Branch scope:
- branch_id=None callers see every item. Scoped callers see items of their
  branch plus global items (branch_id NULL). Anything else is NotFound.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from flask import current_app
from sqlalchemy import case, func, or_
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import InventoryItem, InventoryTransaction
from ..models.inventory import BULK_KINDS, INBOUND_KINDS, TRANSACTION_KINDS
from ..money import line_total, quantize_money
from ..validation import ValidationError, coerce_id, parse_money, require_positive_int
from .concurrency import begin_write, lock_for_update, run_with_retry


class StockLedgerError(Exception):
    """Base class for ledger failures reported to the caller."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(StockLedgerError):
    """Referenced item does not exist (or is outside the caller's branch)."""

    def __init__(self, item_id: int):
        super().__init__(f"Item with ID {item_id} not found", details={"itemId": str(item_id)})
        self.item_id = item_id


class InsufficientStockError(StockLedgerError):
    """Deduction would drive an item's quantity below zero."""

    def __init__(self, item: InventoryItem, requested: int, available: int):
        super().__init__(
            f"Insufficient quantity available for {item.name}",
            details={
                "itemId": str(item.id),
                "requested": requested,
                "available": available,
            },
        )
        self.item_id = item.id
        self.requested = requested
        self.available = available


class StoreError(StockLedgerError):
    """Underlying data-store failure; the unit of work was rolled back."""


@dataclass(frozen=True)
class LedgerLine:
    item_id: int
    quantity: int
    price: Decimal | None = None


def direction(kind: str) -> int:
    return 1 if kind in INBOUND_KINDS else -1


def effective_price(item: InventoryItem, kind: str, price: Decimal | None) -> Decimal:
    if price is not None:
        return quantize_money(price)
    if kind == "sale":
        return quantize_money(item.price)
    return quantize_money(item.cost)


def _validate_kind(kind, allowed: Iterable[str]) -> str:
    if kind not in allowed:
        raise ValidationError(f"type must be one of: {', '.join(allowed)}")
    return kind


def build_lines(raw_items) -> list[LedgerLine]:
    """
    Normalize [{itemId, quantity, price?}] into LedgerLines.

    Accepts itemId/item_id/id so the POS payload shape works too.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        raw_id = raw.get("itemId", raw.get("item_id", raw.get("id")))
        lines.append(LedgerLine(
            item_id=coerce_id(raw_id, f"items[{index}].itemId"),
            quantity=require_positive_int(raw.get("quantity"), f"items[{index}].quantity"),
            price=parse_money(raw.get("price"), f"items[{index}].price"),
        ))
    return lines


def check_lines(lines: list[LedgerLine]) -> list[LedgerLine]:
    """Re-validate prebuilt LedgerLines the same way build_lines validates payloads."""
    return [
        LedgerLine(
            item_id=line.item_id,
            quantity=require_positive_int(line.quantity, f"items[{index}].quantity"),
            price=parse_money(line.price, f"items[{index}].price"),
        )
        for index, line in enumerate(lines)
    ]


def coerce_lines(items) -> list[LedgerLine]:
    """Accept either prebuilt LedgerLines or raw item dicts."""
    if isinstance(items, list) and items and all(isinstance(i, LedgerLine) for i in items):
        return check_lines(items)
    return build_lines(items)


def lock_items(item_ids: Iterable[int], branch_id: int | None = None) -> dict[int, InventoryItem]:
    """
    Lock every referenced item row and return them by id.

    Raises NotFoundError for the first requested id (in request order) that
    is missing or outside the caller's branch scope.
    """
    requested = list(item_ids)
    ordered = sorted(set(requested))
    query = db.session.query(InventoryItem).filter(InventoryItem.id.in_(ordered)).order_by(InventoryItem.id.asc())
    items = {item.id: item for item in lock_for_update(query).all()}

    for item_id in requested:
        item = items.get(item_id)
        if item is None or not item.is_visible_to(branch_id):
            raise NotFoundError(item_id)
    return items


def plan_lines(kind: str, lines: list[LedgerLine], items: dict[int, InventoryItem]) -> list[tuple[LedgerLine, InventoryItem, int]]:
    """
    Compute the new quantity for every line without writing anything.

    Lines against the same item accumulate, so [-6, -6] against 10 fails on
    the second line. Raises InsufficientStockError naming the first line
    that would go negative.
    """
    running: dict[int, int] = {}
    plan = []
    sign = direction(kind)
    for line in lines:
        item = items[line.item_id]
        current = running.get(item.id, item.quantity)
        new_quantity = current + sign * line.quantity
        if new_quantity < 0:
            raise InsufficientStockError(item, requested=line.quantity, available=current)
        running[item.id] = new_quantity
        plan.append((line, item, new_quantity))
    return plan


def _append_entry(
    *,
    item: InventoryItem,
    kind: str,
    quantity: int,
    new_quantity: int,
    price: Decimal | None,
    notes: str | None,
    customer_supplier: str | None,
    payment_status: str | None,
    actor_user_id: int | None,
    branch_id: int | None,
    sale_id: int | None = None,
) -> InventoryTransaction:
    unit_price = effective_price(item, kind, price)
    tx = InventoryTransaction(
        item_id=item.id,
        type=kind,
        quantity=quantity,
        price=unit_price,
        total_amount=line_total(unit_price, quantity),
        notes=notes,
        customer_supplier=customer_supplier,
        payment_status=payment_status,
        created_by=actor_user_id,
        branch_id=branch_id,
        sale_id=sale_id,
    )
    db.session.add(tx)
    item.quantity = new_quantity
    return tx


def post_lines(
    *,
    kind: str,
    lines: list[LedgerLine],
    notes: str | None = None,
    customer_supplier: str | None = None,
    payment_status: str | None = None,
    actor_user_id: int | None = None,
    branch_id: int | None = None,
    sale_id: int | None = None,
) -> list[InventoryTransaction]:
    """
    Lock, check and append ledger entries for a set of lines.

    Core logic without retry or commit; callers own the unit of work.
    Nothing is added to the session until every line has passed.
    """
    items = lock_items((line.item_id for line in lines), branch_id=branch_id)
    plan = plan_lines(kind, lines, items)

    created = [
        _append_entry(
            item=item,
            kind=kind,
            quantity=line.quantity,
            new_quantity=new_quantity,
            price=line.price,
            notes=notes,
            customer_supplier=customer_supplier,
            payment_status=payment_status,
            actor_user_id=actor_user_id,
            branch_id=branch_id,
            sale_id=sale_id,
        )
        for line, item, new_quantity in plan
    ]
    db.session.flush()
    return created


def apply_beginning_balance(
    item: InventoryItem,
    quantity: int,
    *,
    actor_user_id: int | None = None,
    branch_id: int | None = None,
    notes: str = "Initial inventory",
) -> InventoryTransaction:
    """
    Seed a freshly created item with a `beginning` entry priced at cost.

    Called inside the item-creating unit of work; does not commit.
    """
    tx = _append_entry(
        item=item,
        kind="beginning",
        quantity=quantity,
        new_quantity=item.quantity + quantity,
        price=None,
        notes=notes,
        customer_supplier=None,
        payment_status=None,
        actor_user_id=actor_user_id,
        branch_id=branch_id,
    )
    db.session.flush()
    return tx


def run_ledger_unit(op):
    try:
        return run_with_retry(op)
    except SQLAlchemyError as exc:
        current_app.logger.exception("Stock ledger unit of work failed")
        raise StoreError("Inventory store failure; no changes were applied") from exc


def record_transaction(
    *,
    item_id: int,
    kind: str,
    quantity: int,
    price: Decimal | None = None,
    notes: str | None = None,
    customer_supplier: str | None = None,
    payment_status: str | None = None,
    actor_user_id: int | None = None,
    branch_id: int | None = None,
) -> InventoryTransaction:
    """
    Append one ledger entry and move the item's cached quantity with it.

    Raises ValidationError, NotFoundError, InsufficientStockError or StoreError.
    On any failure neither the item nor the ledger changes.
    """
    _validate_kind(kind, TRANSACTION_KINDS)
    quantity = require_positive_int(quantity, "quantity")
    price = parse_money(price, "price")
    line = LedgerLine(item_id=item_id, quantity=quantity, price=price)

    def _op():
        begin_write()
        try:
            (tx,) = post_lines(
                kind=kind,
                lines=[line],
                notes=notes,
                customer_supplier=customer_supplier,
                payment_status=payment_status,
                actor_user_id=actor_user_id,
                branch_id=branch_id,
            )
        except InsufficientStockError as exc:
            current_app.logger.warning(
                "Rejected %s of %d for item %s: only %d available",
                kind, exc.requested, exc.item_id, exc.available,
            )
            raise
        db.session.commit()
        current_app.logger.info(
            "Recorded %s of %d for item %s (quantity now %d)",
            kind, quantity, item_id, tx.item.quantity,
        )
        return tx

    return run_ledger_unit(_op)


def record_bulk_transaction(
    *,
    kind: str,
    items,
    notes: str | None = None,
    customer_supplier: str | None = None,
    payment_status: str | None = None,
    actor_user_id: int | None = None,
    branch_id: int | None = None,
) -> list[InventoryTransaction]:
    """
    Multi-item purchase or sale as one atomic unit.

    items may be LedgerLines or raw dicts ({itemId, quantity, price?}).
    Adjustments and beginning balances are not valid in bulk.
    """
    _validate_kind(kind, BULK_KINDS)
    lines = coerce_lines(items)

    def _op():
        begin_write()
        try:
            created = post_lines(
                kind=kind,
                lines=lines,
                notes=notes,
                customer_supplier=customer_supplier,
                payment_status=payment_status,
                actor_user_id=actor_user_id,
                branch_id=branch_id,
            )
        except StockLedgerError as exc:
            current_app.logger.warning("Rejected bulk %s of %d lines: %s", kind, len(lines), exc)
            raise
        db.session.commit()
        current_app.logger.info("Recorded bulk %s of %d lines", kind, len(created))
        return created

    return run_ledger_unit(_op)


def _signed_quantity_expr():
    return case(
        (InventoryTransaction.type.in_(INBOUND_KINDS), InventoryTransaction.quantity),
        else_=-InventoryTransaction.quantity,
    )


def derive_current_quantity(item_id: int) -> int:
    """
    Recompute on-hand quantity purely from ledger history.

    Read-only; used to detect drift between the cache and the ledger.
    """
    if db.session.get(InventoryItem, item_id) is None:
        raise NotFoundError(item_id)

    total = db.session.query(
        func.coalesce(func.sum(_signed_quantity_expr()), 0)
    ).filter(
        InventoryTransaction.item_id == item_id,
    ).scalar()
    return int(total or 0)


def find_quantity_drift(branch_id: int | None = None) -> list[dict]:
    """Items whose cached quantity differs from the ledger-derived one."""
    ledger = db.session.query(
        InventoryTransaction.item_id.label("item_id"),
        func.sum(_signed_quantity_expr()).label("ledger_quantity"),
    ).group_by(InventoryTransaction.item_id).subquery()

    ledger_quantity = func.coalesce(ledger.c.ledger_quantity, 0)
    q = db.session.query(InventoryItem, ledger_quantity).outerjoin(
        ledger, ledger.c.item_id == InventoryItem.id
    )
    if branch_id is not None:
        q = q.filter(or_(InventoryItem.branch_id == branch_id, InventoryItem.branch_id.is_(None)))

    drift = []
    for item, derived in q.order_by(InventoryItem.id.asc()).all():
        derived = int(derived or 0)
        if derived != item.quantity:
            drift.append({
                "itemId": str(item.id),
                "sku": item.sku,
                "name": item.name,
                "quantity": item.quantity,
                "ledgerQuantity": derived,
                "drift": item.quantity - derived,
            })
    return drift


def resync_cached_quantity(item_id: int) -> int:
    """
    Overwrite the cached quantity with the ledger-derived value.

    The ledger is authoritative; this never writes ledger rows.
    """
    def _op():
        begin_write()
        (item,) = lock_items([item_id]).values()
        derived = derive_current_quantity(item_id)
        if derived < 0:
            raise StoreError(f"Ledger for item {item_id} sums to {derived}; manual review required")
        if item.quantity != derived:
            current_app.logger.warning(
                "Resyncing item %s quantity from %d to ledger value %d",
                item_id, item.quantity, derived,
            )
            item.quantity = derived
        db.session.commit()
        return derived

    return run_ledger_unit(_op)
