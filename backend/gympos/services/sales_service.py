"""
Point-of-sale service.

WHY: A sale is a header (totals, payment method, customer) plus one line per
item, and every line is also a `sale` entry in the stock ledger. All three
are written in one DB transaction so a failed sale never leaves stock moved
without a sale record, or a sale record without stock moved.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Sale, SaleItem
from ..models.sales import PAYMENT_METHODS
from ..money import line_total, quantize_money
from ..validation import ValidationError, parse_money
from .concurrency import begin_write
from .stock_ledger_service import (
    LedgerLine,
    StockLedgerError,
    run_ledger_unit,
    coerce_lines,
    lock_items,
    plan_lines,
    post_lines,
)


SUMMARY_PERIODS = ("daily", "weekly", "monthly")


class SaleNotFoundError(Exception):
    """Raised when a sale id does not resolve."""


def _compute_totals(
    lines: list[LedgerLine],
    subtotal: Decimal | None,
    tax: Decimal | None,
    discount: Decimal | None,
    total: Decimal | None,
) -> tuple[Decimal, Decimal, Decimal, Decimal]:
    """Caller-supplied totals win; missing ones are computed from the lines."""
    if subtotal is None:
        subtotal = quantize_money(sum((line_total(line.price, line.quantity) for line in lines), Decimal("0")))
    tax = tax if tax is not None else Decimal("0.00")
    discount = discount if discount is not None else Decimal("0.00")
    if total is None:
        total = quantize_money(subtotal + tax - discount)
        if total < 0:
            raise ValidationError("discount cannot exceed subtotal plus tax")
    return subtotal, tax, discount, total


def parse_sale_lines(raw_items) -> list[LedgerLine]:
    """
    POS lines carry {id|itemId, quantity, price, total|totalPrice}.

    price is required on POS lines; the line total is always recomputed as
    price * quantity so the ledger total_amount and sale_items.total agree.
    """
    lines = coerce_lines(raw_items)
    for index, line in enumerate(lines):
        if line.price is None:
            raise ValidationError(f"items[{index}].price is required")
    return lines


def record_sale(
    *,
    line_items,
    payment_method: str,
    subtotal=None,
    tax=None,
    discount=None,
    total=None,
    customer_id: int | None = None,
    customer_name: str | None = None,
    customer_email: str | None = None,
    actor_user_id: int | None = None,
    branch_id: int | None = None,
) -> Sale:
    """
    Record a POS sale atomically.

    Locks every referenced item, rejects unknown items (NotFoundError) and
    oversells (InsufficientStockError) before writing, then writes the Sale,
    its SaleItems and one `sale` ledger entry per line in a single commit.
    """
    if not line_items:
        raise ValidationError("No items provided for sale")
    if not payment_method:
        raise ValidationError("Payment method is required")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    lines = parse_sale_lines(line_items)
    subtotal, tax, discount, total = _compute_totals(
        lines,
        parse_money(subtotal, "subtotal"),
        parse_money(tax, "tax"),
        parse_money(discount, "discount"),
        parse_money(total, "total"),
    )

    def _op():
        begin_write()
        try:
            # Check stock before the header exists so a rejected sale writes nothing
            items = lock_items((line.item_id for line in lines), branch_id=branch_id)
            plan_lines("sale", lines, items)
        except StockLedgerError as exc:
            current_app.logger.warning("Rejected sale of %d lines: %s", len(lines), exc)
            raise

        sale = Sale(
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            total=total,
            payment_method=payment_method,
            customer_id=customer_id,
            customer_name=customer_name,
            customer_email=customer_email,
            created_by=actor_user_id,
            branch_id=branch_id,
        )
        db.session.add(sale)
        db.session.flush()

        ledger_entries = post_lines(
            kind="sale",
            lines=lines,
            notes=f"Sale #{sale.id}",
            actor_user_id=actor_user_id,
            branch_id=branch_id,
            sale_id=sale.id,
        )

        for line, tx in zip(lines, ledger_entries):
            db.session.add(SaleItem(
                sale_id=sale.id,
                item_id=line.item_id,
                quantity=line.quantity,
                price=tx.price,
                total=tx.total_amount,
                inventory_transaction_id=tx.id,
            ))

        db.session.commit()
        current_app.logger.info("Recorded sale #%s with %d lines, total %s", sale.id, len(lines), total)
        return sale

    return run_ledger_unit(_op)


def _visible_sales(query, branch_id: int | None):
    if branch_id is None:
        return query
    return query.filter(or_(Sale.branch_id == branch_id, Sale.branch_id.is_(None)))


def list_sales(branch_id: int | None = None, start: datetime | None = None, end: datetime | None = None) -> list[Sale]:
    q = _visible_sales(db.session.query(Sale), branch_id)
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at <= end)
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def get_sale(sale_id: int, branch_id: int | None = None) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError("Sale not found")
    if branch_id is not None and sale.branch_id not in (None, branch_id):
        raise SaleNotFoundError("Sale not found")
    return sale


def inclusive_end(end: datetime | None) -> datetime | None:
    """Date-only end bounds cover the whole day."""
    if end is not None and end.hour == 0 and end.minute == 0 and end.second == 0 and end.microsecond == 0:
        return end + timedelta(days=1) - timedelta(microseconds=1)
    return end


def _period_key(moment: datetime, period: str) -> str:
    if period == "weekly":
        year, week, _ = moment.isocalendar()
        return f"{year}-{week:02d}"
    if period == "monthly":
        return moment.strftime("%Y-%m")
    return moment.strftime("%Y-%m-%d")


def sales_summary(
    *,
    period: str = "daily",
    start: datetime | None = None,
    end: datetime | None = None,
    branch_id: int | None = None,
) -> list[dict]:
    """
    Totals grouped by day, ISO week or month, oldest first.

    Grouping happens in Python so the same code runs on SQLite and MySQL.
    """
    if period not in SUMMARY_PERIODS:
        period = "daily"
    end = inclusive_end(end)

    sales = sorted(list_sales(branch_id=branch_id, start=start, end=end), key=lambda s: (s.created_at, s.id))

    buckets: "OrderedDict[str, dict]" = OrderedDict()
    zero = Decimal("0.00")
    for sale in sales:
        key = _period_key(sale.created_at, period)
        bucket = buckets.setdefault(key, {
            "period": key,
            "count": 0,
            "subtotal": zero,
            "tax": zero,
            "total": zero,
            "cash_total": zero,
            "card_total": zero,
        })
        bucket["count"] += 1
        bucket["subtotal"] += sale.subtotal
        bucket["tax"] += sale.tax
        bucket["total"] += sale.total
        bucket[f"{sale.payment_method}_total"] += sale.total

    return [
        {key: (float(value) if isinstance(value, Decimal) else value) for key, value in bucket.items()}
        for bucket in buckets.values()
    ]
