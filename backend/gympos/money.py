# Overview: Decimal money helpers shared by models, services and validation.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def quantize_money(value) -> Decimal:
    """Round to whole cents, half-up (4.995 -> 5.00)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(price: Decimal, quantity: int) -> Decimal:
    return quantize_money(price * quantity)


def money_json(value: Decimal | None) -> float | None:
    """JSON numbers for money, matching what the dashboard already parses."""
    if value is None:
        return None
    return float(quantize_money(value))
