from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from gympos.money import quantize_money


# Maximum money value that fits NUMERIC(10, 2)
MAX_MONEY = Decimal("99999999.99")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


def require_json_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Rejects bools, floats, decimals and scientific notation. Digit strings
    are accepted because form-encoded clients send them.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, (float, Decimal)):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_positive_int(value: Any, field: str) -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    number = coerce_int(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be > 0")
    return number


def coerce_id(value: Any, field: str) -> int:
    """Ids arrive as numbers or as the strings the API hands out."""
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    number = coerce_int(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be a valid id")
    return number


def parse_money(value: Any, field: str, *, required: bool = False) -> Decimal | None:
    """
    Parse a non-negative money amount into a cent-quantized Decimal.

    Floats are routed through str() so 4.99 stays 4.99.
    """
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY}")
    return quantize_money(amount)


def optional_str(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def require_str(value: Any, field: str, *, max_length: int | None = None) -> str:
    text = optional_str(value, field, max_length=max_length)
    if text is None:
        raise ValidationError(f"{field} is required")
    return text
