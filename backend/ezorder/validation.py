from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError


CENT = Decimal("0.01")

# Maximum amount: 9,999,999,999.99 (fits Numeric(12, 2))
MAX_MONEY = Decimal("9999999999.99")

_MISSING = object()


def to_money(value: Any) -> Decimal:
    """Quantize an already-trusted numeric value to two decimals."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_money(value: Any, field: str, *, required: bool = True, allow_negative: bool = False) -> Decimal | None:
    """
    Parse a client-supplied money amount.

    Accepts int, float, Decimal or a numeric string. Rejects booleans,
    blanks, non-numeric text, NaN/Infinity and scientific notation.
    Values are never coerced silently: anything else is a ValidationError.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, (int, float, Decimal)):
        raw = str(value)
    elif isinstance(value, str):
        raw = value.strip()
        if "e" in raw.lower():
            raise ValidationError(f"{field} must be a plain number (scientific notation not allowed)")
    else:
        raise ValidationError(f"{field} must be a number")

    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")

    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative")

    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if abs(amount) > MAX_MONEY:
        raise ValidationError(f"{field} exceeds maximum allowed amount")

    return amount


def parse_int(value: Any, field: str, *, required: bool = True, minimum: int | None = None) -> int | None:
    """Strict integer parsing for ids and pagination values."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None

    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{field} must be an integer")
        value = int(stripped)

    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")

    return value


def parse_optional_text(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    text = value.strip()
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text or None


def parse_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{field} must be true or false")


def pick(payload: dict, key: str):
    """Return payload[key] or a sentinel when the key is absent (partial updates)."""
    return payload.get(key, _MISSING)


def is_missing(value: Any) -> bool:
    return value is _MISSING
