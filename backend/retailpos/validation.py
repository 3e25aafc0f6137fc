from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from .errors import ValidationError


CENT = Decimal("0.01")

# Maximum amount: 9,999,999.99
# This prevents nonsensical prices and counted cash values
MAX_AMOUNT = Decimal("9999999.99")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT)


def parse_money(
    value: Any,
    field: str,
    *,
    allow_zero: bool = True,
    allow_negative: bool = False,
) -> Decimal:
    """
    Coerce incoming money values to a cent-quantized Decimal.

    Accepts int, Decimal, float and numeric strings. Rejects booleans,
    NaN/Infinity, blank strings and anything that does not parse.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    # bool is a subclass of int
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        try:
            amount = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")

    amount = quantize_money(amount)

    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} must be >= 0")
    if amount == 0 and not allow_zero:
        raise ValidationError(f"{field} must be > 0")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT:,}")

    return amount


def parse_quantity(value: Any, field: str = "quantity") -> int:
    """Strict positive integer: rejects floats, decimals and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        qty = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            qty = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")

    if qty <= 0:
        raise ValidationError(f"{field} must be > 0")
    return qty


def parse_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    """Normalize an enumerated tag (case-insensitive) or raise."""
    allowed = tuple(choices)
    if not isinstance(value, str) or value.strip().upper() not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(allowed)}")
    return value.strip().upper()


def clean_text(value: Any, field: str, *, max_length: int = 255, required: bool = False) -> str:
    if value is None:
        value = ""
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    if required and not value:
        raise ValidationError(f"{field} cannot be blank")
    if len(value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return value


def require_fields(payload: dict | None, *fields: str) -> dict:
    """Route helper: JSON object with every listed key present."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    missing = [f for f in fields if payload.get(f) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return payload
