"""Value checks shared by services (forms validate too, but services never trust callers)."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from ..errors import ValidationError
from ..models import MAX_INT, MAX_MONEY, money

INVALID_DECIMAL = "Not a valid decimal value."


def within_money_range(field: str, amount: Decimal) -> Decimal:
    if amount > MAX_MONEY:
        raise ValidationError({field: [f"Must be at most {MAX_MONEY}."]})
    return amount


def positive_money(field: str, value) -> Decimal:
    try:
        amount = Decimal("0.00") if value is None else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError({field: [INVALID_DECIMAL]})
    if not amount.is_finite():
        raise ValidationError({field: [INVALID_DECIMAL]})
    within_money_range(field, amount)
    # Compare before quantizing: a huge negative exponent cannot be quantized.
    if amount <= 0:
        raise ValidationError({field: ["Must be greater than zero."]})
    amount = money(amount)
    if amount <= Decimal("0.00"):
        raise ValidationError({field: ["Must be greater than zero."]})
    return amount


def positive_int(field: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError({field: ["Must be an integer."]})
    if value <= 0:
        raise ValidationError({field: ["Must be greater than zero."]})
    if value > MAX_INT:
        raise ValidationError({field: [f"Must be at most {MAX_INT}."]})
    return value


def flag(field: str, value) -> bool:
    if not isinstance(value, bool):
        raise ValidationError({field: ["Not a valid boolean value."]})
    return value


def required_text(field: str, value, max_length: int, min_length: int = 1) -> str:
    if value is not None and not isinstance(value, str):
        raise ValidationError({field: ["Must be a string."]})
    text = (value or "").strip()
    if not (min_length <= len(text) <= max_length):
        raise ValidationError({field: [f"Field must be between {min_length} and {max_length} characters long."]})
    return text


def optional_text(value) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None
