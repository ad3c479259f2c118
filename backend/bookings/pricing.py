from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from django.conf import settings


def to_amount(value: Any) -> int:
    """
    Normalise an amount coming from outside the ledger into an int.

    Missing values count as zero. Decimals and numeric strings are rounded half-up to
    the nearest unit. Floats are refused: money never travels as a float.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise TypeError("Amounts must be integers, not booleans.")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise TypeError("Amounts must not be floats.")
    if isinstance(value, str):
        for separator in (" ", "\xa0", "\u202f"):
            value = value.replace(separator, "")
        if not value:
            return 0
    try:
        decimal_value = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Not an amount: {value!r}") from None
    if not decimal_value.is_finite():
        raise ValueError(f"Not an amount: {value!r}")
    return int(decimal_value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_amount(amount: int, separator: str = " ") -> str:
    grouped = f"{abs(amount):,}".replace(",", separator)
    return f"-{grouped}" if amount < 0 else grouped


def format_price(amount: int, *, currency_label: str | None = None) -> str:
    label = currency_label or settings.BOOKING_CURRENCY_LABEL
    return f"{format_amount(amount)} {label}"


def remaining_balance(total: int, paid: int) -> int:
    return max(total - paid, 0)


def percent_of(amount: int, percent: int) -> int:
    # half-up on non-negative operands without leaving integer arithmetic
    return (amount * percent + 50) // 100


def count_nights(check_in: date, check_out: date) -> int:
    return (check_out - check_in).days


def stay_price(price_per_night: int, nights: int) -> int:
    return price_per_night * nights
