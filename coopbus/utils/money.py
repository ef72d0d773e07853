## coopbus/utils/money.py

# Standard library imports
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Coerce a number into Decimal without going through binary float digits."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Number) -> Decimal:
    """Round to whole cents, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def floor_money(value: Number) -> Decimal:
    """Truncate to whole cents, never exceeding the input."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_DOWN)


def percent_of(amount: Number, percent: Number) -> Decimal:
    """Unrounded share of an amount for a percentage such as 20 or 12.5."""
    return to_decimal(amount) * to_decimal(percent) / HUNDRED
