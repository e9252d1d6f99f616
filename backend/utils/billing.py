"""
utils/billing.py — Billable time arithmetic.

All money and hour values are Decimals rounded half-up to 2 places; minutes
are ints. Nothing here touches the database.
"""

import math
from decimal import Decimal, ROUND_HALF_UP

from utils.utbms import TIME_ROUNDING

DEFAULT_INCREMENT = TIME_ROUNDING["SIX_MINUTE"]
CENTS = Decimal("0.01")


def round_to_increment(minutes, increment: int = DEFAULT_INCREMENT) -> int:
    """
    Round a duration up to the next billing increment.

        round_to_increment(0)      → 0
        round_to_increment(1)      → 6
        round_to_increment(6)      → 6
        round_to_increment(7, 15)  → 15
    """
    if increment <= 0:
        raise ValueError("increment must be positive")
    if minutes is None or minutes <= 0:
        return 0
    return int(math.ceil(minutes / increment)) * increment


def minutes_to_decimal_hours(minutes) -> Decimal:
    return (Decimal(minutes or 0) / Decimal(60)).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_billable_amount(minutes, hourly_rate, increment: int = DEFAULT_INCREMENT) -> Decimal:
    """Rounded minutes → decimal hours → × rate, to the cent."""
    hours = minutes_to_decimal_hours(round_to_increment(minutes, increment))
    rate = Decimal(str(hourly_rate or 0))
    return (hours * rate).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)
