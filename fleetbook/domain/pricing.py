"""Booking price calculation.

Pure functions, Decimal arithmetic. Partial days round up to a full
chargeable day.
"""

import math
from collections.abc import Iterable
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

SECONDS_PER_DAY = 24 * 60 * 60
CENTS = Decimal("0.01")


class PricedExtra(Protocol):
    quantity: int
    price_per_day: Decimal


def calculate_days(start: date | datetime, end: date | datetime) -> int:
    """Whole chargeable days between two instants, rounding partial days up."""
    if isinstance(start, datetime) != isinstance(end, datetime):
        # Mixed inputs compare at midnight
        if not isinstance(start, datetime):
            start = datetime.combine(start, datetime.min.time(), tzinfo=end.tzinfo)
        else:
            end = datetime.combine(end, datetime.min.time(), tzinfo=start.tzinfo)
    seconds = abs((end - start).total_seconds())
    return math.ceil(seconds / SECONDS_PER_DAY)


def calculate_base_cost(daily_rate: Decimal, days: int) -> Decimal:
    return Decimal(daily_rate) * days


def calculate_extras_cost(extras: Iterable[PricedExtra], days: int) -> Decimal:
    return sum(
        (Decimal(extra.price_per_day) * extra.quantity * days for extra in extras),
        Decimal("0"),
    )


def calculate_total(
    daily_rate: Decimal,
    start: date | datetime,
    end: date | datetime,
    extras: Iterable[PricedExtra] = (),
) -> Decimal:
    """Estimated total: daily rate plus every extra, over the chargeable days.

    >>> calculate_total(Decimal("50"), date(2026, 3, 1), date(2026, 3, 5))
    Decimal('200')
    """
    days = calculate_days(start, end)
    return calculate_base_cost(daily_rate, days) + calculate_extras_cost(extras, days)


def calculate_default_deposit(total: Decimal, percent: int = 30) -> Decimal:
    """Deposit as a percentage of the total, rounded half-up to cents."""
    deposit = Decimal(total) * Decimal(percent) / Decimal("100")
    return deposit.quantize(CENTS, rounding=ROUND_HALF_UP)
