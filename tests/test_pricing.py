from datetime import UTC, date, datetime
from decimal import Decimal

from fleetbook.domain.pricing import (
    calculate_days,
    calculate_default_deposit,
    calculate_extras_cost,
    calculate_total,
)
from fleetbook.schemas.booking import BookingExtra, BookingExtraType


def test_four_day_booking_at_fifty_per_day():
    assert calculate_total(Decimal("50"), date(2026, 3, 1), date(2026, 3, 5)) == Decimal("200")


def test_extras_are_charged_per_day_and_quantity():
    extras = [
        BookingExtra(type=BookingExtraType.CHILD_SEAT, quantity=2, price_per_day=Decimal("5")),
        BookingExtra(type=BookingExtraType.GPS, quantity=1, price_per_day=Decimal("1")),
    ]
    # 4 days: 200 base + 2*5*4 + 1*1*4
    assert calculate_total(
        Decimal("50"), date(2026, 3, 1), date(2026, 3, 5), extras
    ) == Decimal("244")


def test_partial_day_rounds_up():
    start = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
    end = datetime(2026, 3, 3, 11, 0, tzinfo=UTC)
    assert calculate_days(start, end) == 3


def test_exact_days_do_not_round_up():
    start = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
    end = datetime(2026, 3, 3, 10, 0, tzinfo=UTC)
    assert calculate_days(start, end) == 2


def test_reversed_range_uses_absolute_duration():
    assert calculate_days(date(2026, 3, 5), date(2026, 3, 1)) == 4


def test_mixed_date_and_datetime():
    assert calculate_days(date(2026, 3, 1), datetime(2026, 3, 2, 6, 0, tzinfo=UTC)) == 2


def test_no_extras_cost_nothing():
    assert calculate_extras_cost([], 10) == Decimal("0")


def test_default_deposit_is_thirty_percent():
    assert calculate_default_deposit(Decimal("244")) == Decimal("73.20")


def test_default_deposit_rounds_half_up_to_cents():
    # 30% of 0.05 is 0.015
    assert calculate_default_deposit(Decimal("0.05")) == Decimal("0.02")


def test_pricing_is_deterministic():
    args = (Decimal("37.50"), date(2026, 6, 1), date(2026, 6, 11))
    assert calculate_total(*args) == calculate_total(*args) == Decimal("375.00")
