from datetime import UTC, date, datetime, timedelta

import pytest

from fleetbook.core.exceptions import ValidationError
from fleetbook.domain.booking_policy import (
    calculate_expires_at,
    clamp_expires_at,
    validate_cancellation_reason,
    validate_date_range,
)

TODAY = date(2026, 3, 1)


class TestDateRange:
    def test_valid_range(self):
        validate_date_range(date(2026, 3, 1), date(2026, 3, 2), TODAY)

    def test_start_in_past(self):
        with pytest.raises(ValidationError, match="today or in the future"):
            validate_date_range(date(2026, 2, 28), date(2026, 3, 2), TODAY)

    @pytest.mark.parametrize("end", [date(2026, 3, 10), date(2026, 3, 9)])
    def test_end_not_after_start(self, end):
        with pytest.raises(ValidationError, match="after start"):
            validate_date_range(date(2026, 3, 10), end, TODAY)

    def test_max_duration(self):
        validate_date_range(TODAY, TODAY + timedelta(days=365), TODAY)
        with pytest.raises(ValidationError, match="365"):
            validate_date_range(TODAY, TODAY + timedelta(days=366), TODAY)


class TestExpiresAt:
    def test_far_start_uses_hold_period(self):
        now = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        assert calculate_expires_at(now, date(2026, 4, 1)) == now + timedelta(days=7)

    def test_near_start_expires_a_day_before_pickup(self):
        now = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        assert calculate_expires_at(now, date(2026, 3, 4)) == datetime(2026, 3, 3, tzinfo=UTC)

    def test_start_tomorrow_is_already_due(self):
        now = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        assert calculate_expires_at(now, date(2026, 3, 2)) < now

    def test_clamp_never_extends(self):
        current = datetime(2026, 3, 8, 9, 0, tzinfo=UTC)
        assert clamp_expires_at(current, date(2026, 5, 1)) == current
        assert clamp_expires_at(current, date(2026, 3, 5)) == datetime(2026, 3, 4, tzinfo=UTC)


class TestCancellationReason:
    def test_reason_is_trimmed(self):
        assert validate_cancellation_reason("  customer changed plans  ") == "customer changed plans"

    @pytest.mark.parametrize("reason", [None, "", "too short", "   short    "])
    def test_short_reason_rejected(self, reason):
        with pytest.raises(ValidationError, match="at least 10"):
            validate_cancellation_reason(reason)
