"""Booking policy rules: date ranges, hold expiry and cancellation reasons."""

from datetime import UTC, date, datetime, time, timedelta

from fleetbook.core.exceptions import ValidationError
from fleetbook.domain.pricing import calculate_days


def validate_date_range(
    start_date: date,
    end_date: date,
    today: date,
    max_duration_days: int = 365,
) -> None:
    """Validate a requested rental period.

    Args:
        start_date: First rental day (inclusive)
        end_date: Return day (exclusive)
        today: Current calendar date from the engine clock
        max_duration_days: Longest allowed booking

    Raises:
        ValidationError: If any rule is broken
    """
    if start_date < today:
        raise ValidationError("Start date must be today or in the future")
    if end_date <= start_date:
        raise ValidationError("End date must be after start date")
    if calculate_days(start_date, end_date) > max_duration_days:
        raise ValidationError(f"Booking duration cannot exceed {max_duration_days} days")


def start_of_day(day: date) -> datetime:
    """Midnight UTC of the given calendar day."""
    return datetime.combine(day, time.min, tzinfo=UTC)


def calculate_expires_at(
    now: datetime,
    start_date: date,
    hold_days: int = 7,
    lead_hours: int = 24,
) -> datetime:
    """Hold deadline: the sooner of now + hold_days and pickup - lead_hours."""
    hold_deadline = now + timedelta(days=hold_days)
    pickup_deadline = start_of_day(start_date) - timedelta(hours=lead_hours)
    return min(hold_deadline, pickup_deadline)


def clamp_expires_at(current: datetime, start_date: date, lead_hours: int = 24) -> datetime:
    """Re-anchor an existing deadline after a date change without extending it."""
    return min(current, start_of_day(start_date) - timedelta(hours=lead_hours))


def validate_cancellation_reason(reason: str | None, min_length: int = 10) -> str:
    """Return the trimmed reason, or raise if it is missing or too short."""
    cleaned = (reason or "").strip()
    if len(cleaned) < min_length:
        raise ValidationError(f"Cancellation reason must be at least {min_length} characters")
    return cleaned
