"""Booking state machine.

The transition table and every per-transition precondition live here so the
lifecycle manager has a single place to ask "may this booking move to X now?".
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Protocol
from uuid import UUID

from fleetbook.core.exceptions import (
    BookingExpiredError,
    BusinessRuleViolation,
    DepositNotPaidError,
    InvalidTransitionError,
)


class BookingStatus(str, Enum):
    """Booking lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    CONVERTED = "converted"
    EXPIRED = "expired"


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.CONVERTED, BookingStatus.EXPIRED}
)

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.EXPIRED}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CANCELLED, BookingStatus.CONVERTED, BookingStatus.EXPIRED}
    ),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.CONVERTED: frozenset(),
    BookingStatus.EXPIRED: frozenset(),
}


class TransitionSubject(Protocol):
    """Booking fields the state machine reads."""

    id: UUID
    booking_reference: str
    status: str
    deposit_paid: bool
    expires_at: datetime


def is_terminal(current: str | BookingStatus) -> bool:
    return BookingStatus(current) in TERMINAL_STATUSES


def assert_booking_transition(
    current: str | BookingStatus,
    target: str | BookingStatus,
    booking_id: UUID | None = None,
    booking_reference: str | None = None,
) -> None:
    """Raise InvalidTransitionError unless current -> target is in the table."""
    current = BookingStatus(current)
    target = BookingStatus(target)
    if target not in BOOKING_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Invalid booking transition: {current.value} → {target.value}",
            booking_id=booking_id,
            booking_reference=booking_reference,
            current_status=current.value,
            attempted_status=target.value,
        )


def assert_not_terminal(booking: TransitionSubject) -> None:
    """Terminal bookings are write-once."""
    if is_terminal(booking.status):
        raise BusinessRuleViolation(
            f"Booking {booking.booking_reference} is {booking.status} and can no longer be modified",
            booking_id=booking.id,
            booking_reference=booking.booking_reference,
            current_status=booking.status,
        )


def assert_hold_active(booking: TransitionSubject, now: datetime, action: str = "modified") -> None:
    """A lapsed hold is invalid before the sweeper marks it EXPIRED."""
    if now > booking.expires_at:
        raise BookingExpiredError(
            f"Booking {booking.booking_reference} has expired and cannot be {action}",
            booking_id=booking.id,
            booking_reference=booking.booking_reference,
            current_status=booking.status,
        )


def assert_transition_allowed(
    booking: TransitionSubject,
    target: str | BookingStatus,
    now: datetime,
) -> None:
    """Check the table and the target's preconditions against the latest read.

    Cancellation reason length is an input check and is validated separately
    by the booking policy.
    """
    target = BookingStatus(target)
    assert_booking_transition(booking.status, target, booking.id, booking.booking_reference)

    context = {
        "booking_id": booking.id,
        "booking_reference": booking.booking_reference,
        "current_status": booking.status,
        "attempted_status": target.value,
    }

    if target in (BookingStatus.CONFIRMED, BookingStatus.CONVERTED):
        action = "confirmed" if target == BookingStatus.CONFIRMED else "converted"
        if not booking.deposit_paid:
            raise DepositNotPaidError(
                f"Deposit must be paid before booking {booking.booking_reference} can be {action}",
                **context,
            )
        if now > booking.expires_at:
            raise BookingExpiredError(
                f"Booking {booking.booking_reference} has expired and cannot be {action}",
                **context,
            )
    elif target == BookingStatus.EXPIRED:
        if now <= booking.expires_at:
            raise BusinessRuleViolation(
                f"Booking {booking.booking_reference} is not due to expire until "
                f"{booking.expires_at.isoformat()}",
                **context,
            )
