"""Database models."""

from fleetbook.models.booking import Booking, BookingReferenceCounter, CarAllocationLock

__all__ = [
    "Booking",
    "BookingReferenceCounter",
    "CarAllocationLock",
]
