"""Core utilities: clock, exceptions, logging and background scheduling."""

from fleetbook.core.clock import Clock, FixedClock, SystemClock
from fleetbook.core.exceptions import (
    AppException,
    BookingConflictError,
    BookingExpiredError,
    BusinessRuleViolation,
    ConcurrentModificationError,
    DepositNotPaidError,
    ExternalServiceError,
    InvalidTransitionError,
    NotFoundError,
    OrphanedContractError,
    ValidationError,
    VehicleNotAvailable,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "AppException",
    "BookingConflictError",
    "BookingExpiredError",
    "BusinessRuleViolation",
    "ConcurrentModificationError",
    "DepositNotPaidError",
    "ExternalServiceError",
    "InvalidTransitionError",
    "NotFoundError",
    "OrphanedContractError",
    "ValidationError",
    "VehicleNotAvailable",
]
