"""Typed engine exceptions.

Every error carries an HTTP status so a transport layer can render it
directly, plus enough booking context to build a precise message.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi import HTTPException, status

if TYPE_CHECKING:
    from fleetbook.schemas.booking import BookingSummary


class AppException(HTTPException):
    """Base engine exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def __str__(self) -> str:
        return str(self.detail)


class ValidationError(AppException):
    """Input is malformed or illogical. Raised before any write."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Referenced customer, car or booking does not exist."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        self.resource = resource
        self.identifier = identifier
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class VehicleNotAvailable(AppException):
    """Car exists but its catalog status does not allow reservations."""

    def __init__(self, car_id: UUID, catalog_status: str) -> None:
        self.car_id = car_id
        self.catalog_status = catalog_status
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Car {car_id} is not available (status: {catalog_status})",
        )


class BookingConflictError(AppException):
    """Requested range overlaps active bookings on the same car."""

    def __init__(self, car_id: UUID, conflicts: list[BookingSummary]) -> None:
        self.car_id = car_id
        self.conflicts = conflicts
        references = ", ".join(c.booking_reference for c in conflicts)
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Car is not available for the selected dates. "
                f"{len(conflicts)} conflicting booking(s) found: {references}"
            ),
        )


class BusinessRuleViolation(AppException):
    """Operation is not allowed in the booking's current workflow state."""

    def __init__(
        self,
        detail: str,
        booking_id: UUID | None = None,
        booking_reference: str | None = None,
        current_status: str | None = None,
        attempted_status: str | None = None,
    ) -> None:
        self.booking_id = booking_id
        self.booking_reference = booking_reference
        self.current_status = current_status
        self.attempted_status = attempted_status
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class InvalidTransitionError(BusinessRuleViolation):
    """Transition is not in the booking state table."""


class DepositNotPaidError(BusinessRuleViolation):
    """Deposit must be paid before confirming or converting."""


class BookingExpiredError(BusinessRuleViolation):
    """Booking hold has lapsed, even if the sweeper has not run yet."""


class ConcurrentModificationError(AppException):
    """Another writer changed the booking between read and write."""

    def __init__(self, booking_id: UUID | None = None) -> None:
        self.booking_id = booking_id
        detail = "Booking was modified concurrently, please retry"
        if booking_id:
            detail = f"Booking {booking_id} was modified concurrently, please retry"
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ExternalServiceError(AppException):
    """A collaborator failed before the engine wrote anything."""

    def __init__(self, service: str, detail: str | None = None) -> None:
        self.service = service
        message = f"External service '{service}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)


class OrphanedContractError(AppException):
    """Contract was created but the booking could not be marked converted.

    Leaves a contract with no converted booking behind; must be escalated.
    """

    def __init__(self, booking_id: UUID, booking_reference: str, contract_id: UUID) -> None:
        self.booking_id = booking_id
        self.booking_reference = booking_reference
        self.contract_id = contract_id
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=(
                f"Contract {contract_id} was created for booking {booking_reference} "
                f"but the booking could not be marked as converted"
            ),
        )
