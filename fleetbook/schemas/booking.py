"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from fleetbook.domain.booking_state import BookingStatus


class BookingExtraType(str, Enum):
    """Optional add-ons charged per day."""

    SIM_CARD = "sim_card"
    CHILD_SEAT = "child_seat"
    KASKO_INSURANCE = "kasko_insurance"
    ROOF_RACK = "roof_rack"
    GPS = "gps"


class BookingExtra(BaseModel):
    """One extra line: quantity × price per day × booking days."""

    type: BookingExtraType
    quantity: int = Field(default=1, ge=1, le=10)
    price_per_day: Decimal = Field(..., ge=0, le=10000)


class BookingCreate(BaseModel):
    """Schema for creating a booking."""

    car_id: UUID
    customer_id: UUID
    start_date: date
    end_date: date
    extras: list[BookingExtra] = Field(default_factory=list)
    deposit_amount: Decimal | None = Field(None, ge=0)
    pickup_location: str | None = Field(None, max_length=255)
    dropoff_location: str | None = Field(None, max_length=255)
    additional_drivers: list[str] = Field(default_factory=list, max_length=5)
    notes: str | None = Field(None, max_length=2000)


class BookingUpdate(BaseModel):
    """Schema for editing a non-terminal booking.

    Only fields that were explicitly set are applied.
    """

    start_date: date | None = None
    end_date: date | None = None
    extras: list[BookingExtra] | None = None
    deposit_amount: Decimal | None = Field(None, ge=0)
    deposit_paid: bool | None = None
    pickup_location: str | None = Field(None, max_length=255)
    dropoff_location: str | None = Field(None, max_length=255)
    additional_drivers: list[str] | None = Field(None, max_length=5)
    notes: str | None = Field(None, max_length=2000)
    status: BookingStatus | None = None
    cancellation_reason: str | None = Field(None, max_length=1000)


class BookingSummary(BaseModel):
    """Short view of a booking, used for conflict diagnostics."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_reference: str
    customer_id: UUID
    status: BookingStatus
    start_date: date
    end_date: date


class BookingRead(BaseModel):
    """Full booking snapshot returned by the engine and carried in audit events."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_reference: str
    car_id: UUID
    customer_id: UUID
    start_date: date
    end_date: date
    status: BookingStatus

    total_estimated_cost: Decimal
    deposit_amount: Decimal
    deposit_paid: bool
    extras: list[BookingExtra]

    pickup_location: str | None
    dropoff_location: str | None
    additional_drivers: list[str]
    notes: str | None

    expires_at: datetime
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    converted_at: datetime | None
    cancellation_reason: str | None
    converted_to_contract_id: UUID | None

    created_by: UUID | None
    updated_by: UUID | None
    created_at: datetime
    updated_at: datetime | None
    version: int


class BookingListResponse(BaseModel):
    """Paginated booking list."""

    bookings: list[BookingRead]
    total: int
    page: int
    page_size: int


class BookingStatistics(BaseModel):
    """Booking counts per status and the value of active reservations."""

    total: int
    by_status: dict[BookingStatus, int]
    active_value: Decimal


class BulkExpireResult(BaseModel):
    """Outcome of one bulk expiration statement."""

    expired_ids: list[UUID] = Field(default_factory=list)
    skipped_ids: list[UUID] = Field(default_factory=list)

    @property
    def expired_count(self) -> int:
        return len(self.expired_ids)


class SweepReport(BaseModel):
    """Outcome of one sweeper tick."""

    expired_count: int = 0
    failed_count: int = 0
    batches: int = 0
