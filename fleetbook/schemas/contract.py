"""Contract conversion schemas."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from fleetbook.schemas.booking import BookingExtra, BookingRead


class ContractSnapshot(BaseModel):
    """Booking fields frozen at conversion time and handed to the contract service."""

    source_booking_id: UUID
    booking_reference: str
    customer_id: UUID
    car_id: UUID
    start_date: date
    end_date: date
    daily_rate: Decimal
    total_amount: Decimal
    deposit_amount: Decimal
    deposit_paid: bool
    pickup_location: str | None = None
    dropoff_location: str | None = None
    additional_drivers: list[str] = Field(default_factory=list)
    extras: list[BookingExtra] = Field(default_factory=list)
    notes: str | None = None


class ContractRef(BaseModel):
    """Identifier of a contract created by the contract service."""

    id: UUID


class ConversionResult(BaseModel):
    """Converted booking and the contract it produced."""

    booking: BookingRead
    contract: ContractRef
