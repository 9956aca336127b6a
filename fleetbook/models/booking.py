"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, Date, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from fleetbook.database import Base
from fleetbook.domain.booking_state import BookingStatus
from fleetbook.models.types import UTCDateTime


class Booking(Base):
    """Reservation of one car for a half-open date range."""

    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_car_availability", "car_id", "start_date", "end_date", "status"),
        Index("ix_bookings_status_expires_at", "status", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_reference: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )  # BKG-YYYY-NNNNN

    # External references (catalog records owned by other services)
    car_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Rental period, [start_date, end_date)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookingStatus.PENDING.value
    )  # pending, confirmed, cancelled, converted, expired

    # Pricing
    total_estimated_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    deposit_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    deposit_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    extras: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    # Handover
    pickup_location: Mapped[str | None] = mapped_column(String(255))
    dropoff_location: Mapped[str | None] = mapped_column(String(255))
    additional_drivers: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[str | None] = mapped_column(Text)

    # Lifecycle timestamps, each set once on its transition
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    converted_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    converted_to_contract_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)

    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    # Stamped from the engine clock
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    # Optimistic lock
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class BookingReferenceCounter(Base):
    """Per-year booking reference sequence."""

    __tablename__ = "booking_reference_counters"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class CarAllocationLock(Base):
    """One row per car; updating it serialises availability writers for that car."""

    __tablename__ = "car_allocation_locks"

    car_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    locked_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
