"""Car availability index.

Intervals are half-open: [start_date, end_date). A booking that ends on the
day another starts does not conflict with it. Only PENDING and CONFIRMED
bookings hold a car.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fleetbook.database import insert_if_missing
from fleetbook.domain.booking_state import ACTIVE_STATUSES
from fleetbook.models.booking import Booking, CarAllocationLock
from fleetbook.schemas.booking import BookingSummary

HOLDING_STATUSES = tuple(sorted(status.value for status in ACTIVE_STATUSES))


def overlaps(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    return a_start < b_end and b_start < a_end


def _conflicts_query(
    car_id: UUID,
    start_date: date,
    end_date: date,
    exclude_booking_id: UUID | None = None,
) -> Select:
    # Same predicate as overlaps(), served by ix_bookings_car_availability
    query = select(Booking).where(
        Booking.car_id == car_id,
        Booking.status.in_(HOLDING_STATUSES),
        Booking.start_date < end_date,
        Booking.end_date > start_date,
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    return query


class AvailabilityService:
    """Answers whether a car is free and serialises writers per car."""

    async def lock_car(self, db: AsyncSession, car_id: UUID, now: datetime) -> None:
        """Take the car's allocation lock until the current transaction ends.

        Must be called before the conflict check of any write that changes
        which dates a car is held for.
        """
        await insert_if_missing(
            db,
            CarAllocationLock,
            {"car_id": car_id, "locked_at": None},
            index_elements=["car_id"],
        )
        await db.execute(
            update(CarAllocationLock)
            .where(CarAllocationLock.car_id == car_id)
            .values(locked_at=now)
            .execution_options(synchronize_session=False)
        )

    async def is_available(
        self,
        db: AsyncSession,
        car_id: UUID,
        start_date: date,
        end_date: date,
        exclude_booking_id: UUID | None = None,
    ) -> bool:
        """Check if a car is free for [start_date, end_date)."""
        query = select(
            _conflicts_query(car_id, start_date, end_date, exclude_booking_id).exists()
        )
        result = await db.execute(query)
        return not result.scalar()

    async def find_conflicts(
        self,
        db: AsyncSession,
        car_id: UUID,
        start_date: date,
        end_date: date,
        exclude_booking_id: UUID | None = None,
    ) -> list[BookingSummary]:
        """Active bookings on the car that overlap [start_date, end_date), by start date."""
        query = _conflicts_query(car_id, start_date, end_date, exclude_booking_id).order_by(
            Booking.start_date
        )
        result = await db.execute(query)
        return [BookingSummary.model_validate(b) for b in result.scalars().all()]
