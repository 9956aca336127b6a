"""Booking reference generation.

References look like BKG-2026-00043: prefix, calendar year and a 1-based,
zero-padded sequence that restarts every year. The sequence lives in a
per-year counter row that is incremented in the caller's transaction, so
concurrent creations never share a number and a rolled-back booking gives
its number back.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fleetbook.database import insert_if_missing
from fleetbook.models.booking import BookingReferenceCounter

SEQUENCE_WIDTH = 5


def format_booking_reference(prefix: str, year: int, sequence: int) -> str:
    """Format a reference.

    >>> format_booking_reference("BKG", 2026, 43)
    'BKG-2026-00043'
    """
    return f"{prefix}-{year}-{sequence:0{SEQUENCE_WIDTH}d}"


async def next_sequence(db: AsyncSession, year: int) -> int:
    """Atomically allocate the next sequence number for a year.

    The UPDATE takes the counter row lock, which is held until the caller's
    transaction ends.
    """
    await insert_if_missing(
        db,
        BookingReferenceCounter,
        {"year": year, "last_value": 0},
        index_elements=["year"],
    )
    await db.execute(
        update(BookingReferenceCounter)
        .where(BookingReferenceCounter.year == year)
        .values(last_value=BookingReferenceCounter.last_value + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(
        select(BookingReferenceCounter.last_value).where(BookingReferenceCounter.year == year)
    )
    return result.scalar_one()


async def generate_booking_reference(db: AsyncSession, year: int, prefix: str = "BKG") -> str:
    """Generate the next booking reference for the given year.

    Args:
        db: Session with an open transaction
        year: Calendar year of creation
        prefix: Reference prefix

    Returns:
        str: Reference like 'BKG-2026-00001'
    """
    sequence = await next_sequence(db, year)
    return format_booking_reference(prefix, year, sequence)
