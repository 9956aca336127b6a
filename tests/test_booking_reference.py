from datetime import UTC, date, datetime

import pytest

from fleetbook.core.exceptions import BookingConflictError
from fleetbook.utils.booking_reference import format_booking_reference


def test_format():
    assert format_booking_reference("BKG", 2026, 43) == "BKG-2026-00043"
    assert format_booking_reference("BKG", 2026, 123456) == "BKG-2026-123456"


@pytest.mark.asyncio
async def test_sequential_creations_get_consecutive_numbers(manager, vehicles, make_request):
    references = []
    for _ in range(5):
        car = vehicles.add()
        booking = await manager.create_booking(make_request(car_id=car.id))
        references.append(booking.booking_reference)

    assert references == [f"BKG-2026-{n:05d}" for n in range(1, 6)]


@pytest.mark.asyncio
async def test_sequence_restarts_each_year(manager, clock, make_request):
    first = await manager.create_booking(make_request())

    clock.set(datetime(2027, 1, 2, 9, 0, tzinfo=UTC))
    second = await manager.create_booking(
        make_request(start_date=date(2027, 2, 1), end_date=date(2027, 2, 3))
    )

    assert first.booking_reference == "BKG-2026-00001"
    assert second.booking_reference == "BKG-2027-00001"


@pytest.mark.asyncio
async def test_failed_creation_does_not_consume_a_number(manager, make_request):
    await manager.create_booking(make_request())
    with pytest.raises(BookingConflictError):
        await manager.create_booking(make_request())

    booking = await manager.create_booking(
        make_request(start_date=date(2026, 4, 1), end_date=date(2026, 4, 3))
    )
    assert booking.booking_reference == "BKG-2026-00002"
