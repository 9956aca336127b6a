"""Concurrent creation against a file-backed database with a real connection pool."""

import asyncio
from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from fleetbook.core.exceptions import BookingConflictError
from fleetbook.database import get_session_factory, init_db
from fleetbook.engine import build_booking_engine


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}",
        connect_args={"timeout": 30},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def pooled_manager(file_engine, vehicles, customers, contracts, audit_sink, clock, settings):
    engine = build_booking_engine(
        get_session_factory(file_engine),
        vehicles=vehicles,
        customers=customers,
        contracts=contracts,
        audit_sink=audit_sink,
        clock=clock,
        settings=settings,
    )
    return engine.manager


@pytest.mark.asyncio
async def test_concurrent_creations_get_unique_gap_free_references(pooled_manager, vehicles, make_request):
    requests = [make_request(car_id=vehicles.add().id) for _ in range(5)]

    bookings = await asyncio.gather(*(pooled_manager.create_booking(r) for r in requests))

    references = sorted(b.booking_reference for b in bookings)
    assert references == [f"BKG-2026-{n:05d}" for n in range(1, 6)]


@pytest.mark.asyncio
async def test_concurrent_overlapping_creations_allocate_the_car_once(pooled_manager, car, make_request):
    results = await asyncio.gather(
        pooled_manager.create_booking(make_request(date(2026, 3, 10), date(2026, 3, 14))),
        pooled_manager.create_booking(make_request(date(2026, 3, 12), date(2026, 3, 16))),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, BookingConflictError)]
    created = [r for r in results if not isinstance(r, Exception)]
    assert len(conflicts) == 1
    assert len(created) == 1
    assert [c.id for c in conflicts[0].conflicts] == [created[0].id]

    listing = await pooled_manager.list_bookings_for_car(car.id)
    assert listing.total == 1
