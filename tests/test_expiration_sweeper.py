import asyncio
import logging
from datetime import date, timedelta

import pytest

from fleetbook.core.background_tasks import ExpirationScheduler
from fleetbook.domain.booking_state import BookingStatus
from fleetbook.schemas.audit import BookingAction
from fleetbook.services.expiration_service import ExpirationSweeper
from fleetbook.tasks import _expire_overdue_bookings


async def create_many(manager, vehicles, make_request, count):
    bookings = []
    for _ in range(count):
        car = vehicles.add()
        bookings.append(await manager.create_booking(make_request(car_id=car.id)))
    return bookings


@pytest.mark.asyncio
async def test_sweep_expires_overdue_active_bookings(booking_engine, vehicles, clock, make_request, audit_sink):
    manager = booking_engine.manager
    pending, to_confirm = await create_many(manager, vehicles, make_request, 2)
    await manager.record_deposit_payment(to_confirm.id)
    await manager.confirm_booking(to_confirm.id)
    later_car = vehicles.add()
    later = await manager.create_booking(
        make_request(date(2026, 3, 20), date(2026, 3, 22), car_id=later_car.id)
    )

    clock.advance(timedelta(days=7, seconds=1))
    report = await booking_engine.sweeper.sweep()

    assert report.expired_count == 3
    assert report.failed_count == 0
    for booking in (pending, to_confirm, later):
        assert (await manager.get_booking(booking.id)).status == BookingStatus.EXPIRED
    expired_events = [e for e in audit_sink.events if e.action == BookingAction.EXPIRED]
    assert len(expired_events) == 3
    assert {e.before.status for e in expired_events} == {BookingStatus.PENDING, BookingStatus.CONFIRMED}


@pytest.mark.asyncio
async def test_sweep_leaves_bookings_inside_their_hold(booking_engine, make_request):
    booking = await booking_engine.manager.create_booking(make_request())

    report = await booking_engine.sweeper.sweep()

    assert report.expired_count == 0
    assert report.batches == 0
    assert (await booking_engine.manager.get_booking(booking.id)).status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_sweep_is_idempotent(booking_engine, vehicles, clock, make_request):
    await create_many(booking_engine.manager, vehicles, make_request, 3)
    clock.advance(timedelta(days=8))

    first = await booking_engine.sweeper.sweep()
    second = await booking_engine.sweeper.sweep()

    assert first.expired_count == 3
    assert second.expired_count == 0
    assert second.failed_count == 0


@pytest.mark.asyncio
async def test_sweep_never_touches_terminal_bookings(booking_engine, vehicles, clock, make_request):
    manager = booking_engine.manager
    cancelled, overdue = await create_many(manager, vehicles, make_request, 2)
    cancelled = await manager.cancel_booking(cancelled.id, "customer changed travel plans")
    clock.advance(timedelta(days=8))

    result = await manager.bulk_expire([cancelled.id, overdue.id])

    assert result.expired_ids == [overdue.id]
    assert result.skipped_ids == [cancelled.id]
    assert await manager.get_booking(cancelled.id) == cancelled


@pytest.mark.asyncio
async def test_bulk_expire_rechecks_deadline(booking_engine, make_request):
    booking = await booking_engine.manager.create_booking(make_request())

    result = await booking_engine.manager.bulk_expire([booking.id])

    assert result.expired_count == 0
    assert result.skipped_ids == [booking.id]


@pytest.mark.asyncio
async def test_sweep_processes_in_batches(booking_engine, vehicles, clock, make_request):
    await create_many(booking_engine.manager, vehicles, make_request, 5)
    clock.advance(timedelta(days=8))
    sweeper = ExpirationSweeper(booking_engine.manager, batch_size=2)

    report = await sweeper.sweep()

    assert report.expired_count == 5
    assert report.batches == 3


@pytest.mark.asyncio
async def test_failed_batch_is_counted_not_raised(booking_engine, vehicles, clock, make_request, monkeypatch, caplog):
    bookings = await create_many(booking_engine.manager, vehicles, make_request, 2)
    clock.advance(timedelta(days=8))

    async def broken(booking_ids):
        raise RuntimeError("deadlock detected")

    monkeypatch.setattr(booking_engine.manager, "bulk_expire", broken)
    with caplog.at_level(logging.WARNING, logger="fleetbook.services.expiration_service"):
        report = await booking_engine.sweeper.sweep()

    assert report.expired_count == 0
    assert report.failed_count == 2
    assert "deadlock detected" in caplog.text
    for booking in bookings:
        assert (await booking_engine.manager.get_booking(booking.id)).status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_scheduler_sweeps_until_stopped(booking_engine, clock, make_request, monkeypatch):
    booking = await booking_engine.manager.create_booking(make_request())
    clock.advance(timedelta(days=8))
    sweeper = booking_engine.sweeper
    swept = asyncio.Event()
    original_sweep = sweeper.sweep

    async def sweep_and_signal():
        report = await original_sweep()
        swept.set()
        return report

    monkeypatch.setattr(sweeper, "sweep", sweep_and_signal)
    scheduler = ExpirationScheduler(sweeper, interval_seconds=0.01)

    scheduler.start()
    assert scheduler.running
    await asyncio.wait_for(swept.wait(), timeout=5)
    await scheduler.stop()

    assert not scheduler.running
    assert (await booking_engine.manager.get_booking(booking.id)).status == BookingStatus.EXPIRED


@pytest.mark.asyncio
async def test_celery_task_body_sweeps(session_factory, booking_engine, settings, make_request):
    booking = await booking_engine.manager.create_booking(
        make_request(date(2026, 3, 2), date(2026, 3, 4))
    )

    # The task runs on the system clock, long past this hold
    report = await _expire_overdue_bookings(settings, session_factory=session_factory)

    assert report.expired_count == 1
    assert (await booking_engine.manager.get_booking(booking.id)).status == BookingStatus.EXPIRED
