"""Celery background tasks."""

import asyncio

from celery import shared_task
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetbook.config import Settings, get_settings
from fleetbook.database import close_db, get_engine, get_session_factory
from fleetbook.engine import build_booking_engine
from fleetbook.schemas.booking import SweepReport


@shared_task(bind=True, max_retries=3)
def expire_overdue_bookings(self):
    """Expire every active booking past its hold deadline.

    Runs every `sweeper_interval_seconds` via beat. The sweep itself never
    raises; a retry only happens when the engine cannot be set up.
    """
    try:
        report = asyncio.run(_expire_overdue_bookings(get_settings()))
        return report.model_dump()
    except Exception as exc:
        self.retry(exc=exc, countdown=60)


async def _expire_overdue_bookings(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> SweepReport:
    """Async implementation of the expiration task."""
    if session_factory is not None:
        engine = build_booking_engine(session_factory, settings=settings)
        return await engine.sweeper.sweep()

    db_engine = get_engine(settings)
    try:
        engine = build_booking_engine(get_session_factory(db_engine), settings=settings)
        return await engine.sweeper.sweep()
    finally:
        await close_db(db_engine)
