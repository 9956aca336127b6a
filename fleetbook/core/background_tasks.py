"""In-process scheduler for the expiration sweeper."""

import asyncio
import logging

from fleetbook.services.expiration_service import ExpirationSweeper

logger = logging.getLogger(__name__)


async def expiry_loop(
    sweeper: ExpirationSweeper,
    stop_event: asyncio.Event,
    interval_seconds: float,
) -> None:
    """Sweep every `interval_seconds` until stop_event is set."""
    logger.info(f"Booking expiration scheduler started (interval={interval_seconds}s)")

    while not stop_event.is_set():
        try:
            await sweeper.sweep()
        except Exception as e:
            logger.error(f"Scheduled expiration sweep error: {e!r}")

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue

    logger.info("Booking expiration scheduler stopped")


class ExpirationScheduler:
    """Owns the background sweep task for an asyncio host process."""

    def __init__(self, sweeper: ExpirationSweeper, interval_seconds: float) -> None:
        self._sweeper = sweeper
        self._interval_seconds = interval_seconds
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(
            expiry_loop(self._sweeper, self._stop_event, self._interval_seconds)
        )

    async def stop(self) -> None:
        """Signal the loop and wait for the current sweep to finish."""
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
