"""Expiration sweeper.

Finds active bookings whose hold deadline has passed and expires them in
batches, one bulk UPDATE per batch. It runs unattended: failures are logged
and counted, never raised, and the next tick picks up whatever is left.
"""

import logging
import time

from fleetbook.schemas.booking import SweepReport
from fleetbook.services.booking_service import BookingLifecycleManager

logger = logging.getLogger(__name__)


class ExpirationSweeper:
    """Bulk-expires overdue bookings through the lifecycle manager."""

    def __init__(
        self,
        manager: BookingLifecycleManager,
        batch_size: int = 100,
        max_batches: int = 50,
    ) -> None:
        self._manager = manager
        self._batch_size = batch_size
        self._max_batches = max_batches

    async def sweep(self) -> SweepReport:
        """Run one sweep.

        Returns:
            SweepReport with expired and failed counts
        """
        report = SweepReport()
        started = time.monotonic()

        while report.batches < self._max_batches:
            try:
                booking_ids = await self._manager.find_overdue_booking_ids(self._batch_size)
            except Exception as e:
                logger.error(f"Expiration sweep could not load overdue bookings: {e!r}")
                break

            if not booking_ids:
                break

            report.batches += 1
            try:
                result = await self._manager.bulk_expire(booking_ids)
            except Exception as e:
                report.failed_count += len(booking_ids)
                logger.warning(
                    f"Expiration batch of {len(booking_ids)} booking(s) failed, "
                    f"retrying next tick: {e!r}"
                )
                break

            report.expired_count += result.expired_count
            if result.skipped_ids:
                logger.debug(f"Skipped {len(result.skipped_ids)} booking(s) changed since selection")

            # Short batch means the backlog is drained; no progress means the
            # remaining rows are contended and will be retried next tick
            if len(booking_ids) < self._batch_size or result.expired_count == 0:
                break

        duration_ms = int((time.monotonic() - started) * 1000)
        if report.expired_count or report.failed_count:
            logger.info(
                f"Expiration sweep finished: expired={report.expired_count}, "
                f"failed={report.failed_count}, batches={report.batches}, duration={duration_ms}ms"
            )
        else:
            logger.debug(f"Expiration sweep found nothing to expire ({duration_ms}ms)")
        return report
