"""Booking audit emission.

Events are fire-and-forget: a failing or slow sink is logged and never
affects the booking operation that produced the event.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from fleetbook.schemas.audit import BookingAction, BookingAuditEvent
from fleetbook.schemas.booking import BookingRead

logger = logging.getLogger(__name__)


class AuditSink(ABC):
    """Destination for booking audit events."""

    @abstractmethod
    async def emit(self, event: BookingAuditEvent) -> None:
        pass


class LoggingAuditSink(AuditSink):
    """Writes audit events to the `fleetbook.audit` logger."""

    def __init__(self, logger_name: str = "fleetbook.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    async def emit(self, event: BookingAuditEvent) -> None:
        before_status = event.before.status.value if event.before else None
        self._logger.info(
            f"{event.action.value} booking={event.booking_reference} "
            f"status={before_status}->{event.after.status.value} actor={event.actor_id}",
            extra={"audit_event": event.model_dump(mode="json")},
        )


class AuditService:
    """Builds audit events and hands them to the sink without propagating failures."""

    def __init__(self, sink: AuditSink, timeout_seconds: float = 2.0) -> None:
        self._sink = sink
        self._timeout_seconds = timeout_seconds

    async def record(
        self,
        action: BookingAction,
        after: BookingRead,
        occurred_at: datetime,
        before: BookingRead | None = None,
        actor_id: UUID | None = None,
    ) -> None:
        """Emit one booking event. Never raises."""
        try:
            event = BookingAuditEvent(
                action=action,
                booking_id=after.id,
                booking_reference=after.booking_reference,
                actor_id=actor_id,
                occurred_at=occurred_at,
                before=before,
                after=after,
            )
            await asyncio.wait_for(self._sink.emit(event), timeout=self._timeout_seconds)
        except Exception as e:
            logger.warning(
                f"Audit emission failed for {action.value} on booking "
                f"{after.booking_reference}: {e!r}"
            )
