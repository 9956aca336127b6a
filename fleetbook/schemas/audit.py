"""Audit event schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel

from fleetbook.schemas.booking import BookingRead


class BookingAction(str, Enum):
    """Audited booking events."""

    CREATED = "booking_created"
    UPDATED = "booking_updated"
    DEPOSIT_RECORDED = "booking_deposit_recorded"
    CONFIRMED = "booking_confirmed"
    CANCELLED = "booking_cancelled"
    CONVERTED = "booking_converted"
    EXPIRED = "booking_expired"


class BookingAuditEvent(BaseModel):
    """Fixed before/after snapshot of one booking change."""

    action: BookingAction
    booking_id: UUID
    booking_reference: str
    actor_id: UUID | None = None
    occurred_at: datetime
    before: BookingRead | None = None
    after: BookingRead
