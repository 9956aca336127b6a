"""Engine schemas."""

from fleetbook.schemas.audit import BookingAction, BookingAuditEvent
from fleetbook.schemas.booking import (
    BookingCreate,
    BookingExtra,
    BookingExtraType,
    BookingListResponse,
    BookingRead,
    BookingStatistics,
    BookingSummary,
    BookingUpdate,
    BulkExpireResult,
    SweepReport,
)
from fleetbook.schemas.catalog import VehicleRecord
from fleetbook.schemas.contract import ContractRef, ContractSnapshot, ConversionResult

__all__ = [
    # Booking
    "BookingCreate",
    "BookingExtra",
    "BookingExtraType",
    "BookingListResponse",
    "BookingRead",
    "BookingStatistics",
    "BookingSummary",
    "BookingUpdate",
    "BulkExpireResult",
    "SweepReport",
    # Catalog
    "VehicleRecord",
    # Contract
    "ContractRef",
    "ContractSnapshot",
    "ConversionResult",
    # Audit
    "BookingAction",
    "BookingAuditEvent",
]
