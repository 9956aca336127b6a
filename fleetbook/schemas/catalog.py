"""Read-only views of catalog records owned by other services."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

VEHICLE_AVAILABLE = "available"


class VehicleRecord(BaseModel):
    """Car as seen by the booking engine."""

    id: UUID
    daily_rate: Decimal
    catalog_status: str

    @property
    def is_bookable(self) -> bool:
        return self.catalog_status == VEHICLE_AVAILABLE
