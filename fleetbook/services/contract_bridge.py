"""Bridge from a confirmed booking to a binding contract."""

import logging
from decimal import Decimal

from fleetbook.core.exceptions import ExternalServiceError
from fleetbook.gateways.base import ContractGateway
from fleetbook.models.booking import Booking
from fleetbook.schemas.booking import BookingExtra
from fleetbook.schemas.contract import ContractRef, ContractSnapshot

logger = logging.getLogger(__name__)


class ContractConversionBridge:
    """Builds the conversion snapshot and creates the contract."""

    def __init__(self, gateway: ContractGateway) -> None:
        self._gateway = gateway

    def build_snapshot(self, booking: Booking, daily_rate: Decimal) -> ContractSnapshot:
        """Freeze the booking fields a contract needs.

        Args:
            booking: Booking being converted
            daily_rate: Car's daily rate at conversion time
        """
        return ContractSnapshot(
            source_booking_id=booking.id,
            booking_reference=booking.booking_reference,
            customer_id=booking.customer_id,
            car_id=booking.car_id,
            start_date=booking.start_date,
            end_date=booking.end_date,
            daily_rate=daily_rate,
            total_amount=booking.total_estimated_cost,
            deposit_amount=booking.deposit_amount,
            deposit_paid=booking.deposit_paid,
            pickup_location=booking.pickup_location,
            dropoff_location=booking.dropoff_location,
            additional_drivers=list(booking.additional_drivers or []),
            extras=[BookingExtra.model_validate(e) for e in booking.extras or []],
            notes=booking.notes,
        )

    async def create_contract(self, snapshot: ContractSnapshot) -> ContractRef:
        """Create the contract; any gateway failure becomes ExternalServiceError."""
        try:
            contract = await self._gateway.create_contract(snapshot)
        except ExternalServiceError:
            raise
        except Exception as e:
            logger.error(
                f"Contract creation failed for booking {snapshot.booking_reference}: {e!r}"
            )
            raise ExternalServiceError("contracts", str(e)) from e

        logger.info(
            f"Contract {contract.id} created for booking {snapshot.booking_reference}"
        )
        return contract
