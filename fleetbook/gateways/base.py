"""Collaborator interfaces.

Adapters to the vehicle catalog, customer registry and contract service
implement these. Business logic should NOT live in adapters, only the
communication with the owning service.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from fleetbook.schemas.catalog import VehicleRecord
from fleetbook.schemas.contract import ContractRef, ContractSnapshot


class VehicleGateway(ABC):
    """Read access to the vehicle catalog."""

    @abstractmethod
    async def get_vehicle(self, car_id: UUID) -> VehicleRecord | None:
        """Fetch a car.

        Args:
            car_id: Catalog id of the car

        Returns:
            VehicleRecord with the current daily rate, or None if unknown
        """
        pass


class CustomerGateway(ABC):
    """Read access to the customer registry."""

    @abstractmethod
    async def customer_exists(self, customer_id: UUID) -> bool:
        """Check that a customer record exists."""
        pass


class ContractGateway(ABC):
    """Write access to the contract service."""

    @abstractmethod
    async def create_contract(self, snapshot: ContractSnapshot) -> ContractRef:
        """Create a binding rental contract from a booking snapshot.

        Args:
            snapshot: Booking fields frozen at conversion time

        Returns:
            ContractRef with the new contract id

        Raises:
            Any exception if the contract could not be created
        """
        pass
