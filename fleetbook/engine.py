"""Composition root for the booking engine.

The host process builds one engine at startup and passes it to whatever
transport or scheduler drives it. Nothing here is created at import time.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetbook.config import Settings, get_settings
from fleetbook.core.clock import Clock, SystemClock
from fleetbook.gateways.base import ContractGateway, CustomerGateway, VehicleGateway
from fleetbook.services.audit_service import AuditService, AuditSink, LoggingAuditSink
from fleetbook.services.availability_service import AvailabilityService
from fleetbook.services.booking_service import BookingLifecycleManager
from fleetbook.services.contract_bridge import ContractConversionBridge
from fleetbook.services.expiration_service import ExpirationSweeper


@dataclass
class BookingEngine:
    """Wired engine components."""

    manager: BookingLifecycleManager
    sweeper: ExpirationSweeper
    availability: AvailabilityService
    clock: Clock
    settings: Settings


def build_booking_engine(
    session_factory: async_sessionmaker[AsyncSession],
    vehicles: VehicleGateway | None = None,
    customers: CustomerGateway | None = None,
    contracts: ContractGateway | None = None,
    audit_sink: AuditSink | None = None,
    clock: Clock | None = None,
    settings: Settings | None = None,
) -> BookingEngine:
    """Create the booking engine from explicit collaborators.

    Args:
        session_factory: Async session factory bound to the bookings database
        vehicles: Vehicle catalog adapter (required for create, update, convert)
        customers: Customer registry adapter (required for create)
        contracts: Contract service adapter (required for convert)
        audit_sink: Audit destination, defaults to logging
        clock: Time source, defaults to the system clock
        settings: Engine settings, defaults to environment settings

    Returns:
        BookingEngine: Manager, sweeper and availability index sharing one clock
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    availability = AvailabilityService()
    audit = AuditService(
        audit_sink or LoggingAuditSink(),
        timeout_seconds=settings.audit_emit_timeout_seconds,
    )

    manager = BookingLifecycleManager(
        session_factory=session_factory,
        availability=availability,
        audit=audit,
        clock=clock,
        settings=settings,
        vehicles=vehicles,
        customers=customers,
        contract_bridge=ContractConversionBridge(contracts) if contracts else None,
    )
    sweeper = ExpirationSweeper(manager, batch_size=settings.sweeper_batch_size)

    return BookingEngine(
        manager=manager,
        sweeper=sweeper,
        availability=availability,
        clock=clock,
        settings=settings,
    )
