"""Shared fixtures: in-memory database, fake collaborators and a frozen clock."""

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from fleetbook.config import Settings
from fleetbook.core.clock import FixedClock
from fleetbook.database import get_session_factory, init_db
from fleetbook.engine import build_booking_engine
from fleetbook.gateways.base import ContractGateway, CustomerGateway, VehicleGateway
from fleetbook.schemas.audit import BookingAuditEvent
from fleetbook.schemas.booking import BookingCreate, BookingExtra
from fleetbook.schemas.catalog import VehicleRecord
from fleetbook.schemas.contract import ContractRef, ContractSnapshot
from fleetbook.services.audit_service import AuditSink

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


class FakeVehicleGateway(VehicleGateway):
    def __init__(self) -> None:
        self.vehicles: dict[uuid.UUID, VehicleRecord] = {}

    def add(self, daily_rate: str = "50", catalog_status: str = "available") -> VehicleRecord:
        vehicle = VehicleRecord(
            id=uuid.uuid4(), daily_rate=Decimal(daily_rate), catalog_status=catalog_status
        )
        self.vehicles[vehicle.id] = vehicle
        return vehicle

    async def get_vehicle(self, car_id: uuid.UUID) -> VehicleRecord | None:
        return self.vehicles.get(car_id)


class FakeCustomerGateway(CustomerGateway):
    def __init__(self) -> None:
        self.customers: set[uuid.UUID] = set()

    def add(self) -> uuid.UUID:
        customer_id = uuid.uuid4()
        self.customers.add(customer_id)
        return customer_id

    async def customer_exists(self, customer_id: uuid.UUID) -> bool:
        return customer_id in self.customers


class FakeContractGateway(ContractGateway):
    def __init__(self) -> None:
        self.created: list[tuple[ContractRef, ContractSnapshot]] = []
        self.error: Exception | None = None

    async def create_contract(self, snapshot: ContractSnapshot) -> ContractRef:
        if self.error:
            raise self.error
        contract = ContractRef(id=uuid.uuid4())
        self.created.append((contract, snapshot))
        return contract


class RecordingAuditSink(AuditSink):
    def __init__(self) -> None:
        self.events: list[BookingAuditEvent] = []
        self.error: Exception | None = None

    async def emit(self, event: BookingAuditEvent) -> None:
        if self.error:
            raise self.error
        self.events.append(event)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def vehicles() -> FakeVehicleGateway:
    return FakeVehicleGateway()


@pytest.fixture
def customers() -> FakeCustomerGateway:
    return FakeCustomerGateway()


@pytest.fixture
def contracts() -> FakeContractGateway:
    return FakeContractGateway()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory(db_engine)


@pytest.fixture
def booking_engine(session_factory, vehicles, customers, contracts, audit_sink, clock, settings):
    return build_booking_engine(
        session_factory,
        vehicles=vehicles,
        customers=customers,
        contracts=contracts,
        audit_sink=audit_sink,
        clock=clock,
        settings=settings,
    )


@pytest.fixture
def manager(booking_engine):
    return booking_engine.manager


@pytest.fixture
def car(vehicles) -> VehicleRecord:
    return vehicles.add(daily_rate="50")


@pytest.fixture
def customer_id(customers) -> uuid.UUID:
    return customers.add()


@pytest.fixture
def make_request(car, customer_id):
    """Build a BookingCreate for the default car and customer."""

    def _make(
        start_date: date = date(2026, 3, 10),
        end_date: date = date(2026, 3, 14),
        extras: list[BookingExtra] | None = None,
        car_id: uuid.UUID | None = None,
        **kwargs,
    ) -> BookingCreate:
        return BookingCreate(
            car_id=car_id or car.id,
            customer_id=customer_id,
            start_date=start_date,
            end_date=end_date,
            extras=extras or [],
            **kwargs,
        )

    return _make
