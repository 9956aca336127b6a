"""Booking lifecycle manager.

Owns creation, edits, every status transition, bulk expiration and contract
conversion. Each mutating operation runs in one database transaction; writes
that change which dates a car is held for take the car's allocation lock
before checking for conflicts.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from fleetbook.config import Settings
from fleetbook.core.clock import Clock
from fleetbook.core.exceptions import (
    BookingConflictError,
    BusinessRuleViolation,
    ConcurrentModificationError,
    ExternalServiceError,
    NotFoundError,
    OrphanedContractError,
    ValidationError,
    VehicleNotAvailable,
)
from fleetbook.database import get_db_context
from fleetbook.domain.booking_policy import (
    calculate_expires_at,
    clamp_expires_at,
    validate_cancellation_reason,
    validate_date_range,
)
from fleetbook.domain.booking_state import (
    BookingStatus,
    assert_hold_active,
    assert_not_terminal,
    assert_transition_allowed,
)
from fleetbook.domain.pricing import calculate_default_deposit, calculate_total
from fleetbook.gateways.base import CustomerGateway, VehicleGateway
from fleetbook.models.booking import Booking
from fleetbook.schemas.audit import BookingAction
from fleetbook.schemas.booking import (
    BookingCreate,
    BookingExtra,
    BookingListResponse,
    BookingRead,
    BookingStatistics,
    BookingSummary,
    BookingUpdate,
    BulkExpireResult,
)
from fleetbook.schemas.catalog import VehicleRecord
from fleetbook.schemas.contract import ContractRef, ConversionResult
from fleetbook.services.audit_service import AuditService
from fleetbook.services.availability_service import HOLDING_STATUSES, AvailabilityService
from fleetbook.services.contract_bridge import ContractConversionBridge
from fleetbook.utils.booking_reference import generate_booking_reference

logger = logging.getLogger(__name__)

TRANSITION_ACTIONS = {
    BookingStatus.CONFIRMED: BookingAction.CONFIRMED,
    BookingStatus.CANCELLED: BookingAction.CANCELLED,
    BookingStatus.CONVERTED: BookingAction.CONVERTED,
    BookingStatus.EXPIRED: BookingAction.EXPIRED,
}

# Plain fields copied from BookingUpdate when explicitly set
_EDITABLE_FIELDS = ("pickup_location", "dropoff_location", "notes")
_NON_NULLABLE_EDITABLE_FIELDS = ("deposit_amount", "deposit_paid", "additional_drivers")


class BookingLifecycleManager:
    """Single source of truth for booking state changes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        availability: AvailabilityService,
        audit: AuditService,
        clock: Clock,
        settings: Settings,
        vehicles: VehicleGateway | None = None,
        customers: CustomerGateway | None = None,
        contract_bridge: ContractConversionBridge | None = None,
    ) -> None:
        """Gateways may be omitted by processes that only expire bookings."""
        self._session_factory = session_factory
        self._vehicles = vehicles
        self._customers = customers
        self._contract_bridge = contract_bridge
        self._availability = availability
        self._audit = audit
        self._clock = clock
        self._settings = settings

    # ==================== INTERNALS ====================

    @asynccontextmanager
    async def _transaction(self, booking_id: UUID | None = None) -> AsyncGenerator[AsyncSession, None]:
        """Open a write transaction; version conflicts surface as typed errors."""
        try:
            async with get_db_context(self._session_factory) as db:
                yield db
        except StaleDataError as e:
            logger.warning(f"Concurrent modification detected for booking {booking_id}")
            raise ConcurrentModificationError(booking_id) from e

    async def _get_for_update(self, db: AsyncSession, booking_id: UUID) -> Booking:
        result = await db.execute(
            select(Booking).where(Booking.id == booking_id).with_for_update()
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def _get_vehicle(self, car_id: UUID) -> VehicleRecord:
        if self._vehicles is None:
            raise ExternalServiceError("vehicles", "no vehicle gateway configured")
        try:
            vehicle = await self._vehicles.get_vehicle(car_id)
        except Exception as e:
            raise ExternalServiceError("vehicles", str(e)) from e
        if vehicle is None:
            raise NotFoundError("Car", str(car_id))
        return vehicle

    async def _ensure_customer(self, customer_id: UUID) -> None:
        if self._customers is None:
            raise ExternalServiceError("customers", "no customer gateway configured")
        try:
            exists = await self._customers.customer_exists(customer_id)
        except Exception as e:
            raise ExternalServiceError("customers", str(e)) from e
        if not exists:
            raise NotFoundError("Customer", str(customer_id))

    async def _ensure_car_free(
        self,
        db: AsyncSession,
        car_id: UUID,
        start_date: date,
        end_date: date,
        exclude_booking_id: UUID | None = None,
    ) -> None:
        await self._availability.lock_car(db, car_id, self._clock.now())
        conflicts = await self._availability.find_conflicts(
            db, car_id, start_date, end_date, exclude_booking_id
        )
        if conflicts:
            logger.info(
                f"Booking conflict on car {car_id} for {start_date}..{end_date}: "
                f"{[c.booking_reference for c in conflicts]}"
            )
            raise BookingConflictError(car_id, conflicts)

    def _apply_transition(
        self,
        booking: Booking,
        target: BookingStatus,
        reason: str | None = None,
    ) -> None:
        """Move a locked booking to target after checking the transition table."""
        now = self._clock.now()
        assert_transition_allowed(booking, target, now)

        if target == BookingStatus.CANCELLED:
            booking.cancellation_reason = validate_cancellation_reason(
                reason, self._settings.cancellation_reason_min_length
            )
            booking.cancelled_at = now
        elif target == BookingStatus.CONFIRMED:
            booking.confirmed_at = now
        elif target == BookingStatus.CONVERTED:
            booking.converted_at = now

        booking.status = target.value

    async def _transition(
        self,
        booking_id: UUID,
        target: BookingStatus,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> BookingRead:
        async with self._transaction(booking_id) as db:
            booking = await self._get_for_update(db, booking_id)
            before = BookingRead.model_validate(booking)

            self._apply_transition(booking, target, reason)
            booking.updated_by = actor_id
            booking.updated_at = self._clock.now()
            await db.flush()
            after = BookingRead.model_validate(booking)

        logger.info(
            f"Booking {after.booking_reference}: {before.status.value} → {after.status.value}"
        )
        await self._audit.record(
            TRANSITION_ACTIONS[target], after, self._clock.now(), before=before, actor_id=actor_id
        )
        return after

    # ==================== CREATE / UPDATE ====================

    async def create_booking(self, data: BookingCreate, actor_id: UUID | None = None) -> BookingRead:
        """Create a PENDING booking.

        Business rules:
        1. Customer exists
        2. Car exists and its catalog status is available
        3. Dates are valid (not in the past, end after start, max duration)
        4. No active booking on the car overlaps the range
        5. Total is priced from the car's daily rate and the extras
        6. Reference comes from the atomic yearly counter
        7. Hold expires after the hold period or one lead time before pickup
        8. Deposit defaults to a percentage of the total

        Raises:
            NotFoundError: Customer or car missing
            VehicleNotAvailable: Car is not bookable
            ValidationError: Invalid date range
            BookingConflictError: Overlapping active bookings
        """
        await self._ensure_customer(data.customer_id)
        vehicle = await self._get_vehicle(data.car_id)
        if not vehicle.is_bookable:
            raise VehicleNotAvailable(vehicle.id, vehicle.catalog_status)

        now = self._clock.now()
        validate_date_range(
            data.start_date, data.end_date, now.date(), self._settings.booking_max_duration_days
        )

        async with self._transaction() as db:
            await self._ensure_car_free(db, data.car_id, data.start_date, data.end_date)

            total = calculate_total(vehicle.daily_rate, data.start_date, data.end_date, data.extras)
            deposit = data.deposit_amount
            if deposit is None:
                deposit = calculate_default_deposit(total, self._settings.default_deposit_percent)
            reference = await generate_booking_reference(
                db, now.year, self._settings.booking_reference_prefix
            )

            booking = Booking(
                booking_reference=reference,
                car_id=data.car_id,
                customer_id=data.customer_id,
                start_date=data.start_date,
                end_date=data.end_date,
                status=BookingStatus.PENDING.value,
                total_estimated_cost=total,
                deposit_amount=deposit,
                deposit_paid=False,
                extras=[extra.model_dump(mode="json") for extra in data.extras],
                pickup_location=data.pickup_location,
                dropoff_location=data.dropoff_location,
                additional_drivers=list(data.additional_drivers),
                notes=data.notes,
                expires_at=calculate_expires_at(
                    now,
                    data.start_date,
                    self._settings.booking_hold_days,
                    self._settings.booking_expiry_lead_hours,
                ),
                created_by=actor_id,
                created_at=now,
            )
            db.add(booking)
            await db.flush()
            after = BookingRead.model_validate(booking)

        logger.info(
            f"Booking {after.booking_reference} created for car {after.car_id} "
            f"({after.start_date}..{after.end_date}, total={after.total_estimated_cost})"
        )
        await self._audit.record(BookingAction.CREATED, after, now, actor_id=actor_id)
        return after

    async def update_booking(
        self,
        booking_id: UUID,
        data: BookingUpdate,
        actor_id: UUID | None = None,
    ) -> BookingRead:
        """Edit a non-terminal booking.

        Date changes are re-validated and re-checked for conflicts with the
        booking itself excluded. Date or extras changes reprice the booking
        from the car's current rate. A status in the same request must be a
        legal transition; conversion is only possible via convert_to_contract.
        Once the hold has lapsed only cancellation or expiry is accepted.
        """
        fields = data.model_fields_set
        now = self._clock.now()

        async with self._transaction(booking_id) as db:
            booking = await self._get_for_update(db, booking_id)
            assert_not_terminal(booking)
            before = BookingRead.model_validate(booking)

            target: BookingStatus | None = None
            if data.status is not None and data.status != BookingStatus(booking.status):
                target = data.status
                if target == BookingStatus.CONVERTED:
                    raise BusinessRuleViolation(
                        f"Booking {booking.booking_reference} can only be converted through contract conversion",
                        booking_id=booking.id,
                        booking_reference=booking.booking_reference,
                        current_status=booking.status,
                        attempted_status=target.value,
                    )

            if target not in (BookingStatus.CANCELLED, BookingStatus.EXPIRED):
                assert_hold_active(booking, now)

            start_date = data.start_date if data.start_date is not None else booking.start_date
            end_date = data.end_date if data.end_date is not None else booking.end_date
            dates_changed = (start_date, end_date) != (booking.start_date, booking.end_date)
            extras_changed = "extras" in fields and data.extras is not None

            if dates_changed:
                validate_date_range(
                    start_date, end_date, now.date(), self._settings.booking_max_duration_days
                )
                await self._ensure_car_free(
                    db, booking.car_id, start_date, end_date, exclude_booking_id=booking.id
                )
                booking.start_date = start_date
                booking.end_date = end_date
                booking.expires_at = clamp_expires_at(
                    booking.expires_at, start_date, self._settings.booking_expiry_lead_hours
                )

            if extras_changed:
                booking.extras = [extra.model_dump(mode="json") for extra in data.extras]

            if dates_changed or extras_changed:
                vehicle = await self._get_vehicle(booking.car_id)
                booking.total_estimated_cost = calculate_total(
                    vehicle.daily_rate,
                    booking.start_date,
                    booking.end_date,
                    [BookingExtra.model_validate(e) for e in booking.extras],
                )

            for name in _EDITABLE_FIELDS:
                if name in fields:
                    setattr(booking, name, getattr(data, name))
            for name in _NON_NULLABLE_EDITABLE_FIELDS:
                value = getattr(data, name)
                if name in fields and value is not None:
                    setattr(booking, name, value)

            if target is not None:
                self._apply_transition(booking, target, data.cancellation_reason)

            booking.updated_by = actor_id
            booking.updated_at = now
            await db.flush()
            after = BookingRead.model_validate(booking)

        action = TRANSITION_ACTIONS[target] if target is not None else BookingAction.UPDATED
        logger.info(f"Booking {after.booking_reference} updated ({action.value})")
        await self._audit.record(action, after, now, before=before, actor_id=actor_id)
        return after

    async def record_deposit_payment(
        self,
        booking_id: UUID,
        paid: bool = True,
        actor_id: UUID | None = None,
    ) -> BookingRead:
        """Flip the deposit flag on behalf of the payment collaborator."""
        now = self._clock.now()
        async with self._transaction(booking_id) as db:
            booking = await self._get_for_update(db, booking_id)
            assert_not_terminal(booking)
            assert_hold_active(booking, now, "paid")
            before = BookingRead.model_validate(booking)

            booking.deposit_paid = paid
            booking.updated_by = actor_id
            booking.updated_at = now
            await db.flush()
            after = BookingRead.model_validate(booking)

        await self._audit.record(
            BookingAction.DEPOSIT_RECORDED, after, now, before=before, actor_id=actor_id
        )
        return after

    # ==================== TRANSITIONS ====================

    async def confirm_booking(self, booking_id: UUID, actor_id: UUID | None = None) -> BookingRead:
        """Confirm a pending booking whose deposit is paid and hold has not lapsed."""
        return await self._transition(booking_id, BookingStatus.CONFIRMED, actor_id)

    async def cancel_booking(
        self,
        booking_id: UUID,
        reason: str,
        actor_id: UUID | None = None,
    ) -> BookingRead:
        """Cancel an active booking. Cancelling twice is an error, not a no-op."""
        return await self._transition(booking_id, BookingStatus.CANCELLED, actor_id, reason=reason)

    async def expire_booking(self, booking_id: UUID, actor_id: UUID | None = None) -> BookingRead:
        """Expire one overdue booking outside the sweeper."""
        return await self._transition(booking_id, BookingStatus.EXPIRED, actor_id)

    async def find_overdue_booking_ids(self, limit: int) -> list[UUID]:
        """Active bookings past their hold deadline, oldest deadline first."""
        now = self._clock.now()
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking.id)
                .where(
                    Booking.status.in_(HOLDING_STATUSES),
                    Booking.expires_at < now,
                )
                .order_by(Booking.expires_at)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def bulk_expire(self, booking_ids: list[UUID]) -> BulkExpireResult:
        """Expire overdue bookings with one UPDATE statement.

        The statement re-checks status and deadline, so ids that were
        cancelled, converted or already expired in the meantime are skipped.
        """
        if not booking_ids:
            return BulkExpireResult()

        now = self._clock.now()
        async with self._transaction() as db:
            result = await db.execute(select(Booking).where(Booking.id.in_(booking_ids)))
            before = {b.id: BookingRead.model_validate(b) for b in result.scalars().all()}

            await db.execute(
                update(Booking)
                .where(
                    Booking.id.in_(booking_ids),
                    Booking.status.in_(HOLDING_STATUSES),
                    Booking.expires_at < now,
                )
                .values(
                    status=BookingStatus.EXPIRED.value,
                    updated_at=now,
                    updated_by=None,
                    version=Booking.version + 1,
                )
                .execution_options(synchronize_session=False)
            )

            result = await db.execute(
                select(Booking)
                .where(Booking.id.in_(booking_ids))
                .execution_options(populate_existing=True)
            )
            after = {b.id: BookingRead.model_validate(b) for b in result.scalars().all()}

        expired: list[BookingRead] = []
        skipped_ids: list[UUID] = []
        for booking_id in booking_ids:
            previous = before.get(booking_id)
            current = after.get(booking_id)
            if (
                previous is not None
                and current is not None
                and previous.status.value in HOLDING_STATUSES
                and current.status == BookingStatus.EXPIRED
            ):
                expired.append(current)
            else:
                skipped_ids.append(booking_id)

        if expired:
            logger.info(
                f"Expired {len(expired)} booking(s): {[b.booking_reference for b in expired]}"
            )
        for booking in expired:
            await self._audit.record(
                BookingAction.EXPIRED, booking, now, before=before[booking.id]
            )

        return BulkExpireResult(
            expired_ids=[b.id for b in expired],
            skipped_ids=skipped_ids,
        )

    # ==================== CONVERSION ====================

    async def convert_to_contract(
        self,
        booking_id: UUID,
        actor_id: UUID | None = None,
    ) -> ConversionResult:
        """Turn a confirmed, deposit-paid, unexpired booking into a contract.

        The contract is created first and the booking is then marked
        CONVERTED in the same transaction. If marking fails after the
        contract exists, OrphanedContractError is raised and logged at
        CRITICAL so the dangling contract can be reconciled.
        """
        contract: ContractRef | None = None
        reference = str(booking_id)

        try:
            async with self._transaction(booking_id) as db:
                booking = await self._get_for_update(db, booking_id)
                reference = booking.booking_reference
                before = BookingRead.model_validate(booking)
                assert_transition_allowed(booking, BookingStatus.CONVERTED, self._clock.now())

                if self._contract_bridge is None:
                    raise ExternalServiceError("contracts", "no contract gateway configured")
                vehicle = await self._get_vehicle(booking.car_id)
                snapshot = self._contract_bridge.build_snapshot(booking, vehicle.daily_rate)
                contract = await self._contract_bridge.create_contract(snapshot)

                self._apply_transition(booking, BookingStatus.CONVERTED)
                booking.converted_to_contract_id = contract.id
                booking.updated_by = actor_id
                booking.updated_at = self._clock.now()
                await db.flush()
                after = BookingRead.model_validate(booking)
        except Exception as e:
            if contract is None:
                raise
            logger.critical(
                f"ORPHANED_CONTRACT: contract {contract.id} created for booking "
                f"{reference} ({booking_id}) but the booking was not marked converted: {e!r}"
            )
            raise OrphanedContractError(booking_id, reference, contract.id) from e

        logger.info(f"Booking {after.booking_reference} converted to contract {contract.id}")
        await self._audit.record(
            BookingAction.CONVERTED, after, self._clock.now(), before=before, actor_id=actor_id
        )
        return ConversionResult(booking=after, contract=contract)

    # ==================== QUERIES ====================

    async def get_booking(self, booking_id: UUID) -> BookingRead:
        async with self._session_factory() as db:
            booking = await db.get(Booking, booking_id)
            if not booking:
                raise NotFoundError("Booking", str(booking_id))
            return BookingRead.model_validate(booking)

    async def get_booking_by_reference(self, booking_reference: str) -> BookingRead:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking).where(Booking.booking_reference == booking_reference)
            )
            booking = result.scalar_one_or_none()
            if not booking:
                raise NotFoundError("Booking", booking_reference)
            return BookingRead.model_validate(booking)

    async def _paginate(self, query, page: int, page_size: int) -> BookingListResponse:
        if page < 1 or not 1 <= page_size <= 100:
            raise ValidationError("Page must be >= 1 and page size between 1 and 100")
        async with self._session_factory() as db:
            count_result = await db.execute(select(func.count()).select_from(query.subquery()))
            total = count_result.scalar() or 0

            offset = (page - 1) * page_size
            result = await db.execute(query.offset(offset).limit(page_size))
            bookings = [BookingRead.model_validate(b) for b in result.scalars().all()]

        return BookingListResponse(bookings=bookings, total=total, page=page, page_size=page_size)

    async def list_bookings(
        self,
        status: BookingStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> BookingListResponse:
        """All bookings, newest first, optionally filtered by status."""
        query = select(Booking).order_by(Booking.created_at.desc(), Booking.booking_reference.desc())
        if status is not None:
            query = query.where(Booking.status == status.value)
        return await self._paginate(query, page, page_size)

    async def list_bookings_for_car(
        self, car_id: UUID, page: int = 1, page_size: int = 20
    ) -> BookingListResponse:
        query = select(Booking).where(Booking.car_id == car_id).order_by(Booking.start_date)
        return await self._paginate(query, page, page_size)

    async def list_bookings_for_customer(
        self, customer_id: UUID, page: int = 1, page_size: int = 20
    ) -> BookingListResponse:
        query = (
            select(Booking)
            .where(Booking.customer_id == customer_id)
            .order_by(Booking.created_at.desc())
        )
        return await self._paginate(query, page, page_size)

    async def get_upcoming_bookings(self, days: int = 7) -> list[BookingRead]:
        """Confirmed bookings starting within the next `days` days."""
        if days < 1 or days > 365:
            raise ValidationError("Days must be between 1 and 365")
        today = self._clock.today()
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking)
                .where(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.start_date >= today,
                    Booking.start_date <= today + timedelta(days=days),
                )
                .order_by(Booking.start_date)
            )
            return [BookingRead.model_validate(b) for b in result.scalars().all()]

    async def get_expiring_bookings(self, days: int = 1) -> list[BookingRead]:
        """Active bookings whose hold lapses within the next `days` days."""
        if days < 1 or days > 30:
            raise ValidationError("Days must be between 1 and 30")
        now = self._clock.now()
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking)
                .where(
                    Booking.status.in_(HOLDING_STATUSES),
                    Booking.expires_at >= now,
                    Booking.expires_at <= now + timedelta(days=days),
                )
                .order_by(Booking.expires_at)
            )
            return [BookingRead.model_validate(b) for b in result.scalars().all()]

    async def get_statistics(self) -> BookingStatistics:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking.status, func.count()).group_by(Booking.status)
            )
            by_status = {status: 0 for status in BookingStatus}
            for status, count in result.all():
                by_status[BookingStatus(status)] = count

            value_result = await db.execute(
                select(func.coalesce(func.sum(Booking.total_estimated_cost), 0)).where(
                    Booking.status.in_(HOLDING_STATUSES)
                )
            )
            active_value = Decimal(str(value_result.scalar() or 0))

        return BookingStatistics(
            total=sum(by_status.values()),
            by_status=by_status,
            active_value=active_value,
        )

    async def check_availability(
        self,
        car_id: UUID,
        start_date: date,
        end_date: date,
        exclude_booking_id: UUID | None = None,
    ) -> bool:
        async with self._session_factory() as db:
            return await self._availability.is_available(
                db, car_id, start_date, end_date, exclude_booking_id
            )

    async def find_conflicts(
        self,
        car_id: UUID,
        start_date: date,
        end_date: date,
        exclude_booking_id: UUID | None = None,
    ) -> list[BookingSummary]:
        async with self._session_factory() as db:
            return await self._availability.find_conflicts(
                db, car_id, start_date, end_date, exclude_booking_id
            )
