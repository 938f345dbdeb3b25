import asyncio
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from decimal import Decimal

from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from shared.events import build_event, to_json

from .clock import SystemClock, as_utc
from .config import LOCK_WAIT_SECONDS, MAX_CONFLICT_RETRIES, RENTAL_TIMEZONE, SERVICE_NAME
from .errors import (
    ConcurrencyConflictError,
    CustomerHasActiveReservation,
    CustomerNotFound,
    DependencyFailure,
    RentalError,
    ReservationNotFound,
    ResourceMissing,
    ResourceNotFound,
    ResourceUnavailableError,
    ValidationError,
)
from .metrics import NullMetricsSink, record
from .models import ACTIVE_STATUSES, Rental, RentalStatus
from .overlap import has_overlap
from .pricing import early_termination_settlement, extension_price, total_price
from .state_machine import RentalEvent, transition, validate_new_end_date, validate_rental_dates
from .stores import CustomerLookup, ReservationStore, ResourceStore
from .sync import AvailabilitySynchronizer

# lock_not_available, serialization_failure, deadlock_detected
CONFLICT_SQLSTATES = {"55P03", "40001", "40P01"}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


@contextmanager
def translate_storage_errors():
    try:
        yield
    except DBAPIError as e:
        if _sqlstate(e) in CONFLICT_SQLSTATES or "database is locked" in str(e.orig):
            raise ConcurrencyConflictError("Concurrent update on the same vehicle; retry the request") from e
        if isinstance(e, (OperationalError, InterfaceError)) or e.connection_invalidated:
            raise DependencyFailure("Rental database is unreachable") from e
        raise
    except RedisError as e:
        raise DependencyFailure("Lock store is unreachable") from e
    except OSError as e:
        raise DependencyFailure(f"Storage connection failed: {e}") from e


class Stores:
    def __init__(self, db):
        self.vehicles = ResourceStore(db)
        self.rentals = ReservationStore(db)
        self.customers = CustomerLookup(db)
        self.sync = AvailabilitySynchronizer(self.vehicles)


class RentalService:
    """
    Entry point for every rental transition.

    Each transition runs as one unit of work: take the vehicle lock, load
    rental and vehicle (the vehicle FOR UPDATE), check preconditions, write
    the rental, write the vehicle through the synchronizer, commit. A failed
    precondition raises before anything is written. Metrics and domain
    events are emitted only after the commit.
    """

    def __init__(
        self,
        session_factory,
        locks,
        clock=None,
        metrics=None,
        publisher=None,
        max_attempts: int = MAX_CONFLICT_RETRIES,
        tz=RENTAL_TIMEZONE,
        lock_wait_seconds: float = LOCK_WAIT_SECONDS,
    ):
        self.session_factory = session_factory
        self.locks = locks
        self.clock = clock or SystemClock()
        self.metrics = metrics or NullMetricsSink()
        self.publisher = publisher
        self.max_attempts = max(1, max_attempts)
        self.tz = tz
        self.lock_wait_seconds = lock_wait_seconds

    # ================= plumbing =================

    async def _run(self, op: str, fn):
        attempt = 1
        while True:
            try:
                with translate_storage_errors():
                    async with self.session_factory() as db:
                        return await fn(db)
            except ConcurrencyConflictError as e:
                if attempt >= self.max_attempts:
                    print(f"[{SERVICE_NAME}] {op} gave up after {attempt} attempts: {e.message}")
                    raise
                print(f"[{SERVICE_NAME}] {op} conflict (attempt {attempt}), retrying: {e.message}")
                await asyncio.sleep(0.05 * attempt)
                attempt += 1
            except RentalError as e:
                print(f"[{SERVICE_NAME}] {op} rejected: {e.code}: {e.message}")
                raise

    @asynccontextmanager
    async def _unit_of_work(self, db, *vehicle_ids: int):
        async with self.locks.hold(*vehicle_ids):
            try:
                await self._bound_lock_wait(db)
                yield
                await db.commit()
            except BaseException:
                await db.rollback()
                raise

    async def _bound_lock_wait(self, db):
        if db.bind is not None and db.bind.dialect.name == "postgresql":
            ms = int(self.lock_wait_seconds * 1000)
            await db.execute(text(f"SET LOCAL lock_timeout = '{ms}ms'"))

    async def _after_commit(self, event_type: str, rental: Rental, active_delta: int = 0):
        if active_delta:
            await record(self.metrics, active_delta)

        if self.publisher is None:
            return
        event = build_event(
            event_type,
            {
                "rental_id": rental.id,
                "vehicle_id": rental.vehicle_id,
                "customer_id": rental.customer_id,
                "status": rental.status,
                "start_date": as_utc(rental.start_date).isoformat(),
                "end_date": as_utc(rental.end_date).isoformat(),
                "total_amount": str(rental.total_amount),
            },
        )
        await self.publisher.publish(event_type, to_json(event))

    async def _find_rental(self, s: Stores, rental_id: int) -> Rental:
        rental = await s.rentals.find_by_id(rental_id)
        if not rental:
            raise ReservationNotFound(rental_id)
        return rental

    @staticmethod
    def _ensure_locked(rental: Rental, locked_vehicle_ids) -> None:
        # the vehicle id used to pick locks was read before locking
        if rental.vehicle_id not in locked_vehicle_ids:
            raise ConcurrencyConflictError(
                f"Rental {rental.id} moved to another vehicle while waiting for its lock; retry the request"
            )

    async def _resolve_vehicle(self, s: Stores, vehicle_id: int | None, plate: str | None):
        if vehicle_id is not None:
            vehicle = await s.vehicles.find_by_id(vehicle_id)
            if not vehicle:
                raise ResourceNotFound(f"Vehicle {vehicle_id} not found")
            return vehicle
        if plate:
            vehicle = await s.vehicles.find_by_external_key(plate)
            if not vehicle:
                raise ResourceNotFound(f"Vehicle with plate {plate} not found")
            return vehicle
        raise ValidationError("Either vehicle_id or vehicle_plate is required")

    async def _find_customer(self, s: Stores, customer_id: int):
        customer = await s.customers.find_by_id(customer_id)
        if not customer:
            raise CustomerNotFound(customer_id)
        return customer

    async def _lock_vehicle_row(self, s: Stores, vehicle_id: int, rental_id: int | None = None):
        vehicle = await s.vehicles.find_by_id(vehicle_id, for_update=True)
        if vehicle is None:
            if rental_id is not None:
                raise ResourceMissing(rental_id)
            raise ResourceNotFound(f"Vehicle {vehicle_id} not found")
        return vehicle

    async def _ensure_bookable(self, s: Stores, vehicle, start: datetime, end: datetime, exclude_id: int | None):
        if not vehicle.available:
            raise ResourceUnavailableError("Vehicle is not available for rental")
        if await has_overlap(s.rentals, vehicle.id, start, end, exclude_id, ACTIVE_STATUSES):
            raise ResourceUnavailableError("Vehicle is not available for the requested period")

    @staticmethod
    def _priced(daily_rate, start: datetime, end: datetime) -> Decimal:
        amount = total_price(daily_rate, start, end)
        if amount <= 0:
            raise ValidationError("Vehicle daily rate must be positive")
        return amount

    # ================= transitions =================

    async def create(
        self,
        *,
        customer_id: int,
        start_date: datetime,
        end_date: datetime,
        vehicle_id: int | None = None,
        vehicle_plate: str | None = None,
        notes: str | None = None,
    ) -> Rental:
        async def op(db):
            s = Stores(db)
            now = self.clock.now()
            start, end = as_utc(start_date), as_utc(end_date)

            validate_rental_dates(start, end, now, self.tz)
            vehicle = await self._resolve_vehicle(s, vehicle_id, vehicle_plate)
            customer = await self._find_customer(s, customer_id)

            async with self._unit_of_work(db, vehicle.id):
                transition(None, RentalEvent.CREATE)
                vehicle = await self._lock_vehicle_row(s, vehicle.id)
                await self._ensure_bookable(s, vehicle, start, end, None)

                if await s.rentals.customer_has_status(customer.id, RentalStatus.IN_PROGRESS):
                    raise CustomerHasActiveReservation(
                        "Customer already has a rental in progress and cannot rent another vehicle"
                    )

                rental = Rental(
                    vehicle=vehicle,
                    customer=customer,
                    start_date=start,
                    end_date=end,
                    status=RentalStatus.PENDING.value,
                    total_amount=self._priced(vehicle.daily_rate, start, end),
                    ended_early=False,
                    notes=notes,
                    created_at=now,
                    updated_at=now,
                )
                await s.rentals.save(rental)
                await s.sync.apply(RentalEvent.CREATE, vehicle.id)
            return rental

        rental = await self._run("create", op)
        await self._after_commit("rental.created", rental)
        return rental

    async def update(
        self,
        rental_id: int,
        *,
        customer_id: int,
        start_date: datetime,
        end_date: datetime,
        vehicle_id: int | None = None,
        vehicle_plate: str | None = None,
        notes: str | None = None,
    ) -> Rental:
        async def op(db):
            s = Stores(db)
            now = self.clock.now()
            start, end = as_utc(start_date), as_utc(end_date)

            rental = await self._find_rental(s, rental_id)
            transition(rental.status, RentalEvent.UPDATE)
            validate_rental_dates(start, end, now, self.tz)
            vehicle = await self._resolve_vehicle(s, vehicle_id, vehicle_plate)
            customer = await self._find_customer(s, customer_id)
            previous_vehicle_id = rental.vehicle_id

            async with self._unit_of_work(db, previous_vehicle_id, vehicle.id):
                rental = await self._find_rental(s, rental_id)
                self._ensure_locked(rental, (previous_vehicle_id, vehicle.id))
                previous_vehicle_id = rental.vehicle_id
                transition(rental.status, RentalEvent.UPDATE)
                vehicle = await self._lock_vehicle_row(s, vehicle.id)
                await self._ensure_bookable(s, vehicle, start, end, rental.id)

                rental.vehicle = vehicle
                rental.customer = customer
                rental.start_date = start
                rental.end_date = end
                rental.notes = notes
                rental.total_amount = self._priced(vehicle.daily_rate, start, end)
                rental.updated_at = now
                await db.flush()

                if previous_vehicle_id != vehicle.id:
                    await s.sync.release(previous_vehicle_id)
                await s.sync.apply(RentalEvent.UPDATE, vehicle.id)
            return rental

        rental = await self._run("update", op)
        await self._after_commit("rental.updated", rental)
        return rental

    async def _status_change(self, op_name: str, rental_id: int, event: RentalEvent, apply) -> Rental:
        """
        Shared shape of the transitions that only move status: lock the
        rental's vehicle, re-check the transition on fresh state, let `apply`
        write the rental, then sync the vehicle.
        """
        async def op(db):
            s = Stores(db)
            rental = await self._find_rental(s, rental_id)
            transition(rental.status, event)

            locked_vehicle_id = rental.vehicle_id
            async with self._unit_of_work(db, locked_vehicle_id):
                rental = await self._find_rental(s, rental_id)
                self._ensure_locked(rental, (locked_vehicle_id,))
                new_status = transition(rental.status, event)
                vehicle = await self._lock_vehicle_row(s, rental.vehicle_id, rental.id)
                await apply(s, rental, vehicle, new_status)
                await s.sync.apply(event, vehicle.id)
            return rental

        return await self._run(op_name, op)

    async def start(self, rental_id: int) -> Rental:
        async def apply(s, rental, vehicle, new_status):
            await s.rentals.update_status(new_status, rental.id, self.clock.now())

        rental = await self._status_change("start", rental_id, RentalEvent.START, apply)
        await self._after_commit("rental.started", rental, active_delta=1)
        return rental

    async def complete(self, rental_id: int) -> Rental:
        async def apply(s, rental, vehicle, new_status):
            await s.rentals.update_status_and_return_time(new_status, self.clock.now(), rental.id)

        rental = await self._status_change("complete", rental_id, RentalEvent.COMPLETE, apply)
        await self._after_commit("rental.completed", rental, active_delta=-1)
        return rental

    async def terminate_early(self, rental_id: int) -> Rental:
        async def apply(s, rental, vehicle, new_status):
            now = self.clock.now()
            _, fee, total = early_termination_settlement(vehicle.daily_rate, rental.start_date, now)
            await s.rentals.update_for_early_termination(
                new_status, now, fee, total, rental.total_amount, rental.id
            )

        rental = await self._status_change(
            "terminate_early", rental_id, RentalEvent.TERMINATE_EARLY, apply
        )
        await self._after_commit("rental.terminated_early", rental, active_delta=-1)
        return rental

    async def cancel(self, rental_id: int) -> Rental:
        async def apply(s, rental, vehicle, new_status):
            await s.rentals.update_status(new_status, rental.id, self.clock.now())

        rental = await self._status_change("cancel", rental_id, RentalEvent.CANCEL, apply)
        await self._after_commit("rental.cancelled", rental)
        return rental

    async def extend(self, rental_id: int, new_end_date: datetime) -> Rental:
        async def op(db):
            s = Stores(db)
            now = self.clock.now()
            new_end = as_utc(new_end_date)

            rental = await self._find_rental(s, rental_id)
            transition(rental.status, RentalEvent.EXTEND)

            locked_vehicle_id = rental.vehicle_id
            async with self._unit_of_work(db, locked_vehicle_id):
                rental = await self._find_rental(s, rental_id)
                self._ensure_locked(rental, (locked_vehicle_id,))
                transition(rental.status, RentalEvent.EXTEND)
                validate_new_end_date(rental.end_date, new_end, now)
                vehicle = await self._lock_vehicle_row(s, rental.vehicle_id, rental.id)

                current_end = as_utc(rental.end_date)
                if await has_overlap(s.rentals, vehicle.id, current_end, new_end, rental.id, ACTIVE_STATUSES):
                    raise ResourceUnavailableError(
                        "Cannot extend: the vehicle is already booked for the requested period"
                    )

                amount = extension_price(vehicle.daily_rate, rental.start_date, new_end)
                await s.rentals.update_end_date_and_amount(new_end, amount, rental.id, now)
                await s.sync.apply(RentalEvent.EXTEND, vehicle.id)
            return rental

        rental = await self._run("extend", op)
        await self._after_commit("rental.extended", rental)
        return rental

    async def delete(self, rental_id: int) -> None:
        async def op(db):
            s = Stores(db)
            rental = await self._find_rental(s, rental_id)
            transition(rental.status, RentalEvent.DELETE)

            locked_vehicle_id = rental.vehicle_id
            async with self._unit_of_work(db, locked_vehicle_id):
                rental = await self._find_rental(s, rental_id)
                self._ensure_locked(rental, (locked_vehicle_id,))
                transition(rental.status, RentalEvent.DELETE)
                vehicle = await self._lock_vehicle_row(s, rental.vehicle_id, rental.id)
                await s.sync.apply(RentalEvent.DELETE, vehicle.id)
                await s.rentals.delete_by_id(rental.id)
            return rental

        rental = await self._run("delete", op)
        await self._after_commit("rental.deleted", rental)

    # ================= reads =================

    async def get(self, rental_id: int) -> Rental:
        async def op(db):
            return await self._find_rental(Stores(db), rental_id)

        return await self._run("get", op)

    async def list_all(self) -> list[Rental]:
        return await self._read("list_all", lambda r: r.list_all())

    async def list_by_customer(self, customer_id: int) -> list[Rental]:
        return await self._read("list_by_customer", lambda r: r.list_by_customer(customer_id))

    async def list_by_vehicle(self, vehicle_id: int) -> list[Rental]:
        return await self._read("list_by_vehicle", lambda r: r.list_by_vehicle(vehicle_id))

    async def list_by_status(self, status: RentalStatus) -> list[Rental]:
        return await self._read("list_by_status", lambda r: r.list_by_status(status))

    async def list_by_period(self, start: datetime, end: datetime) -> list[Rental]:
        start, end = as_utc(start), as_utc(end)
        if start > end:
            raise ValidationError("Start date must be before end date")
        return await self._read("list_by_period", lambda r: r.list_by_period(start, end))

    async def _read(self, op_name: str, query):
        async def op(db):
            return await query(ReservationStore(db))

        return await self._run(op_name, op)
