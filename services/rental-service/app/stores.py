from datetime import datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Customer, Rental, RentalStatus, Vehicle, VehicleStatus


def _status_values(statuses: Iterable) -> list[str]:
    return [RentalStatus(s).value for s in statuses]


class ResourceStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, vehicle_id: int, for_update: bool = False) -> Vehicle | None:
        stmt = select(Vehicle).where(Vehicle.id == vehicle_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        res = await self.db.execute(stmt)
        return res.scalar_one_or_none()

    async def find_by_external_key(self, plate: str) -> Vehicle | None:
        res = await self.db.execute(select(Vehicle).where(Vehicle.plate == plate))
        return res.scalar_one_or_none()

    async def update_status(self, status: VehicleStatus, available: bool, vehicle_id: int):
        await self.db.execute(
            update(Vehicle)
            .where(Vehicle.id == vehicle_id)
            .values(status=VehicleStatus(status).value, available=available)
        )


class ReservationStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, rental_id: int) -> Rental | None:
        res = await self.db.execute(
            select(Rental).where(Rental.id == rental_id).execution_options(populate_existing=True)
        )
        return res.scalar_one_or_none()

    async def find_active_by_resource(
        self,
        vehicle_id: int,
        start: datetime,
        end: datetime,
        exclude_id: int | None,
        statuses: Iterable,
    ) -> list[Rental]:
        stmt = select(Rental).where(
            Rental.vehicle_id == vehicle_id,
            Rental.status.in_(_status_values(statuses)),
            Rental.start_date <= end,
            Rental.end_date >= start,
        )
        if exclude_id is not None:
            stmt = stmt.where(Rental.id != exclude_id)
        res = await self.db.execute(stmt)
        return list(res.scalars().all())

    async def customer_has_status(self, customer_id: int, status: RentalStatus) -> bool:
        res = await self.db.execute(
            select(Rental.id)
            .where(Rental.customer_id == customer_id, Rental.status == RentalStatus(status).value)
            .limit(1)
        )
        return res.first() is not None

    async def save(self, rental: Rental) -> Rental:
        self.db.add(rental)
        await self.db.flush()
        return rental

    async def delete_by_id(self, rental_id: int):
        await self.db.execute(delete(Rental).where(Rental.id == rental_id))

    async def update_status(self, status: RentalStatus, rental_id: int, now: datetime):
        await self._update(rental_id, status=RentalStatus(status).value, updated_at=now)

    async def update_status_and_return_time(self, status: RentalStatus, returned_at: datetime, rental_id: int):
        await self._update(
            rental_id,
            status=RentalStatus(status).value,
            actual_return_date=returned_at,
            updated_at=returned_at,
        )

    async def update_for_early_termination(
        self,
        status: RentalStatus,
        returned_at: datetime,
        fee: Decimal,
        new_total: Decimal,
        original_total: Decimal,
        rental_id: int,
    ):
        await self._update(
            rental_id,
            status=RentalStatus(status).value,
            actual_return_date=returned_at,
            early_termination_fee=fee,
            total_amount=new_total,
            original_total_amount=original_total,
            ended_early=True,
            updated_at=returned_at,
        )

    async def update_end_date_and_amount(self, new_end: datetime, new_total: Decimal, rental_id: int, now: datetime):
        await self._update(rental_id, end_date=new_end, total_amount=new_total, updated_at=now)

    async def _update(self, rental_id: int, **values):
        await self.db.execute(update(Rental).where(Rental.id == rental_id).values(**values))

    # ---- read side ----

    async def list_all(self) -> list[Rental]:
        return await self._list(select(Rental))

    async def list_by_customer(self, customer_id: int) -> list[Rental]:
        return await self._list(select(Rental).where(Rental.customer_id == customer_id))

    async def list_by_vehicle(self, vehicle_id: int) -> list[Rental]:
        return await self._list(select(Rental).where(Rental.vehicle_id == vehicle_id))

    async def list_by_status(self, status: RentalStatus) -> list[Rental]:
        return await self._list(select(Rental).where(Rental.status == RentalStatus(status).value))

    async def list_by_period(self, start: datetime, end: datetime) -> list[Rental]:
        return await self._list(
            select(Rental).where(
                or_(
                    Rental.start_date.between(start, end),
                    Rental.end_date.between(start, end),
                    and_(Rental.start_date <= start, Rental.end_date >= end),
                )
            )
        )

    async def _list(self, stmt) -> list[Rental]:
        res = await self.db.execute(stmt.order_by(Rental.id))
        return list(res.scalars().unique().all())


class CustomerLookup:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, customer_id: int) -> Customer | None:
        res = await self.db.execute(select(Customer).where(Customer.id == customer_id))
        return res.scalar_one_or_none()
