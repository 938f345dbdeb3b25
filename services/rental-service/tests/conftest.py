import os
import tempfile
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# app.config reads the environment at import time
os.environ.setdefault(
    "RENTAL_DB",
    "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "rental-service-tests.db"),
)
os.environ.pop("REDIS_URL", None)
os.environ.pop("RABBIT_URL", None)

import pytest
from sqlalchemy import select

from shared.database import create_schema, get_engine, get_session

from app.clock import FixedClock
from app.locking import LocalResourceLocks
from app.models import Customer, Rental, Vehicle
from app.service import RentalService

NOW = datetime(2030, 1, 10, 9, 0, tzinfo=timezone.utc)


class RecordingMetrics:
    def __init__(self):
        self.active = 0
        self.calls = []

    async def increment_active(self):
        self.active += 1
        self.calls.append("+")

    async def decrement_active(self):
        self.active -= 1
        self.calls.append("-")


class RecordingPublisher:
    enabled = True

    def __init__(self):
        self.published = []

    async def publish(self, routing_key: str, message_body: str):
        self.published.append((routing_key, message_body))

    @property
    def routing_keys(self):
        return [rk for rk, _ in self.published]


@pytest.fixture
async def engine(tmp_path):
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'rentals.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session(engine)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def metrics():
    return RecordingMetrics()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def service(session_factory, clock, metrics, publisher):
    return RentalService(
        session_factory,
        LocalResourceLocks(wait_seconds=2),
        clock=clock,
        metrics=metrics,
        publisher=publisher,
        tz=timezone.utc,
    )


async def add_vehicle(session_factory, plate="ABC1D23", daily_rate="100.00", available=True, status="AVAILABLE"):
    async with session_factory() as db:
        vehicle = Vehicle(
            plate=plate,
            brand="Fiat",
            model="Argo",
            daily_rate=Decimal(daily_rate),
            available=available,
            status=status,
        )
        db.add(vehicle)
        await db.commit()
        return vehicle.id


async def add_customer(session_factory, name="Ana Souza"):
    async with session_factory() as db:
        customer = Customer(name=name, email=f"{name.split()[0].lower()}@example.com")
        db.add(customer)
        await db.commit()
        return customer.id


async def vehicle_state(session_factory, vehicle_id):
    async with session_factory() as db:
        res = await db.execute(select(Vehicle.status, Vehicle.available).where(Vehicle.id == vehicle_id))
        status, available = res.one()
        return status, available


async def rental_count(session_factory):
    async with session_factory() as db:
        res = await db.execute(select(Rental.id))
        return len(res.all())


@pytest.fixture
async def vehicle(session_factory):
    return await add_vehicle(session_factory)


@pytest.fixture
async def customer(session_factory):
    return await add_customer(session_factory)


def day(n: int, hours: int = 0) -> datetime:
    """NOW + n days (+ hours); day(1) is tomorrow at 09:00 UTC."""
    return NOW + timedelta(days=n, hours=hours)
