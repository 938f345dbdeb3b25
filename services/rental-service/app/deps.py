from .db import SessionLocal
from .locking import LocalResourceLocks, RedisResourceLocks
from .metrics import NullMetricsSink, RedisMetricsSink
from .rabbitmq import publisher
from .redis_client import redis_client
from .service import RentalService

if redis_client is not None:
    locks = RedisResourceLocks(redis_client)
    metrics = RedisMetricsSink(redis_client)
else:
    locks = LocalResourceLocks()
    metrics = NullMetricsSink()

rental_service = RentalService(SessionLocal, locks, metrics=metrics, publisher=publisher)


def get_rental_service() -> RentalService:
    return rental_service
