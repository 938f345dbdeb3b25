"""
Per-vehicle serialization of rental transitions.

Overlap checks are check-then-act: two creates for the same vehicle could
both see "no overlap" before either commits. Every transition that reads or
writes a vehicle's bookings therefore runs while holding that vehicle's lock,
and inside the transaction the vehicle row is also read FOR UPDATE (see
RentalService). Waits are bounded; running out of time raises
ConcurrencyConflictError so the caller can retry the whole transition.
"""
import asyncio
from contextlib import asynccontextmanager

from redis.exceptions import LockError

from .config import LOCK_TTL_SECONDS, LOCK_WAIT_SECONDS, SERVICE_NAME
from .errors import ConcurrencyConflictError


def lock_key(vehicle_id: int) -> str:
    return f"lock:vehicle:{vehicle_id}"


class LocalResourceLocks:
    """In-process locks. Correct only while a single worker serves the database."""

    def __init__(self, wait_seconds: float = LOCK_WAIT_SECONDS):
        self.wait_seconds = wait_seconds
        # vehicle id -> [lock, holders + waiters]; entries go away at zero
        self._locks: dict[int, list] = {}

    def _checkout(self, vehicle_id: int) -> asyncio.Lock:
        entry = self._locks.setdefault(vehicle_id, [asyncio.Lock(), 0])
        entry[1] += 1
        return entry[0]

    def _checkin(self, vehicle_id: int):
        entry = self._locks[vehicle_id]
        entry[1] -= 1
        if entry[1] == 0:
            del self._locks[vehicle_id]

    async def _acquire(self, vehicle_id: int, lock: asyncio.Lock):
        try:
            async with asyncio.timeout(self.wait_seconds):
                await lock.acquire()
        except TimeoutError:
            raise ConcurrencyConflictError(
                f"Timed out waiting for vehicle {vehicle_id}; retry the request"
            )

    @asynccontextmanager
    async def hold(self, *vehicle_ids: int):
        checked_out = []
        acquired = []
        try:
            # ascending order so two multi-vehicle transitions cannot deadlock
            for vehicle_id in sorted(set(vehicle_ids)):
                lock = self._checkout(vehicle_id)
                checked_out.append(vehicle_id)
                await self._acquire(vehicle_id, lock)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for vehicle_id in checked_out:
                self._checkin(vehicle_id)

    def tracked(self) -> int:
        return len(self._locks)


class RedisResourceLocks:
    """Redis locks shared by every worker; used whenever REDIS_URL is configured."""

    def __init__(
        self,
        redis_client,
        wait_seconds: float = LOCK_WAIT_SECONDS,
        ttl_seconds: float = LOCK_TTL_SECONDS,
    ):
        self.redis = redis_client
        self.wait_seconds = wait_seconds
        self.ttl_seconds = ttl_seconds

    @asynccontextmanager
    async def hold(self, *vehicle_ids: int):
        acquired = []
        try:
            for vehicle_id in sorted(set(vehicle_ids)):
                lock = self.redis.lock(
                    lock_key(vehicle_id),
                    timeout=self.ttl_seconds,
                    blocking_timeout=self.wait_seconds,
                )
                if not await lock.acquire():
                    raise ConcurrencyConflictError(
                        f"Timed out waiting for vehicle {vehicle_id}; retry the request"
                    )
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                try:
                    await lock.release()
                except LockError as e:
                    # ttl expired while held
                    print(f"[{SERVICE_NAME}] lock release failed for {lock.name}: {e}")
