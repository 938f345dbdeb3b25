from .config import SERVICE_NAME

ACTIVE_RENTALS_KEY = "rentals:active"


class NullMetricsSink:
    async def increment_active(self):
        return None

    async def decrement_active(self):
        return None


class RedisMetricsSink:
    """Active-rentals gauge kept in Redis so every worker reports the same number."""

    def __init__(self, redis_client, key: str = ACTIVE_RENTALS_KEY):
        self.redis = redis_client
        self.key = key

    async def increment_active(self):
        await self.redis.incr(self.key)

    async def decrement_active(self):
        await self.redis.decr(self.key)

    async def active(self) -> int:
        value = await self.redis.get(self.key)
        return int(value or 0)


async def record(sink, delta: int):
    """
    Fire-and-forget gauge update, called after commit. Failures are logged and
    never reach the caller.
    """
    try:
        if delta > 0:
            await sink.increment_active()
        elif delta < 0:
            await sink.decrement_active()
    except Exception as e:
        print(f"[{SERVICE_NAME}] metrics update failed (delta={delta}): {e}")
