from redis.exceptions import ConnectionError as RedisConnectionError

from app.metrics import ACTIVE_RENTALS_KEY, NullMetricsSink, RedisMetricsSink, record


class FakeRedis:
    def __init__(self):
        self.values = {}

    async def incr(self, key):
        self.values[key] = int(self.values.get(key, 0)) + 1
        return self.values[key]

    async def decr(self, key):
        self.values[key] = int(self.values.get(key, 0)) - 1
        return self.values[key]

    async def get(self, key):
        value = self.values.get(key)
        return None if value is None else str(value)


class DownRedis:
    async def incr(self, key):
        raise RedisConnectionError("connection refused")

    async def decr(self, key):
        raise RedisConnectionError("connection refused")


async def test_redis_gauge_tracks_active_rentals():
    redis = FakeRedis()
    sink = RedisMetricsSink(redis)

    assert await sink.active() == 0
    await record(sink, 1)
    await record(sink, 1)
    await record(sink, -1)
    await record(sink, 0)

    assert await sink.active() == 1
    assert redis.values[ACTIVE_RENTALS_KEY] == 1


async def test_record_swallows_sink_failures():
    await record(RedisMetricsSink(DownRedis()), 1)
    await record(RedisMetricsSink(DownRedis()), -1)


async def test_null_sink_is_a_no_op():
    await record(NullMetricsSink(), 1)
    await record(NullMetricsSink(), -1)
