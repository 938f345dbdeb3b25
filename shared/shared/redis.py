import redis.asyncio as redis


def connect(url: str | None):
    if not url:
        return None
    return redis.from_url(url, decode_responses=True)
