from shared.redis import connect

from .config import REDIS_URL

# None when REDIS_URL is unset; callers fall back to in-process locks and no gauge
redis_client = connect(REDIS_URL)
