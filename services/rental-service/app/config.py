import os
from decimal import Decimal

from dateutil import tz

RENTAL_DB = os.getenv("RENTAL_DB")

if not RENTAL_DB:
    raise RuntimeError("RENTAL_DB environment variable is not set")

RENTAL_DB_ECHO = (os.getenv("RENTAL_DB_ECHO") or "false").lower() in ("1", "true", "yes")

REDIS_URL = os.getenv("REDIS_URL")  # optional: enables distributed locks + metrics gauge
RABBIT_URL = os.getenv("RABBIT_URL")  # optional: enables domain events

SERVICE_NAME = "rental-service"

RENTAL_TIMEZONE = tz.gettz(os.getenv("RENTAL_TIMEZONE") or "UTC")
if RENTAL_TIMEZONE is None:
    raise RuntimeError(f"Unknown RENTAL_TIMEZONE: {os.getenv('RENTAL_TIMEZONE')}")

MIN_RENTAL_DAYS = int(os.getenv("RENTAL_MIN_DAYS") or "1")
MAX_RENTAL_DAYS = int(os.getenv("RENTAL_MAX_DAYS") or "30")
SAME_DAY_LEAD_HOURS = int(os.getenv("SAME_DAY_LEAD_HOURS") or "2")
EARLY_TERMINATION_FEE_RATE = Decimal(os.getenv("EARLY_TERMINATION_FEE_RATE") or "0.10")

LOCK_WAIT_SECONDS = float(os.getenv("LOCK_WAIT_SECONDS") or "5")
LOCK_TTL_SECONDS = float(os.getenv("LOCK_TTL_SECONDS") or "30")
MAX_CONFLICT_RETRIES = int(os.getenv("MAX_CONFLICT_RETRIES") or "3")
