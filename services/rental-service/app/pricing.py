import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from .clock import as_utc
from .config import EARLY_TERMINATION_FEE_RATE

CENTS = Decimal("0.01")
ONE_DAY = timedelta(days=1)


def money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def billable_days(start: datetime, end: datetime) -> int:
    """
    Whole days charged for [start, end]: any started day counts in full,
    and at least one day is always charged.
    """
    elapsed = as_utc(end) - as_utc(start)
    return max(1, math.ceil(elapsed / ONE_DAY))


def total_price(daily_rate: Decimal, start: datetime, end: datetime) -> Decimal:
    return money(Decimal(daily_rate) * billable_days(start, end))


def partial_usage_amount(daily_rate: Decimal, start: datetime, now: datetime) -> Decimal:
    # the day in progress is billed as a full day
    return money(Decimal(daily_rate) * billable_days(start, now))


def early_termination_fee(used_amount: Decimal, rate: Decimal = EARLY_TERMINATION_FEE_RATE) -> Decimal:
    return money(Decimal(used_amount) * rate)


def early_termination_settlement(daily_rate: Decimal, start: datetime, now: datetime) -> tuple[Decimal, Decimal, Decimal]:
    """
    Returns (used_amount, fee, total) for ending a rental at `now`.
    """
    used = partial_usage_amount(daily_rate, start, now)
    fee = early_termination_fee(used)
    return used, fee, money(used + fee)


def extension_price(daily_rate: Decimal, start: datetime, new_end: datetime) -> Decimal:
    return total_price(daily_rate, start, new_end)
