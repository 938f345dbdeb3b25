from datetime import date, datetime, timedelta, timezone, tzinfo


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken as UTC (sqlite hands them back without tzinfo)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_date(dt: datetime, tz: tzinfo) -> date:
    return as_utc(dt).astimezone(tz).date()


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to a given instant; tests move it with advance()."""

    def __init__(self, current: datetime):
        self.current = as_utc(current)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current
