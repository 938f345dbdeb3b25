from datetime import datetime
from typing import Iterable

from .clock import as_utc


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """
    Closed-interval test: touching endpoints count as an overlap.
    """
    return as_utc(a_start) <= as_utc(b_end) and as_utc(a_end) >= as_utc(b_start)


async def has_overlap(
    reservations,
    vehicle_id: int,
    start: datetime,
    end: datetime,
    exclude_id: int | None,
    statuses: Iterable,
) -> bool:
    """
    True if any reservation of `vehicle_id` in one of `statuses` (other than
    `exclude_id`) intersects [start, end].

    `reservations` is a ReservationStore; the intersection predicate is pushed
    into the query and re-checked here on full timestamps.
    """
    candidates = await reservations.find_active_by_resource(vehicle_id, start, end, exclude_id, statuses)
    return any(intervals_overlap(r.start_date, r.end_date, start, end) for r in candidates)
