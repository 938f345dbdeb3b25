"""
Rental lifecycle as an explicit transition table.

    PENDING --start--> IN_PROGRESS --complete--------> COMPLETED
                                   --terminate_early-> EARLY_TERMINATED
    PENDING --cancel--> CANCELLED
    PENDING --delete--> (row removed)

update keeps a rental PENDING, extend keeps it IN_PROGRESS. Any
(status, event) pair not in the table is rejected; COMPLETED, CANCELLED
and EARLY_TERMINATED accept nothing.
"""
import enum
from datetime import datetime, timedelta, tzinfo

from .clock import as_utc, local_date
from .config import MAX_RENTAL_DAYS, MIN_RENTAL_DAYS, RENTAL_TIMEZONE, SAME_DAY_LEAD_HOURS
from .errors import (
    InProgressCannotCancel,
    InvalidDateRange,
    InvalidNewEndDate,
    NotInProgress,
    NotPending,
    StateConflictError,
)
from .models import RentalStatus


class RentalEvent(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    START = "start"
    COMPLETE = "complete"
    TERMINATE_EARLY = "terminate_early"
    CANCEL = "cancel"
    EXTEND = "extend"
    DELETE = "delete"


# target status of a delete: the row is gone
DELETED = None

TRANSITIONS: dict[tuple[RentalStatus | None, RentalEvent], RentalStatus | None] = {
    (None, RentalEvent.CREATE): RentalStatus.PENDING,
    (RentalStatus.PENDING, RentalEvent.UPDATE): RentalStatus.PENDING,
    (RentalStatus.PENDING, RentalEvent.START): RentalStatus.IN_PROGRESS,
    (RentalStatus.IN_PROGRESS, RentalEvent.COMPLETE): RentalStatus.COMPLETED,
    (RentalStatus.IN_PROGRESS, RentalEvent.TERMINATE_EARLY): RentalStatus.EARLY_TERMINATED,
    (RentalStatus.PENDING, RentalEvent.CANCEL): RentalStatus.CANCELLED,
    (RentalStatus.IN_PROGRESS, RentalEvent.EXTEND): RentalStatus.IN_PROGRESS,
    (RentalStatus.PENDING, RentalEvent.DELETE): DELETED,
}

TERMINAL_STATUSES = frozenset({
    RentalStatus.COMPLETED,
    RentalStatus.CANCELLED,
    RentalStatus.EARLY_TERMINATED,
})

_REJECTIONS = {
    RentalEvent.UPDATE: (NotPending, "Only pending rentals can be updated"),
    RentalEvent.START: (NotPending, "Only pending rentals can be started"),
    RentalEvent.COMPLETE: (NotInProgress, "Only rentals in progress can be completed"),
    RentalEvent.TERMINATE_EARLY: (NotInProgress, "Only rentals in progress can be terminated early"),
    RentalEvent.CANCEL: (NotPending, "Only pending rentals can be cancelled"),
    RentalEvent.EXTEND: (NotInProgress, "Only rentals in progress can be extended"),
    RentalEvent.DELETE: (NotPending, "Only pending rentals can be deleted"),
}


def transition(current: RentalStatus | str | None, event: RentalEvent) -> RentalStatus | None:
    """
    Return the status `event` moves a rental in `current` to, or raise the
    StateConflictError subclass naming why the move is not allowed.
    """
    if current is not None:
        current = RentalStatus(current)

    key = (current, event)
    if key in TRANSITIONS:
        return TRANSITIONS[key]

    if event == RentalEvent.CANCEL and current == RentalStatus.IN_PROGRESS:
        raise InProgressCannotCancel(
            "Rentals in progress cannot be cancelled; terminate them early instead"
        )

    if event in _REJECTIONS:
        error_cls, message = _REJECTIONS[event]
        status = current.value if current else "none"
        raise error_cls(f"{message} (current status: {status})")

    raise StateConflictError(f"Rental already exists; cannot {event.value} it again")


def validate_rental_dates(
    start: datetime,
    end: datetime,
    now: datetime,
    tz: tzinfo = RENTAL_TIMEZONE,
    min_days: int = MIN_RENTAL_DAYS,
    max_days: int = MAX_RENTAL_DAYS,
    lead_hours: int = SAME_DAY_LEAD_HOURS,
) -> None:
    start, end, now = as_utc(start), as_utc(end), as_utc(now)

    if start < now:
        raise InvalidDateRange("Start date cannot be in the past")

    if local_date(start, tz) == local_date(now, tz) and start < now + timedelta(hours=lead_hours):
        raise InvalidDateRange(
            f"Rentals starting today must start at least {lead_hours} hours from now"
        )

    if end <= start:
        raise InvalidDateRange("End date must be after start date")

    full_days = (end - start) // timedelta(days=1)
    if full_days < min_days:
        raise InvalidDateRange(f"Rentals must last at least {min_days} day(s)")
    if full_days > max_days:
        raise InvalidDateRange(f"Rentals cannot exceed {max_days} days")


def validate_new_end_date(current_end: datetime, new_end: datetime, now: datetime) -> None:
    new_end = as_utc(new_end)

    if new_end <= as_utc(now):
        raise InvalidNewEndDate("New end date must be in the future")
    if new_end <= as_utc(current_end):
        raise InvalidNewEndDate("New end date must be after the current end date")
