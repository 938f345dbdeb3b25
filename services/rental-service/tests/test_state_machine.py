from datetime import datetime, timedelta, timezone

import pytest
from dateutil import tz

from app.errors import (
    InProgressCannotCancel,
    InvalidDateRange,
    InvalidNewEndDate,
    NotInProgress,
    NotPending,
    StateConflictError,
    ValidationError,
)
from app.models import RentalStatus, VehicleStatus
from app.state_machine import (
    DELETED,
    TERMINAL_STATUSES,
    RentalEvent,
    transition,
    validate_new_end_date,
    validate_rental_dates,
)
from app.sync import OCCUPY, RELEASE, RESERVE, vehicle_write_for

NOW = datetime(2030, 1, 10, 9, 0, tzinfo=timezone.utc)
UTC = timezone.utc


@pytest.mark.parametrize(
    "current, event, expected",
    [
        (None, RentalEvent.CREATE, RentalStatus.PENDING),
        (RentalStatus.PENDING, RentalEvent.UPDATE, RentalStatus.PENDING),
        (RentalStatus.PENDING, RentalEvent.START, RentalStatus.IN_PROGRESS),
        (RentalStatus.IN_PROGRESS, RentalEvent.COMPLETE, RentalStatus.COMPLETED),
        (RentalStatus.IN_PROGRESS, RentalEvent.TERMINATE_EARLY, RentalStatus.EARLY_TERMINATED),
        (RentalStatus.PENDING, RentalEvent.CANCEL, RentalStatus.CANCELLED),
        (RentalStatus.IN_PROGRESS, RentalEvent.EXTEND, RentalStatus.IN_PROGRESS),
        (RentalStatus.PENDING, RentalEvent.DELETE, DELETED),
    ],
)
def test_allowed_transitions(current, event, expected):
    assert transition(current, event) == expected


def test_transition_accepts_stored_string_status():
    assert transition("PENDING", RentalEvent.START) == RentalStatus.IN_PROGRESS


@pytest.mark.parametrize(
    "current, event, error",
    [
        (RentalStatus.IN_PROGRESS, RentalEvent.UPDATE, NotPending),
        (RentalStatus.IN_PROGRESS, RentalEvent.START, NotPending),
        (RentalStatus.PENDING, RentalEvent.COMPLETE, NotInProgress),
        (RentalStatus.PENDING, RentalEvent.TERMINATE_EARLY, NotInProgress),
        (RentalStatus.IN_PROGRESS, RentalEvent.CANCEL, InProgressCannotCancel),
        (RentalStatus.PENDING, RentalEvent.EXTEND, NotInProgress),
        (RentalStatus.IN_PROGRESS, RentalEvent.DELETE, NotPending),
        (RentalStatus.PENDING, RentalEvent.CREATE, StateConflictError),
    ],
)
def test_rejected_transitions(current, event, error):
    with pytest.raises(error):
        transition(current, event)


@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES))
@pytest.mark.parametrize("event", [e for e in RentalEvent if e != RentalEvent.CREATE])
def test_terminal_statuses_accept_nothing(terminal, event):
    with pytest.raises(StateConflictError):
        transition(terminal, event)


def test_rejection_errors_are_state_conflicts():
    assert issubclass(InProgressCannotCancel, StateConflictError)
    assert issubclass(NotPending, StateConflictError)
    assert issubclass(NotInProgress, StateConflictError)


def test_vehicle_writes_follow_transitions():
    assert vehicle_write_for(RentalEvent.CREATE) == RESERVE
    assert vehicle_write_for(RentalEvent.UPDATE) == RESERVE
    assert vehicle_write_for(RentalEvent.START) == OCCUPY
    assert vehicle_write_for(RentalEvent.EXTEND) is None
    for event in (RentalEvent.COMPLETE, RentalEvent.TERMINATE_EARLY, RentalEvent.CANCEL, RentalEvent.DELETE):
        assert vehicle_write_for(event) == RELEASE


def test_vehicle_writes_keep_flag_consistent_with_status():
    for write in (RESERVE, OCCUPY, RELEASE):
        assert write.available == (write.status in (VehicleStatus.AVAILABLE, VehicleStatus.RESERVED))


# ---- date rules ----

def test_valid_range_passes():
    validate_rental_dates(NOW + timedelta(days=1), NOW + timedelta(days=4), NOW, UTC)


def test_start_in_past_rejected():
    with pytest.raises(InvalidDateRange):
        validate_rental_dates(NOW - timedelta(minutes=1), NOW + timedelta(days=2), NOW, UTC)


def test_same_day_start_needs_two_hours_lead():
    with pytest.raises(ValidationError):
        validate_rental_dates(NOW + timedelta(hours=1), NOW + timedelta(days=2), NOW, UTC)

    validate_rental_dates(NOW + timedelta(hours=3), NOW + timedelta(days=2), NOW, UTC)


def test_lead_time_rule_only_applies_to_today():
    late = datetime(2030, 1, 10, 23, 30, tzinfo=UTC)
    # 00:30 tomorrow is less than 2h away but on another calendar day
    validate_rental_dates(late + timedelta(hours=1), late + timedelta(days=2), late, UTC)


def test_today_is_judged_in_rental_timezone():
    sao_paulo = tz.gettz("America/Sao_Paulo")
    now = datetime(2030, 1, 10, 23, 30, tzinfo=UTC)  # 20:30 on the 10th in Sao Paulo
    start = now + timedelta(hours=1)  # already the 11th in UTC, still the 10th locally

    validate_rental_dates(start, start + timedelta(days=2), now, UTC)
    with pytest.raises(InvalidDateRange):
        validate_rental_dates(start, start + timedelta(days=2), now, sao_paulo)


def test_end_must_follow_start():
    start = NOW + timedelta(days=1)
    with pytest.raises(InvalidDateRange):
        validate_rental_dates(start, start, NOW, UTC)
    with pytest.raises(InvalidDateRange):
        validate_rental_dates(start, start - timedelta(hours=1), NOW, UTC)


def test_duration_bounds():
    start = NOW + timedelta(days=1)
    with pytest.raises(InvalidDateRange):
        validate_rental_dates(start, start + timedelta(hours=23), NOW, UTC)
    with pytest.raises(InvalidDateRange):
        validate_rental_dates(start, start + timedelta(days=31), NOW, UTC)

    validate_rental_dates(start, start + timedelta(days=1), NOW, UTC)
    validate_rental_dates(start, start + timedelta(days=30), NOW, UTC)


def test_new_end_date_rules():
    current_end = NOW + timedelta(days=2)
    with pytest.raises(InvalidNewEndDate):
        validate_new_end_date(current_end, NOW - timedelta(hours=1), NOW)
    with pytest.raises(InvalidNewEndDate):
        validate_new_end_date(current_end, current_end, NOW)

    validate_new_end_date(current_end, current_end + timedelta(hours=1), NOW)
