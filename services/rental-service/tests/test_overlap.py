from datetime import datetime, timedelta, timezone

import pytest

from app.overlap import has_overlap, intervals_overlap

T0 = datetime(2030, 5, 1, 8, 0, tzinfo=timezone.utc)


def h(n):
    return T0 + timedelta(hours=n)


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ((h(0), h(10)), (h(2), h(4)), True),      # contained
        ((h(2), h(4)), (h(0), h(10)), True),      # containing
        ((h(0), h(5)), (h(3), h(8)), True),       # partial
        ((h(0), h(5)), (h(5), h(8)), True),       # touching at handover
        ((h(5), h(8)), (h(0), h(5)), True),
        ((h(0), h(5)), (h(6), h(8)), False),      # disjoint
        ((h(6), h(8)), (h(0), h(5)), False),
    ],
)
def test_intervals_overlap_closed(a, b, expected):
    assert intervals_overlap(*a, *b) is expected


class FakeReservations:
    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    async def find_active_by_resource(self, vehicle_id, start, end, exclude_id, statuses):
        self.calls.append((vehicle_id, exclude_id, set(statuses)))
        return [
            r for r in self.rows
            if r.vehicle_id == vehicle_id and r.id != exclude_id and r.status in statuses
        ]


class Row:
    def __init__(self, id, vehicle_id, start, end, status="PENDING"):
        self.id = id
        self.vehicle_id = vehicle_id
        self.start_date = start
        self.end_date = end
        self.status = status


async def test_has_overlap_excludes_given_reservation():
    store = FakeReservations([Row(1, 7, h(0), h(10))])

    assert await has_overlap(store, 7, h(2), h(3), None, {"PENDING"}) is True
    assert await has_overlap(store, 7, h(2), h(3), 1, {"PENDING"}) is False


async def test_has_overlap_ignores_other_vehicles_and_statuses():
    store = FakeReservations([
        Row(1, 8, h(0), h(10)),
        Row(2, 7, h(0), h(10), status="COMPLETED"),
    ])

    assert await has_overlap(store, 7, h(2), h(3), None, {"PENDING", "IN_PROGRESS"}) is False


async def test_has_overlap_rechecks_candidates_on_full_timestamps():
    # a store that over-returns must not produce a false positive
    store = FakeReservations([Row(1, 7, h(20), h(30))])

    assert await has_overlap(store, 7, h(0), h(5), None, {"PENDING"}) is False
