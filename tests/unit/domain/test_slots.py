from __future__ import annotations

from datetime import date, datetime, time, timezone
from itertools import combinations

import pytest

from studiobook.core.exceptions import ValidationException
from studiobook.domain.conflicts import ranges_overlap
from studiobook.domain.slots import generate_slots

DAY = date(2025, 7, 20)
OPEN = time(10, 0)
CLOSE = time(20, 30)


def test_first_slots_follow_duration_and_gap() -> None:
    slots = list(generate_slots(DAY, 30, 5, OPEN, CLOSE))
    assert [slot.label for slot in slots[:3]] == ["10:00 - 10:30", "10:35 - 11:05", "11:10 - 11:40"]


def test_slots_end_strictly_before_closing() -> None:
    slots = list(generate_slots(DAY, 30, 5, OPEN, CLOSE))
    closing = datetime.combine(DAY, CLOSE)
    assert slots
    assert all(slot.local_end < closing for slot in slots)
    assert slots[-1].label == "19:55 - 20:25"


def test_slot_ending_exactly_at_closing_is_not_emitted() -> None:
    slots = list(generate_slots(DAY, 60, 0, time(18, 30), CLOSE))
    assert [slot.label for slot in slots] == ["18:30 - 19:30"]


def test_regular_gap_of_ten_minutes() -> None:
    slots = list(generate_slots(DAY, 60, 10, OPEN, CLOSE))
    assert slots[1].local_start == datetime(2025, 7, 20, 11, 10)
    assert len(slots) == 9


@pytest.mark.parametrize("duration,gap", [(15, 5), (30, 5), (45, 10), (60, 10), (90, 0)])
def test_slots_never_overlap(duration: int, gap: int) -> None:
    ranges = [slot.to_range() for slot in generate_slots(DAY, duration, gap, OPEN, CLOSE)]
    assert all(not ranges_overlap(a, b) for a, b in combinations(ranges, 2))


def test_duration_longer_than_window_yields_nothing() -> None:
    assert list(generate_slots(DAY, 11 * 60, 5, OPEN, CLOSE)) == []


def test_generation_is_restartable() -> None:
    assert list(generate_slots(DAY, 30, 5, OPEN, CLOSE)) == list(
        generate_slots(DAY, 30, 5, OPEN, CLOSE)
    )


def test_to_range_converts_to_utc() -> None:
    first = next(iter(generate_slots(DAY, 30, 5, OPEN, CLOSE)))
    window = first.to_range()
    assert window.start == datetime(2025, 7, 20, 2, 0, tzinfo=timezone.utc)
    assert window.end == datetime(2025, 7, 20, 2, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "duration,gap,start,end",
    [
        (0, 5, OPEN, CLOSE),
        (-30, 5, OPEN, CLOSE),
        (30, -1, OPEN, CLOSE),
        (30, 5, CLOSE, OPEN),
        (30, 5, OPEN, OPEN),
    ],
)
def test_invalid_arguments_raise_immediately(duration, gap, start, end) -> None:
    with pytest.raises(ValidationException):
        generate_slots(DAY, duration, gap, start, end)
