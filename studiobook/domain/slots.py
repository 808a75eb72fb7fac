"""Candidate booking slots for one studio day."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator

from ..core.exceptions import ValidationException
from ..core.timezone_utils import to_absolute
from .conflicts import TimeRange


@dataclass(frozen=True)
class TimeSlot:
    """A candidate window on the WITA wall clock; half-open [start, end)."""

    local_start: datetime
    local_end: datetime

    @property
    def label(self) -> str:
        return f"{self.local_start:%H:%M} - {self.local_end:%H:%M}"

    def to_range(self) -> TimeRange:
        """Absolute UTC range used for conflict checks and storage."""
        return TimeRange(to_absolute(self.local_start), to_absolute(self.local_end))


def generate_slots(
    day: date,
    duration_minutes: int,
    gap_minutes: int,
    operating_start: time,
    operating_end: time,
) -> Iterator[TimeSlot]:
    """
    Yield the day's candidate slots from opening time onwards.

    Each slot lasts ``duration_minutes``; the next one starts ``gap_minutes``
    after the previous one ends. Generation stops at the first slot that
    would finish at or after ``operating_end``. Calling again with the same
    arguments yields the same sequence.
    """
    if duration_minutes <= 0:
        raise ValidationException(
            "Session duration must be positive",
            code="INVALID_DURATION",
            details={"duration_minutes": duration_minutes},
        )
    if gap_minutes < 0:
        raise ValidationException(
            "Gap between sessions cannot be negative",
            code="INVALID_GAP",
            details={"gap_minutes": gap_minutes},
        )
    if operating_end <= operating_start:
        raise ValidationException(
            "Operating hours must end after they start",
            code="INVALID_OPERATING_HOURS",
            details={"start": operating_start.isoformat(), "end": operating_end.isoformat()},
        )

    return _iter_slots(
        datetime.combine(day, operating_start),
        datetime.combine(day, operating_end),
        timedelta(minutes=duration_minutes),
        timedelta(minutes=gap_minutes),
    )


def _iter_slots(
    cursor: datetime, closing: datetime, duration: timedelta, gap: timedelta
) -> Iterator[TimeSlot]:
    while cursor + duration < closing:
        slot_end = cursor + duration
        yield TimeSlot(local_start=cursor, local_end=slot_end)
        cursor = slot_end + gap
