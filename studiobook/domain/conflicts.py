"""
Overlap detection between a candidate window and existing reservations.

Windows are half-open: a booking ending at 11:00 and another starting at
11:00 do not conflict.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import FrozenSet, Iterable, Optional, Tuple

from ..core.constants import ERROR_INVALID_TIME_RANGE
from ..core.enums import BookingStatus
from ..core.exceptions import ValidationException

# Statuses that hold a studio slot
OCCUPYING_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {
        BookingStatus.PENDING,
        BookingStatus.CONFIRMED,
        BookingStatus.PAID,
        BookingStatus.INSTALLMENT,
    }
)


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValidationException(
                ERROR_INVALID_TIME_RANGE,
                code="INVALID_TIME_RANGE",
                details={"start": self.start.isoformat(), "end": self.end.isoformat()},
            )

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def extended(self, minutes: int) -> "TimeRange":
        return TimeRange(self.start, self.end + timedelta(minutes=minutes))


def ranges_overlap(a: TimeRange, b: TimeRange) -> bool:
    return a.start < b.end and a.end > b.start


@dataclass(frozen=True)
class ReservationWindow:
    """The part of a stored reservation the detector needs."""

    id: str
    start: datetime
    end: datetime
    status: BookingStatus
    extra_minutes: int = 0

    @property
    def effective_range(self) -> TimeRange:
        return TimeRange(self.start, self.end + timedelta(minutes=self.extra_minutes))

    @classmethod
    def from_record(cls, record, *, extra_included: bool = True) -> "ReservationWindow":
        """
        Build a window from a reservation row.

        Stored end times already include granted extra time, so by default
        nothing is added on top.
        """
        return cls(
            id=record.id,
            start=record.start_time,
            end=record.end_time,
            status=BookingStatus(record.status),
            extra_minutes=0 if extra_included else int(record.extra_minutes or 0),
        )


@dataclass(frozen=True)
class ConflictResult:
    accepted: bool
    conflicting_ids: Tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return self.accepted


def find_conflicts(
    candidate: TimeRange,
    reservations: Iterable[ReservationWindow],
    exclude_id: Optional[str] = None,
    statuses: FrozenSet[BookingStatus] = OCCUPYING_STATUSES,
) -> ConflictResult:
    """
    Check a candidate window against reservations of the same studio scope.

    Reservations outside ``statuses`` and the one matching ``exclude_id``
    (the booking being edited) are ignored. Conflicting ids keep input order.
    """
    conflicting = tuple(
        reservation.id
        for reservation in reservations
        if reservation.id != exclude_id
        and reservation.status in statuses
        and ranges_overlap(candidate, reservation.effective_range)
    )
    return ConflictResult(accepted=not conflicting, conflicting_ids=conflicting)
