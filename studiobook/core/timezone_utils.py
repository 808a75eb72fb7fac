"""
Civil-time utilities for the studio booking engine.

All user-facing scheduling happens in WITA, a fixed UTC+8 zone with no
daylight saving. Storage always holds absolute UTC instants. Local values
are naive datetimes read as WITA wall-clock time.
"""

from datetime import date, datetime, time, timedelta
from typing import Tuple, Union

import pytz

from .constants import (
    DATETIME_LOCAL_INPUT_FORMAT,
    DISPLAY_DATETIME_FORMAT,
    DISPLAY_TIME_FORMAT,
    WITA_OFFSET_HOURS,
)
from .exceptions import ValidationException

WITA = pytz.FixedOffset(WITA_OFFSET_HOURS * 60)
UTC = pytz.UTC

LocalInput = Union[datetime, str]


def parse_local_datetime(value: str) -> datetime:
    """
    Parse a local wall-clock string such as "2025-07-20T08:00".

    Args:
        value: ISO-like date-time ("YYYY-MM-DDTHH:MM[:SS]", space separator allowed)

    Returns:
        The parsed datetime. Naive unless the string carried an offset.

    Raises:
        ValidationException: If the string cannot be parsed
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationException(
            "Date-time value is required",
            code="INVALID_DATETIME",
            details={"value": value},
        )
    candidate = value.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValidationException(
            f"Invalid date-time '{value}'. Expected YYYY-MM-DDTHH:MM",
            code="INVALID_DATETIME",
            details={"value": value},
        ) from exc


def _as_local_wall_clock(value: LocalInput) -> datetime:
    if isinstance(value, str):
        value = parse_local_datetime(value)
    if not isinstance(value, datetime):
        raise ValidationException(
            "Expected a date-time value",
            code="INVALID_DATETIME",
            details={"value": repr(value)},
        )
    if value.tzinfo is not None:
        # Already absolute: express it on the WITA wall clock first
        return value.astimezone(WITA).replace(tzinfo=None)
    return value


def to_absolute(local: LocalInput) -> datetime:
    """
    Convert a WITA wall-clock value to an aware UTC instant.

    Input: 2025-07-20T08:00 (WITA)
    Output: 2025-07-20T00:00:00+00:00
    """
    wall_clock = _as_local_wall_clock(local)
    try:
        return WITA.localize(wall_clock).astimezone(UTC)
    except OverflowError as exc:
        raise ValidationException(
            "Date-time is outside the supported range",
            code="INVALID_DATETIME",
            details={"value": wall_clock.isoformat()},
        ) from exc


def ensure_utc(instant: datetime) -> datetime:
    """Return an aware UTC datetime, assuming UTC if no timezone info."""
    if instant.tzinfo is None:
        return UTC.localize(instant)
    return instant.astimezone(UTC)


def to_local(instant: datetime) -> datetime:
    """
    Convert an absolute instant to a naive WITA wall-clock value.

    Input: 2025-07-20T00:00:00Z
    Output: 2025-07-20T08:00
    """
    try:
        return ensure_utc(instant).astimezone(WITA).replace(tzinfo=None)
    except OverflowError as exc:
        raise ValidationException(
            "Date-time is outside the supported range",
            code="INVALID_DATETIME",
            details={"value": instant.isoformat()},
        ) from exc


def local_day_bounds(day: date) -> Tuple[datetime, datetime]:
    """UTC [start, end) covering one WITA calendar day."""
    start = to_absolute(datetime.combine(day, time.min))
    return start, start + timedelta(days=1)


def local_today(now: datetime) -> date:
    """The WITA calendar date of an absolute instant."""
    return to_local(now).date()


def format_datetime_wita(instant: datetime) -> str:
    """Display format "20/07/2025 08:00"."""
    return to_local(instant).strftime(DISPLAY_DATETIME_FORMAT)


def format_time_wita(instant: datetime) -> str:
    """Display format "08:00"."""
    return to_local(instant).strftime(DISPLAY_TIME_FORMAT)


def to_datetime_local_input(instant: datetime) -> str:
    """Editing format "2025-07-20T08:00"."""
    return to_local(instant).strftime(DATETIME_LOCAL_INPUT_FORMAT)
