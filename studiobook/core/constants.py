"""Application-wide constants for the studio booking engine."""

from __future__ import annotations

# Civil time (WITA). The offset is fixed: no daylight saving in Central Indonesia.
WITA_OFFSET_HOURS = 8

# Extra time is billed in slabs of this many minutes, rounded up.
EXTRA_TIME_SLAB_MINUTES = 5

# Lock TTL must outlive a gateway call made while holding the lock by this much.
LOCK_TTL_MARGIN_SECONDS = 10

# Display formats
DISPLAY_DATETIME_FORMAT = "%d/%m/%Y %H:%M"
DISPLAY_TIME_FORMAT = "%H:%M"
DATETIME_LOCAL_INPUT_FORMAT = "%Y-%m-%dT%H:%M"

# Booking codes shown on invoices ("BK-" + first 8 chars of the booking id)
BOOKING_CODE_PREFIX = "BK-"
BOOKING_CODE_LENGTH = 8

# Error messages
ERROR_INVALID_TIME_RANGE = "End time must be after start time"
ERROR_SLOT_TAKEN = "This time slot conflicts with an existing booking"
ERROR_STUDIO_INACTIVE = "Studio is not accepting bookings"
ERROR_INSTALLMENT_EXCEEDS_REMAINING = "Installment amount exceeds the remaining balance"

# Brand Configuration
BRAND_NAME = "StudioBook"


def booking_code(booking_id: str) -> str:
    """Short human-facing booking code used in invoice descriptions."""
    return f"{BOOKING_CODE_PREFIX}{booking_id[:BOOKING_CODE_LENGTH]}"
