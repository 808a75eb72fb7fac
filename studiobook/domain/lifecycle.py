"""Booking status transition table."""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional

from ..core.enums import BookingStatus
from ..core.exceptions import StateTransitionException

S = BookingStatus

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    S.PENDING: frozenset(
        {S.CONFIRMED, S.INSTALLMENT, S.PAID, S.CANCELLED, S.EXPIRED, S.FAILED}
    ),
    S.CONFIRMED: frozenset({S.PAID, S.COMPLETED, S.CANCELLED}),
    # A further partial payment keeps the booking in installment
    S.INSTALLMENT: frozenset({S.INSTALLMENT, S.PAID, S.CANCELLED}),
    S.PAID: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.EXPIRED: frozenset(),
    S.FAILED: frozenset(),
}

_missing = set(BookingStatus) - set(ALLOWED_TRANSITIONS)
if _missing:
    raise RuntimeError(f"Transition table is missing statuses: {sorted(_missing)}")

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# Operator edits (reschedule, extra time, services)
EDITABLE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {S.PENDING, S.CONFIRMED, S.INSTALLMENT}
)

# Statuses that can still receive money
PAYABLE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {S.PENDING, S.CONFIRMED, S.INSTALLMENT}
)


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return BookingStatus(target) in ALLOWED_TRANSITIONS[BookingStatus(current)]


def ensure_transition(
    current: BookingStatus, target: BookingStatus, booking_id: Optional[str] = None
) -> BookingStatus:
    """Return ``target`` if the move is allowed, else raise StateTransitionException."""
    current = BookingStatus(current)
    target = BookingStatus(target)
    if not can_transition(current, target):
        raise StateTransitionException(current.value, target.value, booking_id=booking_id)
    return target
