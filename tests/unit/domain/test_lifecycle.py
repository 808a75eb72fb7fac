from __future__ import annotations

import pytest

from studiobook.core.enums import BookingStatus
from studiobook.core.exceptions import StateTransitionException
from studiobook.domain.lifecycle import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    can_transition,
    ensure_transition,
)

S = BookingStatus


def test_every_status_has_an_entry() -> None:
    assert set(ALLOWED_TRANSITIONS) == set(BookingStatus)


def test_terminal_statuses() -> None:
    assert TERMINAL_STATUSES == {S.COMPLETED, S.CANCELLED, S.EXPIRED, S.FAILED}


@pytest.mark.parametrize(
    "current,target",
    [
        (S.PENDING, S.PAID),
        (S.PENDING, S.INSTALLMENT),
        (S.PENDING, S.EXPIRED),
        (S.CONFIRMED, S.COMPLETED),
        (S.INSTALLMENT, S.INSTALLMENT),
        (S.INSTALLMENT, S.PAID),
        (S.PAID, S.COMPLETED),
    ],
)
def test_allowed_moves(current, target) -> None:
    assert can_transition(current, target)
    assert ensure_transition(current, target) is target


@pytest.mark.parametrize(
    "current,target",
    [
        (S.PAID, S.CANCELLED),
        (S.PAID, S.PENDING),
        (S.CONFIRMED, S.PENDING),
        (S.INSTALLMENT, S.PENDING),
        (S.CANCELLED, S.PAID),
        (S.COMPLETED, S.CANCELLED),
        (S.EXPIRED, S.PENDING),
    ],
)
def test_rejected_moves(current, target) -> None:
    assert not can_transition(current, target)
    with pytest.raises(StateTransitionException) as exc_info:
        ensure_transition(current, target, booking_id="B1")
    assert exc_info.value.from_status == current.value
    assert exc_info.value.to_status == target.value


def test_accepts_plain_string_values() -> None:
    assert can_transition("pending", "paid")
