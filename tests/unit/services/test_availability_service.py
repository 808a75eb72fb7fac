from __future__ import annotations

from datetime import date, datetime, time, timezone

import pytest

from studiobook.core.exceptions import NotFoundException, ValidationException
from studiobook.services.availability_service import AvailabilityService
from studiobook.services.booking_service import BookingService

BOOKING_DAY = date(2025, 7, 20)


@pytest.fixture
def availability(db, test_settings) -> AvailabilityService:
    return AvailabilityService(db, config=test_settings)


@pytest.fixture
def booking_service(db, test_settings, clock) -> BookingService:
    return BookingService(db, config=test_settings, clock=clock)


def test_self_photo_day_grid(availability, self_photo_studio, self_photo_package):
    day = availability.get_day_availability(
        self_photo_studio.id, self_photo_package.id, BOOKING_DAY
    )

    assert day.session_minutes == 30
    assert day.gap_minutes == 5
    assert len(day.slots) == 18
    assert day.slots[0].label == "10:00 - 10:30"
    assert day.slots[1].label == "10:35 - 11:05"
    assert day.slots[-1].label == "19:55 - 20:25"
    assert all(slot.available for slot in day.slots)


def test_regular_day_grid(availability, regular_studio, prewedding_package):
    day = availability.get_day_availability(
        regular_studio.id, prewedding_package.id, BOOKING_DAY
    )
    assert day.category_id == prewedding_package.category_id
    assert [slot.local_start.time() for slot in day.slots[:2]] == [time(10, 0), time(11, 10)]
    assert len(day.slots) == 9


def test_quantity_lengthens_slots(availability, self_photo_studio, self_photo_package):
    day = availability.get_day_availability(
        self_photo_studio.id, self_photo_package.id, BOOKING_DAY, quantity=2
    )
    assert day.session_minutes == 60
    assert day.slots[0].label == "10:00 - 11:00"


def test_booked_slot_reported_with_conflict(
    availability, booking_service, self_photo_studio, self_photo_package
):
    booking = booking_service.create_booking(
        {
            "studio_id": self_photo_studio.id,
            "package_id": self_photo_package.id,
            "start_local": "2025-07-20T10:00",
        }
    )
    day = availability.get_day_availability(
        self_photo_studio.id, self_photo_package.id, BOOKING_DAY
    )

    assert day.slots[0].available is False
    assert day.slots[0].conflicting_booking_ids == [booking.id]
    assert day.slots[1].available is True
    assert len(day.available_slots) == 17


def test_other_category_unaffected(
    availability, booking_service, regular_studio, prewedding_package, family_package
):
    booking_service.create_booking(
        {
            "studio_id": regular_studio.id,
            "package_id": prewedding_package.id,
            "start_local": "2025-07-20T10:00",
        }
    )
    prewedding = availability.get_day_availability(
        regular_studio.id, prewedding_package.id, BOOKING_DAY
    )
    family = availability.get_day_availability(regular_studio.id, family_package.id, BOOKING_DAY)

    assert prewedding.slots[0].available is False
    assert family.slots[0].available is True


def test_past_slots_unavailable(availability, self_photo_studio, self_photo_package):
    now = datetime(2025, 7, 20, 2, 30, tzinfo=timezone.utc)
    day = availability.get_day_availability(
        self_photo_studio.id, self_photo_package.id, BOOKING_DAY, now=now
    )
    assert day.slots[0].available is False
    assert day.slots[0].conflicting_booking_ids == []
    assert day.slots[1].available is True


def test_naive_now_treated_as_utc(availability, self_photo_studio, self_photo_package):
    day = availability.get_day_availability(
        self_photo_studio.id, self_photo_package.id, BOOKING_DAY, now=datetime(2025, 7, 20, 2, 30)
    )
    assert day.slots[0].available is False
    assert day.slots[1].available is True


def test_unknown_studio(availability, self_photo_package):
    with pytest.raises(NotFoundException):
        availability.get_day_availability("missing", self_photo_package.id, BOOKING_DAY)


def test_regular_quantity_rejected(availability, regular_studio, prewedding_package):
    with pytest.raises(ValidationException):
        availability.get_day_availability(
            regular_studio.id, prewedding_package.id, BOOKING_DAY, quantity=2
        )
