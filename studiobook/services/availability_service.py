# studiobook/services/availability_service.py
"""
Day availability for one studio package.

Slots come from the slot generator using the studio kind's gap and the
operating hours; each slot is then checked against the day's
reservations fetched in a single query.
"""

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.enums import StudioKind
from ..core.timezone_utils import ensure_utc, local_day_bounds
from ..domain.catalog import policy_for, session_minutes
from ..domain.conflicts import ReservationWindow, find_conflicts
from ..domain.slots import generate_slots
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import DayAvailability, SlotOut
from .base import BaseService
from .pricing_service import PricingService


class AvailabilityService(BaseService):
    def __init__(
        self,
        db: Session,
        booking_repository: Optional[BookingRepository] = None,
        pricing_service: Optional[PricingService] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db, config=config)
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )
        self.pricing_service = pricing_service or PricingService(db, config=self.config)

    @BaseService.measure_operation("get_day_availability")
    def get_day_availability(
        self,
        studio_id: str,
        package_id: str,
        day: date,
        *,
        quantity: int = 1,
        is_walk_in: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> DayAvailability:
        """
        Every candidate slot of ``day`` (WITA) with its availability.

        Slots starting at or before ``now`` are reported unavailable; a naive
        ``now`` is taken as UTC.
        """
        studio, package = self.pricing_service.load_package(studio_id, package_id)
        policy = policy_for(StudioKind(studio.kind), self.config)
        minutes = session_minutes(package, quantity)

        now_utc = ensure_utc(now) if now is not None else None
        day_start, day_end = local_day_bounds(day)
        walk_in_filter = (
            is_walk_in if self.config.walk_in_conflict_scope == "separate" else None
        )
        reservations = [
            ReservationWindow.from_record(row)
            for row in self.booking_repository.list_reservations(
                studio.id,
                day_start,
                day_end,
                category_id=package.category_id,
                is_walk_in=walk_in_filter,
            )
        ]

        slots: List[SlotOut] = []
        for slot in generate_slots(
            day, minutes, policy.gap_minutes, policy.operating_start, policy.operating_end
        ):
            window = slot.to_range()
            result = find_conflicts(window, reservations)
            in_past = now_utc is not None and window.start <= now_utc
            slots.append(
                SlotOut(
                    local_start=slot.local_start,
                    local_end=slot.local_end,
                    label=slot.label,
                    available=result.accepted and not in_past,
                    conflicting_booking_ids=list(result.conflicting_ids),
                )
            )

        self.log_operation(
            "get_day_availability",
            studio_id=studio.id,
            day=day.isoformat(),
            slot_count=len(slots),
        )
        return DayAvailability(
            studio_id=studio.id,
            package_id=package.id,
            category_id=package.category_id,
            day=day,
            session_minutes=minutes,
            gap_minutes=policy.gap_minutes,
            slots=slots,
        )
