# studiobook/schemas/availability.py
from datetime import date, datetime
from typing import List, Optional

from ._strict_base import StrictModel


class SlotOut(StrictModel):
    local_start: datetime
    local_end: datetime
    label: str
    available: bool
    conflicting_booking_ids: List[str] = []


class DayAvailability(StrictModel):
    studio_id: str
    package_id: str
    category_id: Optional[str] = None
    day: date
    session_minutes: int
    gap_minutes: int
    slots: List[SlotOut]

    @property
    def available_slots(self) -> List[SlotOut]:
        return [slot for slot in self.slots if slot.available]
