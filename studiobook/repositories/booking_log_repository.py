# studiobook/repositories/booking_log_repository.py
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import BookingLogAction
from ..models.booking_log import BookingLog
from .base_repository import BaseRepository


class BookingLogRepository(BaseRepository[BookingLog]):
    def __init__(self, db: Session):
        super().__init__(db, BookingLog)

    def record(
        self,
        booking_id: str,
        action: BookingLogAction,
        *,
        performed_by: Optional[str] = None,
        old_data: Optional[Dict[str, Any]] = None,
        new_data: Optional[Dict[str, Any]] = None,
        note: Optional[str] = None,
    ) -> BookingLog:
        return self.create(
            booking_id=booking_id,
            action_type=BookingLogAction(action).value,
            performed_by=performed_by,
            old_data=old_data,
            new_data=new_data,
            note=note,
        )

    def list_for_booking(self, booking_id: str) -> List[BookingLog]:
        query = (
            self.db.query(BookingLog)
            .filter(BookingLog.booking_id == booking_id)
            .order_by(BookingLog.created_at, BookingLog.id)
        )
        return self._execute_query(query)
