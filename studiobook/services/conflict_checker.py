# studiobook/services/conflict_checker.py
"""
Conflict checks against the reservation store.

Scope of a check: same studio; same package category for regular
studios; and, when WALK_IN_CONFLICT_SCOPE is "separate", only bookings of
the same walk-in flag. Callers that go on to write must hold the studio
lock around check and commit.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.exceptions import BookingConflictException
from ..domain.conflicts import ConflictResult, ReservationWindow, TimeRange, find_conflicts
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService


class ConflictChecker(BaseService):
    def __init__(
        self,
        db: Session,
        booking_repository: Optional[BookingRepository] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db, config=config)
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )

    def _walk_in_filter(self, is_walk_in: Optional[bool]) -> Optional[bool]:
        if self.config.walk_in_conflict_scope == "separate" and is_walk_in is not None:
            return is_walk_in
        return None

    @BaseService.measure_operation("check_slot")
    def check_slot(
        self,
        studio_id: str,
        start: datetime,
        end: datetime,
        *,
        category_id: Optional[str] = None,
        is_walk_in: Optional[bool] = None,
        exclude_id: Optional[str] = None,
    ) -> ConflictResult:
        """
        Check [start, end) (UTC) against the studio's slot-holding reservations.

        Args:
            studio_id: Studio to check
            start: Candidate start instant
            end: Candidate end instant, extra time included
            category_id: Package category for regular studios, None otherwise
            is_walk_in: Walk-in flag of the candidate
            exclude_id: Booking being edited

        Returns:
            ConflictResult with the ids of every overlapping reservation
        """
        candidate = TimeRange(start, end)
        rows = self.booking_repository.list_reservations(
            studio_id,
            candidate.start,
            candidate.end,
            category_id=category_id,
            is_walk_in=self._walk_in_filter(is_walk_in),
            exclude_id=exclude_id,
        )
        return find_conflicts(
            candidate,
            (ReservationWindow.from_record(row) for row in rows),
            exclude_id=exclude_id,
        )

    def ensure_available(
        self,
        studio_id: str,
        start: datetime,
        end: datetime,
        *,
        category_id: Optional[str] = None,
        is_walk_in: Optional[bool] = None,
        exclude_id: Optional[str] = None,
    ) -> None:
        result = self.check_slot(
            studio_id,
            start,
            end,
            category_id=category_id,
            is_walk_in=is_walk_in,
            exclude_id=exclude_id,
        )
        if not result.accepted:
            self.logger.info(
                "Booking conflict",
                extra={
                    "studio_id": studio_id,
                    "conflicting_ids": list(result.conflicting_ids),
                },
            )
            raise BookingConflictException(conflicting_ids=result.conflicting_ids)
