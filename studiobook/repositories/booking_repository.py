# studiobook/repositories/booking_repository.py
"""
Booking repository: the reservation store used by the scheduling engine.

Conflict candidates are fetched with the same half-open overlap predicate
the domain detector applies, so the detector only has to re-check a small
set of rows.
"""

from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.enums import BookingStatus
from ..core.exceptions import RepositoryException
from ..domain.conflicts import OCCUPYING_STATUSES
from ..models.booking import Booking, BookingAdditionalService
from .base_repository import BaseRepository


def _status_values(statuses: Iterable[BookingStatus]) -> List[str]:
    return sorted(BookingStatus(status).value for status in statuses)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            selectinload(Booking.services),
            selectinload(Booking.installments),
        )

    def list_reservations(
        self,
        studio_id: str,
        window_start: datetime,
        window_end: datetime,
        *,
        category_id: Optional[str] = None,
        statuses: Iterable[BookingStatus] = OCCUPYING_STATUSES,
        is_walk_in: Optional[bool] = None,
        exclude_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Reservations of one studio overlapping [window_start, window_end).

        Args:
            studio_id: Studio whose schedule is checked
            window_start: Window start (UTC)
            window_end: Window end (UTC)
            category_id: Restrict to one package category (regular studios)
            statuses: Statuses to include, slot-holding ones by default
            is_walk_in: Restrict to walk-ins (True) or scheduled bookings (False)
            exclude_id: Booking to leave out, typically the one being edited

        Returns:
            Matching bookings ordered by start time
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.studio_id == studio_id,
                Booking.status.in_(_status_values(statuses)),
                Booking.start_time < window_end,
                Booking.end_time > window_start,
            )
            if category_id is not None:
                query = query.filter(Booking.package_category_id == category_id)
            if is_walk_in is not None:
                query = query.filter(Booking.is_walk_in.is_(is_walk_in))
            if exclude_id:
                query = query.filter(Booking.id != exclude_id)
            return query.order_by(Booking.start_time, Booking.id).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing reservations for studio {studio_id}: {str(e)}")
            raise RepositoryException(f"Failed to list reservations: {str(e)}")

    def create_reservation(
        self, *, services: Sequence[Mapping[str, Any]] = (), **fields: Any
    ) -> Booking:
        """
        Insert a booking and its service lines.

        Note: flushes but does not commit.
        """
        booking = self.create(**fields)
        self._replace_service_lines(booking, services)
        return booking

    def update_reservation(
        self,
        booking_id: str,
        *,
        services: Optional[Sequence[Mapping[str, Any]]] = None,
        **patch: Any,
    ) -> Optional[Booking]:
        """Patch booking fields; ``services`` replaces all service lines when given."""
        booking = self.update(booking_id, **patch)
        if booking is not None and services is not None:
            self._replace_service_lines(booking, services)
        return booking

    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        """Fresh copy of a booking, bypassing the identity map cache."""
        try:
            return (
                self._apply_eager_loading(self.db.query(Booking))
                .filter(Booking.id == booking_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to load booking: {str(e)}")

    def _replace_service_lines(
        self, booking: Booking, services: Sequence[Mapping[str, Any]]
    ) -> None:
        try:
            booking.services.clear()
            for position, line in enumerate(services):
                booking.services.append(
                    BookingAdditionalService(
                        service_id=line["service_id"],
                        quantity=int(line.get("quantity", 1)),
                        unit_price=int(line["unit_price"]),
                        position=position,
                    )
                )
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error saving service lines for booking {booking.id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to save booking services: {str(e)}")
