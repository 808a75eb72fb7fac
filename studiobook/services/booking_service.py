# studiobook/services/booking_service.py
"""
Booking Service

Creates and edits reservations and drives the operator-side status
transitions. Every write that changes a booking's time window runs the
conflict check and the commit inside the studio lock, so two overlapping
requests for one studio cannot both succeed. Edits also hold the booking
lock and re-read the row before deriving new values from it.
"""

from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Iterator, Mapping, Optional, Union

from sqlalchemy.orm import Session

from ..core.booking_lock import booking_lock, studio_lock
from ..core.config import Settings
from ..core.constants import ERROR_STUDIO_INACTIVE
from ..core.enums import BookingLogAction, BookingStatus, StudioKind
from ..core.exceptions import BusinessRuleException, NotFoundException, ValidationException
from ..core.timezone_utils import to_absolute
from ..domain.catalog import RegularPackage
from ..domain.lifecycle import EDITABLE_STATUSES, ensure_transition
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas._strict_base import parse_request
from ..schemas.booking import (
    BookingCreate,
    BookingReschedule,
    BookingServicesUpdate,
    TimeExtensionRequest,
)
from .base import BaseService
from .conflict_checker import ConflictChecker
from .pricing_service import PricingService

Payload = Mapping[str, Any]


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Online bookings start pending and move forward as payments arrive;
    operator walk-ins start confirmed.
    """

    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        pricing_service: Optional[PricingService] = None,
        config: Optional[Settings] = None,
        clock=None,
    ):
        super().__init__(db, config=config, clock=clock)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.log_repository = RepositoryFactory.create_booking_log_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(
            db, booking_repository=self.booking_repository, config=self.config
        )
        self.pricing_service = pricing_service or PricingService(db, config=self.config)

    # Reads

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

    @contextmanager
    def _editing(self, booking_id: str) -> Iterator[Booking]:
        """
        Lock the studio and then the booking, open a transaction and yield a
        fresh, still-editable copy of the booking.
        """
        studio_id = self.get_booking(booking_id).studio_id
        with studio_lock(studio_id):
            with booking_lock(booking_id):
                with self.transaction():
                    booking = self.booking_repository.get_for_update(booking_id)
                    if booking is None:
                        raise NotFoundException(
                            f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND"
                        )
                    if BookingStatus(booking.status) not in EDITABLE_STATUSES:
                        raise BusinessRuleException(
                            f"Booking cannot be changed while {booking.status}",
                            code="BOOKING_NOT_EDITABLE",
                            details={"booking_id": booking.id, "status": booking.status},
                        )
                    yield booking

    # Creation

    @BaseService.measure_operation("create_booking")
    def create_booking(self, data: Union[BookingCreate, Payload]) -> Booking:
        """
        Validate, price and store a new booking.

        Raises:
            ValidationException: Bad input or catalog rule violation
            NotFoundException: Unknown studio, package or service
            BusinessRuleException: Studio is not accepting bookings
            BookingConflictException: The window overlaps an existing booking
        """
        req = parse_request(BookingCreate, data)
        studio, package = self.pricing_service.load_package(req.studio_id, req.package_id)
        if not studio.is_active:
            raise BusinessRuleException(
                ERROR_STUDIO_INACTIVE, code="STUDIO_INACTIVE", details={"studio_id": studio.id}
            )
        category_id = self._resolve_category(package, req.package_category_id)
        services = self.pricing_service.resolve_services(studio.id, req.services)
        priced = self.pricing_service.price_selection(
            studio, package, req.package_quantity, req.extra_minutes, services
        )

        start = to_absolute(req.start_local)
        end = start + timedelta(minutes=priced.session_minutes + req.extra_minutes)
        status = BookingStatus.CONFIRMED if req.is_walk_in else BookingStatus.PENDING

        with studio_lock(studio.id):
            with self.transaction():
                self.conflict_checker.ensure_available(
                    studio.id,
                    start,
                    end,
                    category_id=category_id,
                    is_walk_in=req.is_walk_in,
                )
                booking = self.booking_repository.create_reservation(
                    studio_id=studio.id,
                    package_id=package.id,
                    package_category_id=category_id,
                    customer_id=req.customer_id,
                    booking_type=StudioKind(studio.kind).value,
                    package_quantity=req.package_quantity,
                    start_time=start,
                    end_time=end,
                    extra_minutes=req.extra_minutes,
                    package_price=package.base_price,
                    total_amount=priced.breakdown.total,
                    status=status.value,
                    is_walk_in=req.is_walk_in,
                    payment_method=req.payment_method.value,
                    notes=req.notes,
                    performed_by=req.performed_by,
                    services=priced.service_lines,
                )
                self.log_repository.record(
                    booking.id,
                    BookingLogAction.CREATED,
                    performed_by=req.performed_by,
                    new_data=booking.to_snapshot(),
                )

        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            studio_id=studio.id,
            status=status.value,
            total_amount=booking.total_amount,
        )
        return booking

    @staticmethod
    def _resolve_category(package, requested: Optional[str]) -> Optional[str]:
        if isinstance(package, RegularPackage):
            if requested is not None and requested != package.category_id:
                raise ValidationException(
                    "Package does not belong to the selected category",
                    code="CATEGORY_MISMATCH",
                    details={"package_id": package.id, "category_id": requested},
                )
            return package.category_id
        if requested is not None:
            raise ValidationException(
                "Self-photo studios do not use package categories",
                code="CATEGORY_FORBIDDEN",
                details={"package_id": package.id},
            )
        return None

    # Edits

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self, booking_id: str, data: Union[BookingReschedule, Payload]
    ) -> Booking:
        """Move a booking to a new local start, keeping its length and extra time."""
        req = parse_request(BookingReschedule, data)
        new_start = to_absolute(req.start_local)

        with self._editing(booking_id) as booking:
            new_end = new_start + (booking.end_time - booking.start_time)
            old = booking.to_snapshot()
            self.conflict_checker.ensure_available(
                booking.studio_id,
                new_start,
                new_end,
                category_id=booking.package_category_id,
                is_walk_in=booking.is_walk_in,
                exclude_id=booking.id,
            )
            booking = self.booking_repository.update_reservation(
                booking.id, start_time=new_start, end_time=new_end
            )
            self.log_repository.record(
                booking.id,
                BookingLogAction.RESCHEDULED,
                performed_by=req.performed_by,
                old_data=old,
                new_data=booking.to_snapshot(),
                note=req.note,
            )

        self.log_operation("reschedule_booking", booking_id=booking.id)
        return booking

    @BaseService.measure_operation("extend_booking_time")
    def extend_booking_time(
        self, booking_id: str, data: Union[TimeExtensionRequest, Payload]
    ) -> Booking:
        """Grant extra minutes: pushes the end time and re-prices the booking."""
        req = parse_request(TimeExtensionRequest, data)

        with self._editing(booking_id) as booking:
            extra_minutes = booking.extra_minutes + req.additional_minutes
            new_end = booking.end_time + timedelta(minutes=req.additional_minutes)
            priced = self.pricing_service.reprice_booking(booking, extra_minutes=extra_minutes)
            old = booking.to_snapshot()
            self.conflict_checker.ensure_available(
                booking.studio_id,
                booking.start_time,
                new_end,
                category_id=booking.package_category_id,
                is_walk_in=booking.is_walk_in,
                exclude_id=booking.id,
            )
            booking = self.booking_repository.update_reservation(
                booking.id,
                extra_minutes=extra_minutes,
                end_time=new_end,
                total_amount=priced.breakdown.total,
            )
            self.log_repository.record(
                booking.id,
                BookingLogAction.TIME_EXTENDED,
                performed_by=req.performed_by,
                old_data=old,
                new_data=booking.to_snapshot(),
                note=req.note,
            )

        self.log_operation(
            "extend_booking_time",
            booking_id=booking.id,
            extra_minutes=extra_minutes,
            total_amount=booking.total_amount,
        )
        return booking

    @BaseService.measure_operation("update_booking_services")
    def update_booking_services(
        self, booking_id: str, data: Union[BookingServicesUpdate, Payload]
    ) -> Booking:
        """Replace the add-on services and re-persist the total."""
        req = parse_request(BookingServicesUpdate, data)

        with self._editing(booking_id) as booking:
            services = self.pricing_service.resolve_services(booking.studio_id, req.services)
            priced = self.pricing_service.reprice_booking(booking, services=services)
            old = booking.to_snapshot()
            paid = RepositoryFactory.create_payment_repository(self.db).sum_paid(booking.id)
            if priced.breakdown.total < paid:
                raise BusinessRuleException(
                    "New total would be lower than the amount already paid",
                    code="TOTAL_BELOW_PAID",
                    details={"total": priced.breakdown.total, "paid": paid},
                )
            booking = self.booking_repository.update_reservation(
                booking.id,
                total_amount=priced.breakdown.total,
                services=priced.service_lines,
            )
            self.log_repository.record(
                booking.id,
                BookingLogAction.SERVICES_UPDATED,
                performed_by=req.performed_by,
                old_data=old,
                new_data=booking.to_snapshot(),
                note=req.note,
            )

        self.log_operation(
            "update_booking_services", booking_id=booking.id, total_amount=booking.total_amount
        )
        return booking

    # Status transitions

    def _transition(
        self,
        booking_id: str,
        target: BookingStatus,
        *,
        performed_by: Optional[str] = None,
        note: Optional[str] = None,
        **fields: Any,
    ) -> Booking:
        with booking_lock(booking_id):
            with self.transaction():
                booking = self.booking_repository.get_for_update(booking_id)
                if booking is None:
                    raise NotFoundException(
                        f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND"
                    )
                current = BookingStatus(booking.status)
                ensure_transition(current, target, booking_id=booking.id)
                booking = self.booking_repository.update_reservation(
                    booking.id, status=target.value, **fields
                )
                self.log_repository.record(
                    booking.id,
                    BookingLogAction.STATUS_CHANGED,
                    performed_by=performed_by,
                    old_data={"status": current.value},
                    new_data={"status": target.value},
                    note=note,
                )

        prometheus_metrics.record_status_transition(current.value, target.value)
        self.log_operation(
            "booking_status_changed",
            booking_id=booking_id,
            from_status=current.value,
            to_status=target.value,
        )
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None, performed_by: Optional[str] = None
    ) -> Booking:
        return self._transition(
            booking_id,
            BookingStatus.CANCELLED,
            performed_by=performed_by,
            note=reason,
            cancelled_at=self.clock(),
            cancellation_reason=reason,
        )

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(self, booking_id: str, performed_by: Optional[str] = None) -> Booking:
        return self._transition(booking_id, BookingStatus.CONFIRMED, performed_by=performed_by)

    @BaseService.measure_operation("complete_booking")
    def complete_booking(self, booking_id: str, performed_by: Optional[str] = None) -> Booking:
        return self._transition(
            booking_id,
            BookingStatus.COMPLETED,
            performed_by=performed_by,
            completed_at=self.clock(),
        )

    @BaseService.measure_operation("expire_booking")
    def expire_booking(self, booking_id: str, performed_by: Optional[str] = None) -> Booking:
        """Release an online booking that was never paid."""
        return self._transition(
            booking_id,
            BookingStatus.EXPIRED,
            performed_by=performed_by,
            note="payment window ended",
        )

    @BaseService.measure_operation("fail_booking")
    def fail_booking(
        self, booking_id: str, reason: Optional[str] = None, performed_by: Optional[str] = None
    ) -> Booking:
        return self._transition(
            booking_id, BookingStatus.FAILED, performed_by=performed_by, note=reason
        )
