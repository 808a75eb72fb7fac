# studiobook/models/booking.py
"""
Reservation model for studio sessions.

A booking stores absolute UTC start/end instants. ``end_time`` already
includes any granted extra time, so the stored window is the one the
conflict detector uses. ``total_amount`` is the persisted price and is
recomputed whenever extra time or services change, from the package and
service unit prices captured when the booking was made.
"""

from typing import List

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.constants import booking_code
from ..core.enums import BookingStatus, PaymentMethod
from ..database import Base
from .types import TimestampMixin, UTCDateTime


class Booking(TimestampMixin, Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    studio_id = Column(String(26), ForeignKey("studios.id"), nullable=False)
    package_id = Column(String(26), ForeignKey("studio_packages.id"), nullable=False)
    package_category_id = Column(String(26), ForeignKey("package_categories.id"), nullable=True)
    customer_id = Column(String(26), nullable=True, index=True)

    # Studio kind at booking time
    booking_type = Column(String(20), nullable=False)
    package_quantity = Column(Integer, nullable=False, default=1)

    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)
    extra_minutes = Column(Integer, nullable=False, default=0)

    # Package unit price at booking time; edits re-price from it
    package_price = Column(Integer, nullable=False)
    total_amount = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    is_walk_in = Column(Boolean, nullable=False, default=False)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.ONLINE.value)
    notes = Column(Text, nullable=True)
    performed_by = Column(String(255), nullable=True)

    completed_at = Column(UTCDateTime(), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    studio = relationship("Studio")
    package = relationship("StudioPackage")
    services = relationship(
        "BookingAdditionalService",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingAdditionalService.position",
    )
    installments = relationship(
        "Installment",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="Installment.installment_number",
    )
    transactions = relationship(
        "PaymentTransaction",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="PaymentTransaction.created_at",
    )
    logs = relationship("BookingLog", back_populates="booking", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_bookings_time_order"),
        CheckConstraint("extra_minutes >= 0", name="ck_bookings_extra_minutes"),
        CheckConstraint("package_quantity >= 1", name="ck_bookings_quantity"),
        Index("ix_bookings_studio_window", "studio_id", "start_time", "end_time"),
    )

    @property
    def code(self) -> str:
        return booking_code(self.id)

    def service_lines(self) -> List[dict]:
        return [
            {
                "service_id": line.service_id,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
            }
            for line in self.services
        ]

    def to_snapshot(self) -> dict:
        """JSON-safe view of the mutable fields, used for audit logs."""
        return {
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "extra_minutes": self.extra_minutes,
            "package_quantity": self.package_quantity,
            "package_price": self.package_price,
            "total_amount": self.total_amount,
            "services": self.service_lines(),
        }

    def __repr__(self) -> str:
        return f"<Booking {self.code} {self.start_time} - {self.end_time} ({self.status})>"


class BookingAdditionalService(Base):
    """Add-on service line with the unit price captured at booking time."""

    __tablename__ = "booking_additional_services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_id = Column(String(26), ForeignKey("additional_services.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    booking = relationship("Booking", back_populates="services")
    service = relationship("AdditionalService")

    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_booking_services_quantity"),)
