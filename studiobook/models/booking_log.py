# studiobook/models/booking_log.py
"""Audit trail of booking mutations."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime


class BookingLog(Base):
    __tablename__ = "booking_logs"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action_type = Column(String(50), nullable=False)
    performed_by = Column(String(255), nullable=True)
    old_data = Column(JSON, nullable=True)
    new_data = Column(JSON, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(
        UTCDateTime(),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )

    booking = relationship("Booking", back_populates="logs")

    def __repr__(self) -> str:
        return f"<BookingLog {self.action_type} booking={self.booking_id}>"
