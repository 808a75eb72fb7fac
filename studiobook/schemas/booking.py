# studiobook/schemas/booking.py
"""
Booking request and response schemas.

Times in requests are WITA wall-clock values ("2025-07-20T08:00"); the
service layer converts them to UTC instants before storage.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field, field_validator, model_validator

from ..core.enums import BookingStatus, PaymentMethod
from ..core.exceptions import ValidationException
from ..core.timezone_utils import format_datetime_wita, format_time_wita, parse_local_datetime
from ._strict_base import StrictModel, StrictRequestModel


def _parse_wall_clock(value: object) -> object:
    if isinstance(value, str):
        try:
            parsed = parse_local_datetime(value)
        except ValidationException as exc:
            raise ValueError(exc.message) from exc
        return parsed
    return value


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class SelectedServiceIn(StrictRequestModel):
    service_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


def _reject_duplicate_services(services: List[SelectedServiceIn]) -> List[SelectedServiceIn]:
    seen = set()
    for line in services:
        if line.service_id in seen:
            raise ValueError(f"Service {line.service_id} selected more than once")
        seen.add(line.service_id)
    return services


class BookingCreate(StrictRequestModel):
    """Create a booking for one studio package at a local start time."""

    studio_id: str = Field(..., min_length=1)
    package_id: str = Field(..., min_length=1)
    package_category_id: Optional[str] = Field(
        None, description="Required for regular studios, must be empty for self-photo studios"
    )
    start_local: datetime = Field(..., description="Start on the WITA wall clock")
    package_quantity: int = Field(1, ge=1)
    extra_minutes: int = Field(0, ge=0)
    services: List[SelectedServiceIn] = Field(default_factory=list)
    is_walk_in: bool = False
    payment_method: PaymentMethod = PaymentMethod.ONLINE
    customer_id: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)
    performed_by: Optional[str] = None

    @field_validator("start_local", mode="before")
    @classmethod
    def _parse_start(cls, v: object) -> object:
        return _parse_wall_clock(v)

    @field_validator("services")
    @classmethod
    def _unique_services(cls, v: List[SelectedServiceIn]) -> List[SelectedServiceIn]:
        return _reject_duplicate_services(v)

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, v: Optional[str]) -> Optional[str]:
        return _clean_text(v)

    @model_validator(mode="before")
    @classmethod
    def _walk_in_is_offline(cls, data: Any) -> Any:
        # Walk-ins are settled at the counter
        if isinstance(data, dict) and data.get("is_walk_in") and "payment_method" not in data:
            return {**data, "payment_method": PaymentMethod.OFFLINE}
        return data


class BookingReschedule(StrictRequestModel):
    start_local: datetime
    performed_by: Optional[str] = None
    note: Optional[str] = None

    @field_validator("start_local", mode="before")
    @classmethod
    def _parse_start(cls, v: object) -> object:
        return _parse_wall_clock(v)


class TimeExtensionRequest(StrictRequestModel):
    """Grant additional minutes on top of what the booking already has."""

    additional_minutes: int = Field(..., gt=0)
    performed_by: Optional[str] = None
    note: Optional[str] = None


class BookingServicesUpdate(StrictRequestModel):
    """Replace the booking's add-on services."""

    services: List[SelectedServiceIn] = Field(default_factory=list)
    performed_by: Optional[str] = None
    note: Optional[str] = None

    @field_validator("services")
    @classmethod
    def _unique_services(cls, v: List[SelectedServiceIn]) -> List[SelectedServiceIn]:
        return _reject_duplicate_services(v)


class BookingServiceLineOut(StrictModel):
    service_id: str
    quantity: int
    unit_price: int


class BookingResponse(StrictModel):
    id: str
    code: str
    studio_id: str
    package_id: str
    package_category_id: Optional[str]
    status: BookingStatus
    start_time: datetime
    end_time: datetime
    start_display: str
    end_display: str
    package_quantity: int
    extra_minutes: int
    total_amount: int
    is_walk_in: bool
    payment_method: PaymentMethod
    services: List[BookingServiceLineOut]

    @classmethod
    def from_booking(cls, booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            code=booking.code,
            studio_id=booking.studio_id,
            package_id=booking.package_id,
            package_category_id=booking.package_category_id,
            status=BookingStatus(booking.status),
            start_time=booking.start_time,
            end_time=booking.end_time,
            start_display=format_datetime_wita(booking.start_time),
            end_display=format_time_wita(booking.end_time),
            package_quantity=booking.package_quantity,
            extra_minutes=booking.extra_minutes,
            total_amount=booking.total_amount,
            is_walk_in=booking.is_walk_in,
            payment_method=PaymentMethod(booking.payment_method),
            services=[BookingServiceLineOut(**line) for line in booking.service_lines()],
        )
