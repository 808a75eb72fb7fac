# studiobook/schemas/payment.py
"""Payment and gateway schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator

from ..core.enums import BookingStatus, InvoiceStatus, PaymentMethod
from ._strict_base import StrictModel, StrictRequestModel


class InvoiceCustomer(StrictModel):
    """Customer block sent along with a gateway invoice."""

    given_names: str = Field(..., min_length=1)
    surname: Optional[str] = None
    email: Optional[str] = None
    mobile_number: Optional[str] = None

    @classmethod
    def from_full_name(
        cls,
        full_name: str,
        email: Optional[str] = None,
        mobile_number: Optional[str] = None,
    ) -> "InvoiceCustomer":
        parts = (full_name or "").split()
        given = parts[0] if parts else "Customer"
        surname = " ".join(parts[1:]) or None
        return cls(given_names=given, surname=surname, email=email, mobile_number=mobile_number)

    def to_gateway_payload(self) -> dict:
        return self.model_dump(exclude_none=True)


class GatewayCallback(StrictRequestModel):
    """Invoice status notification pushed by the gateway."""

    # Gateway payloads carry many more fields than the engine reads
    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    id: str = Field(..., min_length=1, description="Gateway invoice id")
    external_id: Optional[str] = None
    status: str
    paid_amount: Optional[int] = None
    paid_at: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def _upper_status(cls, v: str) -> str:
        return v.strip().upper()


class OfflineInstallmentCreate(StrictRequestModel):
    amount: int = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.OFFLINE
    note: Optional[str] = Field(None, max_length=500)
    performed_by: Optional[str] = None
    paid_at: Optional[datetime] = None


class InstallmentOut(StrictModel):
    installment_number: int
    amount: int
    payment_method: PaymentMethod
    paid_at: datetime
    note: Optional[str] = None


class PaymentSummary(StrictModel):
    booking_id: str
    status: BookingStatus
    total_amount: int
    paid_amount: int
    remaining_amount: int
    installments: List[InstallmentOut]
    pending_invoice_url: Optional[str] = None
    pending_invoice_status: Optional[InvoiceStatus] = None

    @property
    def is_fully_paid(self) -> bool:
        return self.remaining_amount == 0
