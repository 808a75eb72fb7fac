# studiobook/schemas/pricing.py
"""Schemas for price quotes."""

from typing import List, Optional

from pydantic import Field, field_validator

from ._strict_base import StrictModel, StrictRequestModel
from .booking import SelectedServiceIn, _reject_duplicate_services


class PriceQuoteRequest(StrictRequestModel):
    studio_id: str = Field(..., min_length=1)
    package_id: str = Field(..., min_length=1)
    package_quantity: int = Field(1, ge=1)
    extra_minutes: int = Field(0, ge=0)
    services: List[SelectedServiceIn] = Field(default_factory=list)

    @field_validator("services")
    @classmethod
    def _unique_services(cls, v: List[SelectedServiceIn]) -> List[SelectedServiceIn]:
        return _reject_duplicate_services(v)


class PriceQuote(StrictModel):
    package_cost: int = Field(ge=0)
    extra_time_cost: int = Field(ge=0)
    services_cost: int = Field(ge=0)
    total: int = Field(ge=0)
    session_minutes: int = Field(gt=0)


class PriceVerification(StrictModel):
    booking_id: str
    stored_total: int
    computed_total: int
    matches: bool
    difference: int
    note: Optional[str] = None
