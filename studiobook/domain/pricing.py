"""
Deterministic booking price computation.

total = package_cost + extra_time_cost + services_cost, all integer IDR.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from ..core.constants import EXTRA_TIME_SLAB_MINUTES
from ..core.exceptions import ValidationException
from .catalog import PackageSpec, ServiceSelection, validate_quantity


@dataclass(frozen=True)
class PriceBreakdown:
    package_cost: int
    extra_time_cost: int
    services_cost: int

    @property
    def total(self) -> int:
        return self.package_cost + self.extra_time_cost + self.services_cost

    def as_dict(self) -> dict:
        return {
            "package_cost": self.package_cost,
            "extra_time_cost": self.extra_time_cost,
            "services_cost": self.services_cost,
            "total": self.total,
        }


def extra_time_cost(
    extra_minutes: int, rate: int, slab_minutes: int = EXTRA_TIME_SLAB_MINUTES
) -> int:
    """
    Bill extra time in slabs, rounding partial slabs up.

    1..5 minutes is one slab, 6 minutes is two.
    """
    if extra_minutes < 0:
        raise ValidationException(
            "Extra time cannot be negative",
            code="INVALID_EXTRA_TIME",
            details={"extra_minutes": extra_minutes},
        )
    if slab_minutes <= 0:
        raise ValidationException(
            "Billing slab must be positive",
            code="INVALID_SLAB",
            details={"slab_minutes": slab_minutes},
        )
    slabs = -(-extra_minutes // slab_minutes)
    return slabs * rate


def calculate_price(
    package: PackageSpec,
    quantity: int,
    extra_minutes: int,
    services: Sequence[ServiceSelection],
    extra_time_rate: int,
    slab_minutes: int = EXTRA_TIME_SLAB_MINUTES,
) -> PriceBreakdown:
    validate_quantity(package, quantity)
    return PriceBreakdown(
        package_cost=package.base_price * quantity,
        extra_time_cost=extra_time_cost(extra_minutes, extra_time_rate, slab_minutes),
        services_cost=sum(service.cost for service in services),
    )


def first_installment_amount(total: int, ratio: Decimal) -> int:
    """First online installment: ``total * ratio`` rounded half up to a whole rupiah."""
    return int((Decimal(total) * ratio).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
