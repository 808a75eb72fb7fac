"""
Catalog variants used by the scheduling and pricing engine.

Packages are modelled per studio kind: a self-photo package has no category
and may be booked in multiples, a regular package always belongs to one
category and is booked one at a time. Building a variant from raw catalog
records is the single place where those rules are checked.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Any, ClassVar, Optional, Union

from ..core.config import Settings, settings as default_settings
from ..core.enums import StudioKind
from ..core.exceptions import ValidationException


@dataclass(frozen=True)
class StudioPolicy:
    """Scheduling and billing rules shared by every studio of one kind."""

    kind: StudioKind
    gap_minutes: int
    extra_time_rate: int
    slab_minutes: int
    operating_start: time
    operating_end: time
    allows_quantity: bool


def policy_for(kind: StudioKind, config: Optional[Settings] = None) -> StudioPolicy:
    cfg = config or default_settings
    kind = StudioKind(kind)
    if kind is StudioKind.SELF_PHOTO:
        return StudioPolicy(
            kind=kind,
            gap_minutes=cfg.self_photo_gap_minutes,
            extra_time_rate=cfg.self_photo_extra_rate,
            slab_minutes=cfg.extra_time_slab_minutes,
            operating_start=cfg.operating_start,
            operating_end=cfg.operating_end,
            allows_quantity=True,
        )
    return StudioPolicy(
        kind=kind,
        gap_minutes=cfg.regular_gap_minutes,
        extra_time_rate=cfg.regular_extra_rate,
        slab_minutes=cfg.extra_time_slab_minutes,
        operating_start=cfg.operating_start,
        operating_end=cfg.operating_end,
        allows_quantity=False,
    )


def _check_amounts(package_id: str, base_price: int, base_duration_minutes: int) -> None:
    if base_price < 0:
        raise ValidationException(
            "Package price must be non-negative",
            code="INVALID_PACKAGE",
            details={"package_id": package_id, "base_price": base_price},
        )
    if base_duration_minutes <= 0:
        raise ValidationException(
            "Package duration must be positive",
            code="INVALID_PACKAGE",
            details={"package_id": package_id, "base_duration_minutes": base_duration_minutes},
        )


@dataclass(frozen=True)
class SelfPhotoPackage:
    id: str
    studio_id: str
    base_price: int
    base_duration_minutes: int

    kind: ClassVar[StudioKind] = StudioKind.SELF_PHOTO

    def __post_init__(self) -> None:
        _check_amounts(self.id, self.base_price, self.base_duration_minutes)

    @property
    def category_id(self) -> None:
        return None


@dataclass(frozen=True)
class RegularPackage:
    id: str
    studio_id: str
    category_id: str
    base_price: int
    base_duration_minutes: int

    kind: ClassVar[StudioKind] = StudioKind.REGULAR

    def __post_init__(self) -> None:
        if not self.category_id:
            raise ValidationException(
                "Regular studio packages must belong to a category",
                code="CATEGORY_REQUIRED",
                details={"package_id": self.id},
            )
        _check_amounts(self.id, self.base_price, self.base_duration_minutes)


PackageSpec = Union[SelfPhotoPackage, RegularPackage]


@dataclass(frozen=True)
class ServiceSelection:
    """An add-on service chosen for a booking, with its unit price snapshot."""

    service_id: str
    unit_price: int
    quantity: int = 1

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValidationException(
                "Service quantity must be at least 1",
                code="INVALID_QUANTITY",
                details={"service_id": self.service_id, "quantity": self.quantity},
            )
        if self.unit_price < 0:
            raise ValidationException(
                "Service price must be non-negative",
                code="INVALID_SERVICE",
                details={"service_id": self.service_id},
            )

    @property
    def cost(self) -> int:
        return self.unit_price * self.quantity


def package_from_records(package: Any, studio: Any) -> PackageSpec:
    """
    Build the package variant for a catalog package row and its studio row.

    Raises:
        ValidationException: If the package/studio pair breaks the category rules
    """
    if package.studio_id != studio.id:
        raise ValidationException(
            "Package does not belong to this studio",
            code="PACKAGE_STUDIO_MISMATCH",
            details={"package_id": package.id, "studio_id": studio.id},
        )
    kind = StudioKind(studio.kind)
    if kind is StudioKind.SELF_PHOTO:
        if package.category_id is not None:
            raise ValidationException(
                "Self-photo packages cannot belong to a category",
                code="CATEGORY_FORBIDDEN",
                details={"package_id": package.id},
            )
        return SelfPhotoPackage(
            id=package.id,
            studio_id=package.studio_id,
            base_price=int(package.price),
            base_duration_minutes=int(package.base_time_minutes),
        )
    return RegularPackage(
        id=package.id,
        studio_id=package.studio_id,
        category_id=package.category_id,
        base_price=int(package.price),
        base_duration_minutes=int(package.base_time_minutes),
    )


def validate_quantity(package: PackageSpec, quantity: int) -> int:
    """Return the package quantity after checking it against the studio kind."""
    if quantity < 1:
        raise ValidationException(
            "Package quantity must be at least 1",
            code="INVALID_QUANTITY",
            details={"quantity": quantity},
        )
    if isinstance(package, RegularPackage) and quantity != 1:
        raise ValidationException(
            "Regular studio packages are booked one at a time",
            code="INVALID_QUANTITY",
            details={"package_id": package.id, "quantity": quantity},
        )
    return quantity


def session_minutes(package: PackageSpec, quantity: int = 1) -> int:
    """Booked duration before extra time: base duration times quantity."""
    return package.base_duration_minutes * validate_quantity(package, quantity)
