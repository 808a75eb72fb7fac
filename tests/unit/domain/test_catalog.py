from __future__ import annotations

from datetime import time
from types import SimpleNamespace

import pytest

from studiobook.core.config import Settings
from studiobook.core.enums import StudioKind
from studiobook.core.exceptions import ValidationException
from studiobook.domain.catalog import (
    RegularPackage,
    SelfPhotoPackage,
    ServiceSelection,
    package_from_records,
    policy_for,
    session_minutes,
)


def studio(kind: StudioKind, id: str = "S1") -> SimpleNamespace:
    return SimpleNamespace(id=id, kind=kind.value)


def package(category_id=None, studio_id="S1") -> SimpleNamespace:
    return SimpleNamespace(
        id="P1", studio_id=studio_id, category_id=category_id, price=100_000, base_time_minutes=30
    )


def test_self_photo_record_builds_self_photo_variant() -> None:
    variant = package_from_records(package(), studio(StudioKind.SELF_PHOTO))
    assert isinstance(variant, SelfPhotoPackage)
    assert variant.category_id is None


def test_self_photo_package_with_category_rejected() -> None:
    with pytest.raises(ValidationException) as exc_info:
        package_from_records(package(category_id="C1"), studio(StudioKind.SELF_PHOTO))
    assert exc_info.value.code == "CATEGORY_FORBIDDEN"


def test_regular_package_requires_category() -> None:
    with pytest.raises(ValidationException) as exc_info:
        package_from_records(package(), studio(StudioKind.REGULAR))
    assert exc_info.value.code == "CATEGORY_REQUIRED"
    variant = package_from_records(package(category_id="C1"), studio(StudioKind.REGULAR))
    assert isinstance(variant, RegularPackage)


def test_package_of_another_studio_rejected() -> None:
    with pytest.raises(ValidationException):
        package_from_records(package(studio_id="OTHER"), studio(StudioKind.SELF_PHOTO))


def test_session_minutes_scale_with_quantity() -> None:
    variant = SelfPhotoPackage(id="P", studio_id="S", base_price=1, base_duration_minutes=15)
    assert session_minutes(variant, 3) == 45


def test_service_quantity_must_be_positive() -> None:
    with pytest.raises(ValidationException):
        ServiceSelection(service_id="SV", unit_price=1_000, quantity=0)


def test_policies_per_kind() -> None:
    cfg = Settings(_env_file=None)
    self_photo = policy_for(StudioKind.SELF_PHOTO, cfg)
    regular = policy_for(StudioKind.REGULAR, cfg)
    assert (self_photo.gap_minutes, self_photo.extra_time_rate) == (5, 5_000)
    assert (regular.gap_minutes, regular.extra_time_rate) == (10, 15_000)
    assert self_photo.allows_quantity and not regular.allows_quantity
    assert regular.operating_start == time(10, 0)
    assert regular.operating_end == time(20, 30)
