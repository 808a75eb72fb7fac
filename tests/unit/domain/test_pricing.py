from __future__ import annotations

from decimal import Decimal

import pytest

from studiobook.core.exceptions import ValidationException
from studiobook.domain.catalog import RegularPackage, SelfPhotoPackage, ServiceSelection
from studiobook.domain.pricing import calculate_price, extra_time_cost, first_installment_amount

SELF_PHOTO = SelfPhotoPackage(id="P1", studio_id="S1", base_price=100_000, base_duration_minutes=30)
REGULAR = RegularPackage(
    id="P2", studio_id="S2", category_id="C1", base_price=500_000, base_duration_minutes=60
)


def test_documented_self_photo_example_totals_150000() -> None:
    breakdown = calculate_price(
        SELF_PHOTO,
        quantity=1,
        extra_minutes=7,
        services=[ServiceSelection(service_id="SV1", unit_price=20_000, quantity=2)],
        extra_time_rate=5_000,
    )
    assert breakdown.package_cost == 100_000
    assert breakdown.extra_time_cost == 10_000
    assert breakdown.services_cost == 40_000
    assert breakdown.total == 150_000


@pytest.mark.parametrize("minutes", [1, 2, 3, 4, 5])
def test_first_slab_covers_one_to_five_minutes(minutes: int) -> None:
    assert extra_time_cost(minutes, 5_000) == 5_000


@pytest.mark.parametrize("minutes,slabs", [(0, 0), (6, 2), (10, 2), (11, 3), (60, 12)])
def test_slabs_round_up(minutes: int, slabs: int) -> None:
    assert extra_time_cost(minutes, 15_000) == slabs * 15_000


def test_negative_extra_time_rejected() -> None:
    with pytest.raises(ValidationException):
        extra_time_cost(-1, 5_000)


def test_self_photo_quantity_multiplies_package() -> None:
    breakdown = calculate_price(SELF_PHOTO, 3, 0, [], extra_time_rate=5_000)
    assert breakdown.total == 300_000


def test_regular_quantity_must_be_one() -> None:
    with pytest.raises(ValidationException):
        calculate_price(REGULAR, 2, 0, [], extra_time_rate=15_000)


def test_total_never_below_package_price() -> None:
    breakdown = calculate_price(REGULAR, 1, 0, [], extra_time_rate=15_000)
    assert breakdown.total == REGULAR.base_price


def test_price_grows_with_extra_time_and_services() -> None:
    previous = -1
    for minutes in range(0, 31):
        total = calculate_price(SELF_PHOTO, 1, minutes, [], extra_time_rate=5_000).total
        assert total >= previous
        previous = total
    fewer = calculate_price(
        REGULAR, 1, 0, [ServiceSelection("SV", 10_000, 1)], extra_time_rate=15_000
    )
    more = calculate_price(
        REGULAR, 1, 0, [ServiceSelection("SV", 10_000, 2)], extra_time_rate=15_000
    )
    assert more.total > fewer.total


def test_breakdown_as_dict_includes_total() -> None:
    breakdown = calculate_price(REGULAR, 1, 6, [], extra_time_rate=15_000)
    assert breakdown.as_dict() == {
        "package_cost": 500_000,
        "extra_time_cost": 30_000,
        "services_cost": 0,
        "total": 530_000,
    }


@pytest.mark.parametrize(
    "total,expected", [(150_000, 75_000), (150_001, 75_001), (150_003, 75_002), (1, 1)]
)
def test_first_installment_rounds_half_up(total: int, expected: int) -> None:
    assert first_installment_amount(total, Decimal("0.5")) == expected
