from __future__ import annotations

from datetime import datetime

import pytest

from studiobook.core.enums import PaymentMethod
from studiobook.core.exceptions import ValidationException
from studiobook.schemas._strict_base import parse_request
from studiobook.schemas.booking import BookingCreate, TimeExtensionRequest
from studiobook.schemas.payment import GatewayCallback, InvoiceCustomer, OfflineInstallmentCreate


def _payload(**overrides):
    data = {"studio_id": "S1", "package_id": "P1", "start_local": "2025-07-20T10:00"}
    data.update(overrides)
    return data


def test_start_local_parsed_as_naive_wall_clock() -> None:
    req = parse_request(BookingCreate, _payload())
    assert req.start_local == datetime(2025, 7, 20, 10, 0)
    assert req.payment_method is PaymentMethod.ONLINE


def test_walk_in_defaults_to_offline_payment() -> None:
    req = parse_request(BookingCreate, _payload(is_walk_in=True))
    assert req.payment_method is PaymentMethod.OFFLINE


@pytest.mark.parametrize(
    "overrides",
    [
        {"start_local": "20/07/2025 10:00"},
        {"package_quantity": 0},
        {"extra_minutes": -5},
        {"services": [{"service_id": "SV1", "quantity": 0}]},
        {"services": [{"service_id": "SV1"}, {"service_id": "SV1"}]},
        {"unexpected": True},
    ],
)
def test_invalid_payloads_become_validation_exceptions(overrides) -> None:
    with pytest.raises(ValidationException) as exc_info:
        parse_request(BookingCreate, _payload(**overrides))
    assert exc_info.value.code == "INVALID_REQUEST"
    assert exc_info.value.details["errors"]


def test_missing_start_is_reported_by_field() -> None:
    payload = _payload()
    del payload["start_local"]
    with pytest.raises(ValidationException) as exc_info:
        parse_request(BookingCreate, payload)
    fields = [err["field"] for err in exc_info.value.details["errors"]]
    assert "start_local" in fields


def test_notes_are_trimmed() -> None:
    req = parse_request(BookingCreate, _payload(notes="  bring props  "))
    assert req.notes == "bring props"


def test_time_extension_must_add_minutes() -> None:
    with pytest.raises(ValidationException):
        parse_request(TimeExtensionRequest, {"additional_minutes": 0})


def test_invoice_customer_splits_full_name() -> None:
    customer = InvoiceCustomer.from_full_name("Ni Luh Putu Ayu", email="ayu@example.com")
    assert customer.given_names == "Ni"
    assert customer.surname == "Luh Putu Ayu"
    assert customer.to_gateway_payload() == {
        "given_names": "Ni",
        "surname": "Luh Putu Ayu",
        "email": "ayu@example.com",
    }
    assert InvoiceCustomer.from_full_name("").given_names == "Customer"


def test_gateway_callback_ignores_extra_fields_and_normalizes_status() -> None:
    callback = parse_request(
        GatewayCallback,
        {"id": "inv_1", "status": "paid", "paid_amount": 75000, "merchant_name": "Studio"},
    )
    assert callback.status == "PAID"
    assert callback.paid_amount == 75_000


def test_offline_installment_amount_must_be_positive() -> None:
    with pytest.raises(ValidationException):
        parse_request(OfflineInstallmentCreate, {"amount": 0})
