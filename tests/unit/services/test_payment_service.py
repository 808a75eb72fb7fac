from __future__ import annotations

from datetime import datetime, timezone

import pytest

from studiobook.core.enums import (
    BookingLogAction,
    BookingStatus,
    InvoiceStatus,
    PaymentType,
    TransactionStatus,
)
from studiobook.core.exceptions import (
    BusinessRuleException,
    GatewayException,
    NotFoundException,
    StateTransitionException,
)
from studiobook.models import BookingLog, Installment, PaymentTransaction, StudioPackage
from studiobook.services.booking_service import BookingService
from studiobook.services.payment_service import PaymentService


@pytest.fixture
def booking_service(db, test_settings, clock) -> BookingService:
    return BookingService(db, config=test_settings, clock=clock)


@pytest.fixture
def payment_service(db, fake_gateway, test_settings, clock) -> PaymentService:
    return PaymentService(db, gateway=fake_gateway, config=test_settings, clock=clock)


@pytest.fixture
def pending_booking(booking_service, self_photo_studio, self_photo_package):
    return booking_service.create_booking(
        {
            "studio_id": self_photo_studio.id,
            "package_id": self_photo_package.id,
            "start_local": "2025-07-20T10:00",
        }
    )


@pytest.fixture
def walk_in_booking(booking_service, self_photo_studio, self_photo_package):
    return booking_service.create_booking(
        {
            "studio_id": self_photo_studio.id,
            "package_id": self_photo_package.id,
            "start_local": "2025-07-20T12:00",
            "is_walk_in": True,
        }
    )


def _pending_invoices(db, booking_id):
    return (
        db.query(PaymentTransaction)
        .filter_by(booking_id=booking_id, status=TransactionStatus.PENDING.value)
        .all()
    )


class TestFullPayment:
    def test_settlement_marks_booking_paid(
        self, db, payment_service, fake_gateway, pending_booking
    ):
        txn = payment_service.start_full_payment(
            pending_booking.id, customer={"given_names": "Ayu", "email": "ayu@example.com"}
        )
        assert txn.reference_id == "inv_1"
        assert txn.amount == 100_000
        assert txn.payment_type == PaymentType.ONLINE.value
        assert txn.invoice_url == "https://checkout.example/inv_1"

        booking = payment_service.apply_gateway_settlement("inv_1")

        assert booking.status == BookingStatus.PAID.value
        assert fake_gateway.create_invoice.call_count == 1
        installments = db.query(Installment).filter_by(booking_id=pending_booking.id).all()
        assert [(i.installment_number, i.amount) for i in installments] == [(1, 100_000)]

    def test_second_request_returns_pending_invoice(
        self, payment_service, fake_gateway, pending_booking
    ):
        first = payment_service.start_full_payment(pending_booking.id)
        again = payment_service.start_full_payment(pending_booking.id)
        assert again.id == first.id
        assert fake_gateway.create_invoice.call_count == 1

    def test_gateway_failure_leaves_state_untouched(
        self, db, payment_service, fake_gateway, pending_booking
    ):
        fake_gateway.create_invoice.side_effect = GatewayException("gateway down")
        with pytest.raises(GatewayException):
            payment_service.start_full_payment(pending_booking.id)

        assert db.query(PaymentTransaction).count() == 0
        db.expire_all()
        summary = payment_service.get_payment_summary(pending_booking.id)
        assert summary.status == BookingStatus.PENDING

    def test_cancelled_booking_cannot_be_paid(
        self, booking_service, payment_service, pending_booking
    ):
        booking_service.cancel_booking(pending_booking.id)
        with pytest.raises(StateTransitionException):
            payment_service.start_full_payment(pending_booking.id)

    def test_settlement_after_cancel_is_rejected(
        self, db, booking_service, payment_service, pending_booking
    ):
        payment_service.start_full_payment(pending_booking.id)
        booking_service.cancel_booking(pending_booking.id)
        with pytest.raises(StateTransitionException):
            payment_service.apply_gateway_settlement("inv_1")
        db.expire_all()
        txn = db.query(PaymentTransaction).filter_by(reference_id="inv_1").one()
        assert txn.status == TransactionStatus.PENDING.value

    def test_unknown_invoice(self, payment_service):
        with pytest.raises(NotFoundException):
            payment_service.apply_gateway_settlement("inv_missing")


class TestInstallments:
    def test_first_installment_is_half_rounded_up(
        self, db, booking_service, payment_service, self_photo_studio, self_photo_package
    ):
        booking = booking_service.create_booking(
            {
                "studio_id": self_photo_studio.id,
                "package_id": self_photo_package.id,
                "start_local": "2025-07-20T10:00",
                "extra_minutes": 1,
            }
        )
        assert booking.total_amount == 105_000
        txn = payment_service.start_installment_payment(booking.id)
        assert txn.amount == 52_500
        assert txn.installment_number == 1

    def test_free_booking_has_no_installment(
        self, db, booking_service, payment_service, fake_gateway, self_photo_studio
    ):
        free = StudioPackage(
            studio_id=self_photo_studio.id, title="Free trial", price=0, base_time_minutes=30
        )
        db.add(free)
        db.commit()
        booking = booking_service.create_booking(
            {
                "studio_id": self_photo_studio.id,
                "package_id": free.id,
                "start_local": "2025-07-20T15:00",
            }
        )
        assert booking.total_amount == 0

        with pytest.raises(BusinessRuleException) as exc_info:
            payment_service.start_installment_payment(booking.id)
        assert exc_info.value.code == "NOTHING_TO_PAY"
        fake_gateway.create_invoice.assert_not_called()
        assert _pending_invoices(db, booking.id) == []

    def test_partial_settlement_issues_one_remainder_invoice(
        self, db, payment_service, fake_gateway, pending_booking
    ):
        payment_service.start_installment_payment(pending_booking.id)
        booking = payment_service.apply_gateway_settlement("inv_1")

        assert booking.status == BookingStatus.INSTALLMENT.value
        pending = _pending_invoices(db, pending_booking.id)
        assert [(t.reference_id, t.amount, t.installment_number) for t in pending] == [
            ("inv_2", 50_000, 2)
        ]

        booking = payment_service.apply_gateway_settlement("inv_2")
        assert booking.status == BookingStatus.PAID.value
        assert fake_gateway.create_invoice.call_count == 2
        assert _pending_invoices(db, pending_booking.id) == []

    def test_duplicate_settlement_is_ignored(
        self, db, payment_service, fake_gateway, pending_booking
    ):
        payment_service.start_installment_payment(pending_booking.id)
        payment_service.apply_gateway_settlement("inv_1")
        booking = payment_service.apply_gateway_settlement("inv_1")

        assert booking.status == BookingStatus.INSTALLMENT.value
        assert db.query(Installment).filter_by(booking_id=pending_booking.id).count() == 1
        assert fake_gateway.create_invoice.call_count == 2

    def test_remainder_invoice_failure_keeps_settlement(
        self, db, payment_service, fake_gateway, pending_booking
    ):
        payment_service.start_installment_payment(pending_booking.id)
        issue = fake_gateway.create_invoice.side_effect
        fake_gateway.create_invoice.side_effect = GatewayException("gateway down")

        with pytest.raises(GatewayException):
            payment_service.apply_gateway_settlement("inv_1")

        db.expire_all()
        summary = payment_service.get_payment_summary(pending_booking.id)
        assert summary.status == BookingStatus.INSTALLMENT
        assert summary.paid_amount == 50_000
        assert summary.pending_invoice_url is None

        fake_gateway.create_invoice.side_effect = issue
        txn = payment_service.request_remaining_invoice(pending_booking.id)
        assert txn.amount == 50_000
        assert txn.installment_number == 2

    def test_installment_plan_only_from_pending(self, payment_service, walk_in_booking):
        with pytest.raises(StateTransitionException):
            payment_service.start_installment_payment(walk_in_booking.id)

    def test_remaining_invoice_requires_partial_payment(self, payment_service, pending_booking):
        with pytest.raises(BusinessRuleException) as exc_info:
            payment_service.request_remaining_invoice(pending_booking.id)
        assert exc_info.value.code == "NOTHING_TO_PAY"


class TestInvoiceNotifications:
    def test_expired_invoice_is_reissued(self, db, payment_service, fake_gateway, pending_booking):
        payment_service.start_installment_payment(pending_booking.id)
        booking = payment_service.handle_gateway_callback(
            {"id": "inv_1", "external_id": "ignored", "status": "expired", "currency": "IDR"}
        )

        assert booking.status == BookingStatus.PENDING.value
        old = db.query(PaymentTransaction).filter_by(reference_id="inv_1").one()
        assert old.status == TransactionStatus.EXPIRED.value
        new = db.query(PaymentTransaction).filter_by(reference_id="inv_2").one()
        assert (new.amount, new.installment_number, new.status) == (50_000, 1, "pending")
        actions = [
            log.action_type
            for log in db.query(BookingLog).filter_by(booking_id=pending_booking.id)
        ]
        assert BookingLogAction.INVOICE_REISSUED.value in actions

    def test_paid_callback_settles(self, payment_service, pending_booking):
        payment_service.start_full_payment(pending_booking.id)
        booking = payment_service.handle_gateway_callback(
            {
                "id": "inv_1",
                "status": "PAID",
                "paid_amount": 100_000,
                "paid_at": "2025-07-19T03:00:00Z",
            }
        )
        assert booking.status == BookingStatus.PAID.value

    def test_pending_callback_changes_nothing(self, payment_service, pending_booking):
        payment_service.start_full_payment(pending_booking.id)
        booking = payment_service.handle_gateway_callback({"id": "inv_1", "status": "PENDING"})
        assert booking.status == BookingStatus.PENDING.value

    def test_unknown_callback_status(self, payment_service, pending_booking):
        payment_service.start_full_payment(pending_booking.id)
        with pytest.raises(GatewayException):
            payment_service.handle_gateway_callback({"id": "inv_1", "status": "REFUNDED"})

    def test_sync_applies_polled_status(self, payment_service, fake_gateway, pending_booking):
        payment_service.start_full_payment(pending_booking.id)
        fake_gateway.get_invoice_status.return_value = InvoiceStatus.SETTLED
        booking = payment_service.sync_invoice_status("inv_1")
        assert booking.status == BookingStatus.PAID.value
        fake_gateway.get_invoice_status.assert_called_once_with("inv_1")


class TestOfflinePayments:
    def test_confirmed_booking_stays_confirmed_until_fully_paid(
        self, payment_service, walk_in_booking
    ):
        first = payment_service.record_offline_installment(
            walk_in_booking.id, {"amount": 40_000, "performed_by": "cashier"}
        )
        assert first.installment_number == 1
        summary = payment_service.get_payment_summary(walk_in_booking.id)
        assert summary.status == BookingStatus.CONFIRMED
        assert summary.remaining_amount == 60_000

        payment_service.record_offline_installment(walk_in_booking.id, {"amount": 60_000})
        summary = payment_service.get_payment_summary(walk_in_booking.id)
        assert summary.status == BookingStatus.PAID
        assert summary.is_fully_paid
        assert [i.amount for i in summary.installments] == [40_000, 60_000]

    def test_partial_offline_payment_moves_pending_to_installment(
        self, payment_service, pending_booking
    ):
        payment_service.record_offline_installment(pending_booking.id, {"amount": 30_000})
        assert (
            payment_service.get_payment_summary(pending_booking.id).status
            == BookingStatus.INSTALLMENT
        )

    def test_amount_above_remaining_rejected(self, db, payment_service, walk_in_booking):
        with pytest.raises(BusinessRuleException) as exc_info:
            payment_service.record_offline_installment(walk_in_booking.id, {"amount": 100_001})
        assert exc_info.value.code == "INSTALLMENT_EXCEEDS_REMAINING"
        assert db.query(Installment).count() == 0

    def test_paid_at_is_kept(self, payment_service, walk_in_booking):
        paid_at = datetime(2025, 7, 20, 4, 0, tzinfo=timezone.utc)
        installment = payment_service.record_offline_installment(
            walk_in_booking.id, {"amount": 10_000, "paid_at": paid_at}
        )
        assert installment.paid_at == paid_at
