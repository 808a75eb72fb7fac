# studiobook/services/payment_service.py
"""
Payment Service

Drives a booking's payment lifecycle against the payment gateway:

- full payment: one invoice for the outstanding amount
- installments: invoice #1 for the first-installment share of the total;
  once it settles, exactly one invoice for the remainder
- expired invoices are re-issued for the same amount and installment
  number without touching the booking status
- operator-recorded offline payments

Gateway calls never run inside a database transaction and always happen
before the writes that depend on them, so a gateway failure leaves the
stored state untouched. Settlements are applied under the booking lock.
"""

from datetime import datetime
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy.orm import Session

from ..core.booking_lock import booking_lock
from ..core.config import Settings
from ..core.constants import BRAND_NAME, ERROR_INSTALLMENT_EXCEEDS_REMAINING, booking_code
from ..core.enums import (
    BookingLogAction,
    BookingStatus,
    InvoiceStatus,
    PaymentMethod,
    PaymentType,
    TransactionStatus,
)
from ..core.exceptions import (
    BusinessRuleException,
    NotFoundException,
    StateTransitionException,
)
from ..core.ulid_helper import generate_ulid
from ..domain.lifecycle import PAYABLE_STATUSES, ensure_transition
from ..domain.pricing import first_installment_amount
from ..models.booking import Booking
from ..models.payment import Installment, PaymentTransaction
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas._strict_base import parse_request
from ..schemas.payment import (
    GatewayCallback,
    InstallmentOut,
    InvoiceCustomer,
    OfflineInstallmentCreate,
    PaymentSummary,
)
from .base import BaseService
from .payment_gateway import (
    GatewayInvoice,
    PaymentGateway,
    XenditPaymentGateway,
    map_invoice_status,
)

CustomerInput = Optional[Union[InvoiceCustomer, Mapping[str, Any]]]


class PaymentService(BaseService):
    def __init__(
        self,
        db: Session,
        gateway: Optional[PaymentGateway] = None,
        config: Optional[Settings] = None,
        clock=None,
    ):
        super().__init__(db, config=config, clock=clock)
        self._gateway = gateway
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.log_repository = RepositoryFactory.create_booking_log_repository(db)

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = XenditPaymentGateway(config=self.config)
        return self._gateway

    # Helpers

    def _get_booking(self, booking_id: str, *, fresh: bool = False) -> Booking:
        if fresh:
            booking = self.booking_repository.get_for_update(booking_id)
        else:
            booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

    def _get_transaction(self, invoice_id: str) -> PaymentTransaction:
        txn = self.payment_repository.get_by_reference(invoice_id)
        if txn is None:
            raise NotFoundException(
                f"No payment transaction for invoice {invoice_id}",
                code="TRANSACTION_NOT_FOUND",
            )
        return txn

    def _remaining(self, booking: Booking) -> int:
        return max(booking.total_amount - self.payment_repository.sum_paid(booking.id), 0)

    @staticmethod
    def _customer(customer: CustomerInput) -> Optional[InvoiceCustomer]:
        if customer is None:
            return None
        return parse_request(InvoiceCustomer, customer)

    @staticmethod
    def _description(booking: Booking, installment_number: Optional[int]) -> str:
        if installment_number:
            return (
                f"{BRAND_NAME} booking {booking_code(booking.id)} - "
                f"installment {installment_number}"
            )
        return f"{BRAND_NAME} booking {booking_code(booking.id)}"

    def _ensure_payable(self, booking: Booking, target: BookingStatus) -> None:
        if BookingStatus(booking.status) not in PAYABLE_STATUSES:
            raise StateTransitionException(booking.status, target.value, booking_id=booking.id)

    def _existing_pending(
        self, booking: Booking, payment_type: PaymentType, amount: int
    ) -> Optional[PaymentTransaction]:
        """A still-pending invoice for the same purpose, if one exists."""
        pending = self.payment_repository.get_pending_for_booking(booking.id)
        for txn in pending:
            if txn.payment_type == payment_type.value and txn.amount == amount:
                return txn
        if pending:
            raise BusinessRuleException(
                "Booking already has a pending invoice",
                code="INVOICE_PENDING",
                details={"booking_id": booking.id, "invoice_id": pending[0].reference_id},
            )
        return None

    def _create_invoice(
        self,
        booking: Booking,
        amount: int,
        installment_number: Optional[int],
        customer: Optional[InvoiceCustomer],
    ) -> GatewayInvoice:
        external_id = f"{booking_code(booking.id)}-{generate_ulid()}"
        return self.gateway.create_invoice(
            external_id=external_id,
            amount=amount,
            description=self._description(booking, installment_number),
            customer=customer,
        )

    def _store_invoice(
        self,
        booking: Booking,
        invoice: GatewayInvoice,
        *,
        amount: int,
        payment_type: PaymentType,
        installment_number: Optional[int],
        action: BookingLogAction = BookingLogAction.INVOICE_CREATED,
        performed_by: Optional[str] = None,
    ) -> PaymentTransaction:
        txn = self.payment_repository.create(
            booking_id=booking.id,
            amount=amount,
            payment_type=payment_type.value,
            status=TransactionStatus.PENDING.value,
            installment_number=installment_number,
            reference_id=invoice.invoice_id,
            external_id=invoice.external_id,
            invoice_url=invoice.invoice_url,
            description=self._description(booking, installment_number),
            performed_by=performed_by,
        )
        self.log_repository.record(
            booking.id,
            action,
            performed_by=performed_by,
            new_data={
                "invoice_id": invoice.invoice_id,
                "amount": amount,
                "installment_number": installment_number,
            },
        )
        return txn

    def _issue_invoice(
        self,
        booking: Booking,
        *,
        amount: int,
        payment_type: PaymentType,
        installment_number: Optional[int],
        customer: Optional[InvoiceCustomer],
        performed_by: Optional[str] = None,
    ) -> PaymentTransaction:
        # Gateway first, outside any transaction
        invoice = self._create_invoice(booking, amount, installment_number, customer)
        with self.transaction():
            txn = self._store_invoice(
                booking,
                invoice,
                amount=amount,
                payment_type=payment_type,
                installment_number=installment_number,
                performed_by=performed_by,
            )
        self.log_operation(
            "invoice_created",
            booking_id=booking.id,
            invoice_id=invoice.invoice_id,
            amount=amount,
            installment_number=installment_number,
        )
        return txn

    # Starting payments

    @BaseService.measure_operation("start_full_payment")
    def start_full_payment(
        self,
        booking_id: str,
        customer: CustomerInput = None,
        performed_by: Optional[str] = None,
    ) -> PaymentTransaction:
        """Invoice the whole outstanding amount."""
        booking = self._get_booking(booking_id)
        self._ensure_payable(booking, BookingStatus.PAID)
        amount = self._remaining(booking)
        if amount <= 0:
            raise BusinessRuleException(
                "Booking has nothing left to pay",
                code="NOTHING_TO_PAY",
                details={"booking_id": booking.id},
            )
        existing = self._existing_pending(booking, PaymentType.ONLINE, amount)
        if existing is not None:
            return existing
        return self._issue_invoice(
            booking,
            amount=amount,
            payment_type=PaymentType.ONLINE,
            installment_number=None,
            customer=self._customer(customer),
            performed_by=performed_by,
        )

    @BaseService.measure_operation("start_installment_payment")
    def start_installment_payment(
        self,
        booking_id: str,
        customer: CustomerInput = None,
        performed_by: Optional[str] = None,
    ) -> PaymentTransaction:
        """Invoice the first installment, total times FIRST_INSTALLMENT_RATIO rounded half up."""
        booking = self._get_booking(booking_id)
        if BookingStatus(booking.status) is not BookingStatus.PENDING:
            raise StateTransitionException(
                booking.status, BookingStatus.INSTALLMENT.value, booking_id=booking.id
            )
        if self.payment_repository.count_installments(booking.id):
            raise BusinessRuleException(
                "Installment plan already started",
                code="INSTALLMENT_ALREADY_STARTED",
                details={"booking_id": booking.id},
            )
        amount = first_installment_amount(
            booking.total_amount, self.config.first_installment_ratio
        )
        if amount <= 0:
            raise BusinessRuleException(
                "Booking has nothing to pay in installments",
                code="NOTHING_TO_PAY",
                details={"booking_id": booking.id, "total_amount": booking.total_amount},
            )
        existing = self._existing_pending(booking, PaymentType.INSTALLMENT, amount)
        if existing is not None:
            return existing
        return self._issue_invoice(
            booking,
            amount=amount,
            payment_type=PaymentType.INSTALLMENT,
            installment_number=1,
            customer=self._customer(customer),
            performed_by=performed_by,
        )

    @BaseService.measure_operation("request_remaining_invoice")
    def request_remaining_invoice(
        self,
        booking_id: str,
        customer: CustomerInput = None,
        performed_by: Optional[str] = None,
    ) -> PaymentTransaction:
        """
        Invoice the remainder of a partially paid booking.

        Returns the pending remainder invoice when one already exists, so it
        is safe to call again after a gateway failure.
        """
        with booking_lock(booking_id):
            booking = self._get_booking(booking_id, fresh=True)
            return self._ensure_remainder_invoice(
                booking, self._customer(customer), performed_by=performed_by, required=True
            )

    def _ensure_remainder_invoice(
        self,
        booking: Booking,
        customer: Optional[InvoiceCustomer],
        *,
        performed_by: Optional[str] = None,
        required: bool = False,
    ) -> Optional[PaymentTransaction]:
        remaining = self._remaining(booking)
        paid_count = self.payment_repository.count_installments(booking.id)
        if (
            BookingStatus(booking.status) not in PAYABLE_STATUSES
            or remaining <= 0
            or paid_count == 0
        ):
            if required:
                raise BusinessRuleException(
                    "Booking has no outstanding installment balance",
                    code="NOTHING_TO_PAY",
                    details={"booking_id": booking.id, "status": booking.status},
                )
            return None
        pending = self.payment_repository.get_pending_for_booking(booking.id)
        if pending:
            return pending[0]
        return self._issue_invoice(
            booking,
            amount=remaining,
            payment_type=PaymentType.INSTALLMENT,
            installment_number=paid_count + 1,
            customer=customer,
            performed_by=performed_by,
        )

    # Gateway notifications

    @BaseService.measure_operation("apply_gateway_settlement")
    def apply_gateway_settlement(
        self,
        invoice_id: str,
        paid_amount: Optional[int] = None,
        paid_at: Optional[datetime] = None,
        customer: CustomerInput = None,
    ) -> Booking:
        """
        Apply a SETTLED invoice to its booking.

        A settlement covering the remaining balance makes the booking paid.
        A partial one records an installment, moves the booking to
        installment and issues exactly one invoice for the remainder.
        Repeated notifications for a settled invoice change nothing.

        Raises:
            NotFoundException: Unknown invoice
            StateTransitionException: Booking can no longer receive payments
            GatewayException: Remainder invoice could not be created; the
                settlement itself is kept, retry with request_remaining_invoice
        """
        booking_id = self._get_transaction(invoice_id).booking_id
        with booking_lock(booking_id):
            with self.transaction():
                txn = self.payment_repository.get_by_reference(invoice_id)
                self.db.refresh(txn)
                booking = self._get_booking(booking_id, fresh=True)
                if txn.status == TransactionStatus.PAID.value:
                    self.logger.info(
                        "Duplicate settlement ignored",
                        extra={"invoice_id": invoice_id, "booking_id": booking_id},
                    )
                    applied = False
                else:
                    self._settle(booking, txn, paid_amount, paid_at)
                    applied = True

            # Settlement is committed; the remainder invoice is a separate step
            self._ensure_remainder_invoice(booking, self._customer(customer))

        if applied:
            self.log_operation(
                "gateway_settlement_applied",
                booking_id=booking.id,
                invoice_id=invoice_id,
                status=booking.status,
            )
        return booking

    def _settle(
        self,
        booking: Booking,
        txn: PaymentTransaction,
        paid_amount: Optional[int],
        paid_at: Optional[datetime],
    ) -> None:
        if txn.status != TransactionStatus.PENDING.value:
            raise BusinessRuleException(
                f"Invoice is {txn.status} and cannot be settled",
                code="INVOICE_NOT_PENDING",
                details={"invoice_id": txn.reference_id, "status": txn.status},
            )
        current = BookingStatus(booking.status)
        self._ensure_payable(booking, BookingStatus.PAID)

        remaining_before = self._remaining(booking)
        amount = int(paid_amount) if paid_amount is not None else txn.amount
        if amount > remaining_before:
            self.logger.warning(
                "Settlement exceeds remaining balance, recording the remaining amount",
                extra={
                    "booking_id": booking.id,
                    "invoice_id": txn.reference_id,
                    "paid_amount": amount,
                    "remaining": remaining_before,
                },
            )
            amount = remaining_before
        settled_at = paid_at or self.clock()

        txn.status = TransactionStatus.PAID.value
        txn.paid_at = settled_at
        if amount > 0:
            self.payment_repository.create_installment(
                booking_id=booking.id,
                installment_number=self.payment_repository.count_installments(booking.id) + 1,
                amount=amount,
                payment_method=PaymentMethod.ONLINE.value,
                paid_at=settled_at,
                transaction_id=txn.id,
                note=txn.description,
            )
        self.log_repository.record(
            booking.id,
            BookingLogAction.PAYMENT_RECEIVED,
            new_data={"invoice_id": txn.reference_id, "amount": amount},
        )
        self._advance_after_payment(booking, current, remaining_before - amount)

    def _advance_after_payment(
        self,
        booking: Booking,
        current: BookingStatus,
        remaining: int,
        performed_by: Optional[str] = None,
    ) -> None:
        if remaining <= 0:
            target = BookingStatus.PAID
        elif current is BookingStatus.CONFIRMED:
            # Confirmed bookings stay confirmed until fully paid
            return
        else:
            target = BookingStatus.INSTALLMENT
        ensure_transition(current, target, booking_id=booking.id)
        if target is current:
            return
        booking.status = target.value
        self.db.flush()
        self.log_repository.record(
            booking.id,
            BookingLogAction.STATUS_CHANGED,
            performed_by=performed_by,
            old_data={"status": current.value},
            new_data={"status": target.value},
        )
        prometheus_metrics.record_status_transition(current.value, target.value)

    @BaseService.measure_operation("handle_invoice_expired")
    def handle_invoice_expired(
        self, invoice_id: str, customer: CustomerInput = None
    ) -> Booking:
        """
        Re-issue an expired invoice for the same amount and installment number.

        The booking status is left as it is. Invoices of bookings that can no
        longer be paid are only marked expired.
        """
        booking_id = self._get_transaction(invoice_id).booking_id
        with booking_lock(booking_id):
            txn = self.payment_repository.get_by_reference(invoice_id)
            self.db.refresh(txn)
            booking = self._get_booking(booking_id, fresh=True)
            if txn.status != TransactionStatus.PENDING.value:
                self.logger.info(
                    "Expiry ignored for invoice that is no longer pending",
                    extra={"invoice_id": invoice_id, "txn_status": txn.status},
                )
                return booking

            reissue = BookingStatus(booking.status) in PAYABLE_STATUSES
            invoice = None
            if reissue:
                invoice = self._create_invoice(
                    booking, txn.amount, txn.installment_number, self._customer(customer)
                )
            with self.transaction():
                txn.status = TransactionStatus.EXPIRED.value
                if invoice is not None:
                    self._store_invoice(
                        booking,
                        invoice,
                        amount=txn.amount,
                        payment_type=PaymentType(txn.payment_type),
                        installment_number=txn.installment_number,
                        action=BookingLogAction.INVOICE_REISSUED,
                    )

        self.log_operation(
            "invoice_expired",
            booking_id=booking.id,
            invoice_id=invoice_id,
            reissued_invoice_id=invoice.invoice_id if invoice else None,
        )
        return booking

    @BaseService.measure_operation("handle_gateway_callback")
    def handle_gateway_callback(
        self, payload: Union[GatewayCallback, Mapping[str, Any]]
    ) -> Booking:
        """Dispatch a gateway invoice notification by its status."""
        callback = parse_request(GatewayCallback, payload)
        status = map_invoice_status(callback.status)
        return self._apply_invoice_status(
            callback.id, status, paid_amount=callback.paid_amount, paid_at=callback.paid_at
        )

    @BaseService.measure_operation("sync_invoice_status")
    def sync_invoice_status(self, invoice_id: str) -> Booking:
        """Poll the gateway for one invoice and apply what it reports."""
        self._get_transaction(invoice_id)
        status = self.gateway.get_invoice_status(invoice_id)
        return self._apply_invoice_status(invoice_id, status)

    def _apply_invoice_status(
        self,
        invoice_id: str,
        status: InvoiceStatus,
        *,
        paid_amount: Optional[int] = None,
        paid_at: Optional[datetime] = None,
    ) -> Booking:
        if status is InvoiceStatus.SETTLED:
            return self.apply_gateway_settlement(
                invoice_id, paid_amount=paid_amount, paid_at=paid_at
            )
        if status is InvoiceStatus.EXPIRED:
            return self.handle_invoice_expired(invoice_id)
        return self._get_booking(self._get_transaction(invoice_id).booking_id)

    # Offline payments

    @BaseService.measure_operation("record_offline_installment")
    def record_offline_installment(
        self, booking_id: str, data: Union[OfflineInstallmentCreate, Mapping[str, Any]]
    ) -> Installment:
        """
        Record money taken by an operator (cash or transfer).

        Raises:
            BusinessRuleException: Amount exceeds the remaining balance
            StateTransitionException: Booking can no longer receive payments
        """
        req = parse_request(OfflineInstallmentCreate, data)
        with booking_lock(booking_id):
            with self.transaction():
                booking = self._get_booking(booking_id, fresh=True)
                current = BookingStatus(booking.status)
                self._ensure_payable(booking, BookingStatus.PAID)
                remaining = self._remaining(booking)
                if req.amount > remaining:
                    raise BusinessRuleException(
                        ERROR_INSTALLMENT_EXCEEDS_REMAINING,
                        code="INSTALLMENT_EXCEEDS_REMAINING",
                        details={"amount": req.amount, "remaining": remaining},
                    )
                paid_at = req.paid_at or self.clock()
                number = self.payment_repository.count_installments(booking.id) + 1
                txn = self.payment_repository.create(
                    booking_id=booking.id,
                    amount=req.amount,
                    payment_type=PaymentType.OFFLINE.value,
                    status=TransactionStatus.PAID.value,
                    installment_number=number,
                    description=req.note,
                    performed_by=req.performed_by,
                    paid_at=paid_at,
                )
                installment = self.payment_repository.create_installment(
                    booking_id=booking.id,
                    installment_number=number,
                    amount=req.amount,
                    payment_method=req.payment_method.value,
                    paid_at=paid_at,
                    note=req.note,
                    performed_by=req.performed_by,
                    transaction_id=txn.id,
                )
                self.log_repository.record(
                    booking.id,
                    BookingLogAction.INSTALLMENT_ADDED,
                    performed_by=req.performed_by,
                    new_data={"installment_number": number, "amount": req.amount},
                    note=req.note,
                )
                self._advance_after_payment(
                    booking, current, remaining - req.amount, performed_by=req.performed_by
                )

        self.log_operation(
            "offline_installment_recorded",
            booking_id=booking_id,
            amount=req.amount,
            installment_number=number,
        )
        return installment

    # Reads

    def get_payment_summary(self, booking_id: str) -> PaymentSummary:
        booking = self._get_booking(booking_id)
        installments: List[Installment] = self.payment_repository.list_installments(booking.id)
        paid = sum(item.amount for item in installments)
        pending = self.payment_repository.get_pending_for_booking(booking.id)
        return PaymentSummary(
            booking_id=booking.id,
            status=BookingStatus(booking.status),
            total_amount=booking.total_amount,
            paid_amount=paid,
            remaining_amount=max(booking.total_amount - paid, 0),
            installments=[
                InstallmentOut(
                    installment_number=item.installment_number,
                    amount=item.amount,
                    payment_method=PaymentMethod(item.payment_method),
                    paid_at=item.paid_at,
                    note=item.note,
                )
                for item in installments
            ],
            pending_invoice_url=pending[0].invoice_url if pending else None,
            pending_invoice_status=InvoiceStatus.PENDING if pending else None,
        )
