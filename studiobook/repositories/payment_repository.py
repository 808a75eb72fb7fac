# studiobook/repositories/payment_repository.py
"""Transactions and installments of a booking."""

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.enums import TransactionStatus
from ..models.payment import Installment, PaymentTransaction
from .base_repository import BaseRepository


class PaymentRepository(BaseRepository[PaymentTransaction]):
    def __init__(self, db: Session):
        super().__init__(db, PaymentTransaction)

    def get_by_reference(self, reference_id: str) -> Optional[PaymentTransaction]:
        """Transaction for a gateway invoice id."""
        return self.find_one_by(reference_id=reference_id)

    def get_pending_for_booking(self, booking_id: str) -> List[PaymentTransaction]:
        query = (
            self.db.query(PaymentTransaction)
            .filter(
                PaymentTransaction.booking_id == booking_id,
                PaymentTransaction.status == TransactionStatus.PENDING.value,
                PaymentTransaction.reference_id.isnot(None),
            )
            .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
        )
        return self._execute_query(query)

    def create_installment(self, **kwargs) -> Installment:
        installment = Installment(**kwargs)
        self.db.add(installment)
        self.db.flush()
        return installment

    def list_installments(self, booking_id: str) -> List[Installment]:
        query = (
            self.db.query(Installment)
            .filter(Installment.booking_id == booking_id)
            .order_by(Installment.installment_number)
        )
        return self._execute_query(query)

    def count_installments(self, booking_id: str) -> int:
        query = self.db.query(func.count(Installment.id)).filter(
            Installment.booking_id == booking_id
        )
        return int(self._execute_scalar(query) or 0)

    def sum_paid(self, booking_id: str) -> int:
        query = self.db.query(func.coalesce(func.sum(Installment.amount), 0)).filter(
            Installment.booking_id == booking_id
        )
        return int(self._execute_scalar(query) or 0)
