# studiobook/models/payment.py
"""Payment records: gateway/offline transactions and the installments they produce."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import PaymentType, TransactionStatus
from ..database import Base
from .types import TimestampMixin, UTCDateTime


class PaymentTransaction(TimestampMixin, Base):
    """One gateway invoice or one operator-recorded payment for a booking."""

    __tablename__ = "transactions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount = Column(Integer, nullable=False)
    payment_type = Column(String(20), nullable=False, default=PaymentType.ONLINE.value)
    status = Column(String(20), nullable=False, default=TransactionStatus.PENDING.value)
    installment_number = Column(Integer, nullable=True)

    # Gateway invoice id
    reference_id = Column(String(255), nullable=True, index=True)
    external_id = Column(String(255), nullable=True)
    invoice_url = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    performed_by = Column(String(255), nullable=True)
    paid_at = Column(UTCDateTime(), nullable=True)

    booking = relationship("Booking", back_populates="transactions")

    __table_args__ = (CheckConstraint("amount > 0", name="ck_transactions_amount"),)

    def __repr__(self) -> str:
        return f"<PaymentTransaction {self.reference_id} {self.amount} ({self.status})>"


class Installment(TimestampMixin, Base):
    """Money actually received towards a booking's total."""

    __tablename__ = "installments"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    installment_number = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)
    payment_method = Column(String(20), nullable=False)
    paid_at = Column(UTCDateTime(), nullable=False)
    note = Column(Text, nullable=True)
    performed_by = Column(String(255), nullable=True)
    transaction_id = Column(String(26), ForeignKey("transactions.id"), nullable=True)

    booking = relationship("Booking", back_populates="installments")
    transaction = relationship("PaymentTransaction")

    __table_args__ = (CheckConstraint("amount > 0", name="ck_installments_amount"),)

    def __repr__(self) -> str:
        return f"<Installment #{self.installment_number} {self.amount}>"
