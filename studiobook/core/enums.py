# studiobook/core/enums.py
"""
Core enums for the studio booking engine.

String-valued enums so they persist as plain text columns and compare
equal to their stored values.
"""

from enum import Enum


class StudioKind(str, Enum):
    """Kinds of studio. Each kind carries its own scheduling and billing policy."""

    SELF_PHOTO = "self_photo"
    REGULAR = "regular"


class BookingStatus(str, Enum):
    """Reservation lifecycle statuses."""

    PENDING = "pending"  # Online booking awaiting payment
    CONFIRMED = "confirmed"  # Operator-entered walk-in, or confirmed offline
    INSTALLMENT = "installment"  # Partially paid
    PAID = "paid"  # Fully paid
    COMPLETED = "completed"  # Session done
    CANCELLED = "cancelled"
    EXPIRED = "expired"  # Never paid
    FAILED = "failed"


class PaymentMethod(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class PaymentType(str, Enum):
    """How a transaction contributes to a booking's total."""

    ONLINE = "online"  # Full payment through the gateway
    OFFLINE = "offline"  # Recorded by an operator
    INSTALLMENT = "installment"  # One gateway invoice of an installment plan


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    EXPIRED = "expired"
    FAILED = "failed"


class InvoiceStatus(str, Enum):
    """The only gateway invoice statuses the engine reacts to."""

    PENDING = "PENDING"
    SETTLED = "SETTLED"
    EXPIRED = "EXPIRED"


class BookingLogAction(str, Enum):
    CREATED = "created"
    RESCHEDULED = "rescheduled"
    TIME_EXTENDED = "time_extended"
    SERVICES_UPDATED = "services_updated"
    STATUS_CHANGED = "status_changed"
    INVOICE_CREATED = "invoice_created"
    INVOICE_REISSUED = "invoice_expired"
    PAYMENT_RECEIVED = "payment_received"
    INSTALLMENT_ADDED = "installment_added"
