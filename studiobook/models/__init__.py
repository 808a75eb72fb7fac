# studiobook/models/__init__.py
"""
Database models for the studio booking engine.

Importing this package registers every table on ``Base.metadata``.
"""

from .booking import Booking, BookingAdditionalService
from .booking_log import BookingLog
from .payment import Installment, PaymentTransaction
from .studio import AdditionalService, PackageCategory, Studio, StudioPackage

__all__ = [
    "AdditionalService",
    "Booking",
    "BookingAdditionalService",
    "BookingLog",
    "Installment",
    "PackageCategory",
    "PaymentTransaction",
    "Studio",
    "StudioPackage",
]
