# studiobook/repositories/factory.py
"""
Repository Factory

Centralizes repository creation so services can be handed alternative
implementations in tests.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from .booking_log_repository import BookingLogRepository
    from .booking_repository import BookingRepository
    from .catalog_repository import CatalogRepository
    from .payment_repository import PaymentRepository


class RepositoryFactory:
    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create the reservation store."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_catalog_repository(db: Session) -> "CatalogRepository":
        """Create the catalog provider."""
        from .catalog_repository import CatalogRepository

        return CatalogRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)

    @staticmethod
    def create_booking_log_repository(db: Session) -> "BookingLogRepository":
        from .booking_log_repository import BookingLogRepository

        return BookingLogRepository(db)
