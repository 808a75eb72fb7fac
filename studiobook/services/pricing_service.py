# studiobook/services/pricing_service.py
"""
Pricing against the catalog.

Quotes resolve packages and add-on services from the catalog and run the
pure calculator. Stored bookings keep the package unit price and a unit-price
snapshot per service line, so re-pricing a booking uses those snapshots.
"""

from dataclasses import dataclass, replace
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.enums import StudioKind
from ..core.exceptions import NotFoundException
from ..domain.catalog import (
    PackageSpec,
    ServiceSelection,
    package_from_records,
    policy_for,
    session_minutes,
)
from ..domain.pricing import PriceBreakdown, calculate_price
from ..models.booking import Booking
from ..models.studio import Studio
from ..repositories.catalog_repository import CatalogRepository
from ..repositories.factory import RepositoryFactory
from ..schemas._strict_base import parse_request
from ..schemas.booking import SelectedServiceIn
from ..schemas.pricing import PriceQuote, PriceQuoteRequest, PriceVerification
from .base import BaseService


@dataclass(frozen=True)
class PricedSelection:
    """Everything a booking write needs from one pricing pass."""

    studio: Studio
    package: PackageSpec
    quantity: int
    session_minutes: int
    extra_minutes: int
    services: Tuple[ServiceSelection, ...]
    breakdown: PriceBreakdown

    @property
    def service_lines(self) -> List[dict]:
        return [
            {"service_id": s.service_id, "quantity": s.quantity, "unit_price": s.unit_price}
            for s in self.services
        ]


class PricingService(BaseService):
    def __init__(
        self,
        db: Session,
        catalog_repository: Optional[CatalogRepository] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db, config=config)
        self.catalog_repository = (
            catalog_repository or RepositoryFactory.create_catalog_repository(db)
        )

    def load_package(self, studio_id: str, package_id: str) -> Tuple[Studio, PackageSpec]:
        studio = self.catalog_repository.get_studio(studio_id)
        if studio is None:
            raise NotFoundException(
                f"Studio {studio_id} not found", code="STUDIO_NOT_FOUND"
            )
        package_row = self.catalog_repository.get_package(package_id)
        if package_row is None:
            raise NotFoundException(
                f"Package {package_id} not found", code="PACKAGE_NOT_FOUND"
            )
        return studio, package_from_records(package_row, studio)

    def resolve_services(
        self,
        studio_id: str,
        selected: Iterable[Union[SelectedServiceIn, Mapping[str, Any]]],
    ) -> Tuple[ServiceSelection, ...]:
        """Price selected add-ons with current catalog prices, keeping request order."""
        lines = [parse_request(SelectedServiceIn, line) for line in selected]
        if not lines:
            return ()
        found = {
            service.id: service
            for service in self.catalog_repository.get_services(
                studio_id, (line.service_id for line in lines)
            )
        }
        missing = [line.service_id for line in lines if line.service_id not in found]
        if missing:
            raise NotFoundException(
                "Additional service not found for this studio",
                code="SERVICE_NOT_FOUND",
                details={"service_ids": missing, "studio_id": studio_id},
            )
        return tuple(
            ServiceSelection(
                service_id=line.service_id,
                unit_price=int(found[line.service_id].price),
                quantity=line.quantity,
            )
            for line in lines
        )

    def price_selection(
        self,
        studio: Studio,
        package: PackageSpec,
        quantity: int,
        extra_minutes: int,
        services: Sequence[ServiceSelection],
    ) -> PricedSelection:
        policy = policy_for(StudioKind(studio.kind), self.config)
        breakdown = calculate_price(
            package,
            quantity,
            extra_minutes,
            services,
            extra_time_rate=policy.extra_time_rate,
            slab_minutes=policy.slab_minutes,
        )
        return PricedSelection(
            studio=studio,
            package=package,
            quantity=quantity,
            session_minutes=session_minutes(package, quantity),
            extra_minutes=extra_minutes,
            services=tuple(services),
            breakdown=breakdown,
        )

    @BaseService.measure_operation("quote")
    def quote(self, request: Union[PriceQuoteRequest, Mapping[str, Any]]) -> PriceQuote:
        req = parse_request(PriceQuoteRequest, request)
        studio, package = self.load_package(req.studio_id, req.package_id)
        services = self.resolve_services(studio.id, req.services)
        priced = self.price_selection(
            studio, package, req.package_quantity, req.extra_minutes, services
        )
        return PriceQuote(
            **priced.breakdown.as_dict(),
            session_minutes=priced.session_minutes,
        )

    def reprice_booking(
        self,
        booking: Booking,
        *,
        extra_minutes: Optional[int] = None,
        services: Optional[Sequence[ServiceSelection]] = None,
    ) -> PricedSelection:
        """
        Price a stored booking, optionally with new extra time or services.

        The package and existing service lines are priced at their booking-time
        snapshots; only newly selected services carry current catalog prices.
        """
        studio, package = self.load_package(booking.studio_id, booking.package_id)
        package = replace(package, base_price=int(booking.package_price))
        if services is None:
            services = [
                ServiceSelection(
                    service_id=line.service_id,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                )
                for line in booking.services
            ]
        return self.price_selection(
            studio,
            package,
            booking.package_quantity,
            booking.extra_minutes if extra_minutes is None else extra_minutes,
            services,
        )

    @BaseService.measure_operation("verify_booking_total")
    def verify_booking_total(self, booking: Booking) -> PriceVerification:
        """Recompute a booking's total from its package and service snapshots."""
        computed = self.reprice_booking(booking).breakdown.total
        difference = computed - booking.total_amount
        if difference:
            self.logger.warning(
                "Stored booking total drifted from its priced snapshot",
                extra={"booking_id": booking.id, "difference": difference},
            )
        return PriceVerification(
            booking_id=booking.id,
            stored_total=booking.total_amount,
            computed_total=computed,
            matches=difference == 0,
            difference=difference,
            note=None if difference == 0 else "stored total differs from snapshot pricing",
        )
