# studiobook/repositories/catalog_repository.py
"""Catalog lookups: studios, packages and add-on services."""

from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..models.studio import AdditionalService, Studio, StudioPackage
from .base_repository import BaseRepository


class CatalogRepository(BaseRepository[Studio]):
    def __init__(self, db: Session):
        super().__init__(db, Studio)

    def get_studio(self, studio_id: str) -> Optional[Studio]:
        return self.get_by_id(studio_id, load_relationships=False)

    def get_package(self, package_id: str) -> Optional[StudioPackage]:
        query = self.db.query(StudioPackage).filter(StudioPackage.id == package_id)
        return query.first()

    def get_services(self, studio_id: str, service_ids: Iterable[str]) -> List[AdditionalService]:
        """Active add-on services of a studio among ``service_ids``; unknown ids are omitted."""
        ids = list(dict.fromkeys(service_ids))
        if not ids:
            return []
        query = self.db.query(AdditionalService).filter(
            AdditionalService.studio_id == studio_id,
            AdditionalService.id.in_(ids),
            AdditionalService.is_active.is_(True),
        )
        return self._execute_query(query)
