# studiobook/models/studio.py
"""
Catalog models: studios, package categories, packages and add-on services.

A regular studio partitions its schedule by package category; a self-photo
studio has no categories. The model layer stores the rows; the category
rules are enforced when a package is turned into a catalog variant.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import StudioKind
from ..database import Base
from .types import TimestampMixin


class Studio(TimestampMixin, Base):
    __tablename__ = "studios"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    kind = Column(String(20), nullable=False, default=StudioKind.SELF_PHOTO.value)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    categories = relationship(
        "PackageCategory", back_populates="studio", cascade="all, delete-orphan"
    )
    packages = relationship("StudioPackage", back_populates="studio", cascade="all, delete-orphan")
    services = relationship(
        "AdditionalService", back_populates="studio", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("kind IN ('self_photo', 'regular')", name="ck_studios_kind"),
    )

    def __repr__(self) -> str:
        return f"<Studio {self.name} ({self.kind})>"


class PackageCategory(TimestampMixin, Base):
    __tablename__ = "package_categories"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    studio_id = Column(String(26), ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    studio = relationship("Studio", back_populates="categories")
    packages = relationship("StudioPackage", back_populates="category")

    def __repr__(self) -> str:
        return f"<PackageCategory {self.name}>"


class StudioPackage(TimestampMixin, Base):
    __tablename__ = "studio_packages"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    studio_id = Column(
        String(26), ForeignKey("studios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id = Column(
        String(26), ForeignKey("package_categories.id", ondelete="SET NULL"), nullable=True
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False)
    base_time_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    studio = relationship("Studio", back_populates="packages")
    category = relationship("PackageCategory", back_populates="packages")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_studio_packages_price"),
        CheckConstraint("base_time_minutes > 0", name="ck_studio_packages_time"),
    )

    def __repr__(self) -> str:
        return f"<StudioPackage {self.title} {self.base_time_minutes}m>"


class AdditionalService(TimestampMixin, Base):
    __tablename__ = "additional_services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    studio_id = Column(String(26), ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    studio = relationship("Studio", back_populates="services")

    __table_args__ = (CheckConstraint("price >= 0", name="ck_additional_services_price"),)

    def __repr__(self) -> str:
        return f"<AdditionalService {self.name}>"
