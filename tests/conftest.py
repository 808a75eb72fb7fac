"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database and process-local locks.
Catalog fixtures build one self-photo studio and one regular studio with a
category, a package and two add-on services each.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterator
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from studiobook.core.config import Settings
from studiobook.core.enums import InvoiceStatus, StudioKind
from studiobook.database import Base
from studiobook.models import (
    AdditionalService,
    PackageCategory,
    Studio,
    StudioPackage,
)
from studiobook.services.payment_gateway import GatewayInvoice

FIXED_NOW = datetime(2025, 7, 19, 2, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _process_local_locks(monkeypatch) -> None:
    monkeypatch.setattr("studiobook.core.booking_lock._get_sync_redis", lambda: None)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        REDIS_URL=None,
        XENDIT_SECRET_KEY="xnd_development_test",
        WALK_IN_CONFLICT_SCOPE="shared",
    )


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(test_engine)
        test_engine.dispose()


@pytest.fixture
def db(engine) -> Iterator[Session]:
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def self_photo_studio(db: Session) -> Studio:
    studio = Studio(name="Self Photo A", kind=StudioKind.SELF_PHOTO.value, is_active=True)
    db.add(studio)
    db.flush()
    db.add_all(
        [
            StudioPackage(
                studio_id=studio.id, title="Basic 30", price=100_000, base_time_minutes=30
            ),
            AdditionalService(studio_id=studio.id, name="Extra print", price=20_000),
            AdditionalService(studio_id=studio.id, name="Costume", price=35_000),
        ]
    )
    db.commit()
    return studio


@pytest.fixture
def self_photo_package(db: Session, self_photo_studio: Studio) -> StudioPackage:
    return db.query(StudioPackage).filter_by(studio_id=self_photo_studio.id).one()


@pytest.fixture
def print_service(db: Session, self_photo_studio: Studio) -> AdditionalService:
    return (
        db.query(AdditionalService)
        .filter_by(studio_id=self_photo_studio.id, name="Extra print")
        .one()
    )


@pytest.fixture
def regular_studio(db: Session) -> Studio:
    studio = Studio(name="Main Hall", kind=StudioKind.REGULAR.value, is_active=True)
    db.add(studio)
    db.flush()
    prewedding = PackageCategory(studio_id=studio.id, name="Prewedding")
    family = PackageCategory(studio_id=studio.id, name="Family")
    db.add_all([prewedding, family])
    db.flush()
    db.add_all(
        [
            StudioPackage(
                studio_id=studio.id,
                category_id=prewedding.id,
                title="Prewedding 60",
                price=500_000,
                base_time_minutes=60,
            ),
            StudioPackage(
                studio_id=studio.id,
                category_id=family.id,
                title="Family 60",
                price=300_000,
                base_time_minutes=60,
            ),
        ]
    )
    db.commit()
    return studio


@pytest.fixture
def prewedding_package(db: Session, regular_studio: Studio) -> StudioPackage:
    return db.query(StudioPackage).filter_by(title="Prewedding 60").one()


@pytest.fixture
def family_package(db: Session, regular_studio: Studio) -> StudioPackage:
    return db.query(StudioPackage).filter_by(title="Family 60").one()


@pytest.fixture
def fake_gateway() -> MagicMock:
    """Gateway double that hands out sequential invoice ids."""
    gateway = MagicMock()
    counter = {"n": 0}

    def _create_invoice(external_id, amount, description, customer=None):
        counter["n"] += 1
        invoice_id = f"inv_{counter['n']}"
        return GatewayInvoice(
            invoice_id=invoice_id,
            invoice_url=f"https://checkout.example/{invoice_id}",
            status=InvoiceStatus.PENDING,
            external_id=external_id,
            amount=amount,
        )

    gateway.create_invoice.side_effect = _create_invoice
    gateway.get_invoice_status.return_value = InvoiceStatus.PENDING
    return gateway
