"""Shared fixtures: in-memory database, catalog snapshots and an API client."""

import os

# Point settings at an in-memory database before the package is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from stride_billing import models  # noqa: F401
from stride_billing.database import Base, enable_sqlite_savepoints, get_db
from stride_billing.main import app
from stride_billing.schemas.promo_code import PromoCodeSnapshot
from stride_billing.schemas.service_catalog import ServiceEntry


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def tenant_id():
    return uuid.uuid4()


@pytest.fixture
async def async_db_session():
    """Create async test database session."""
    engine = enable_sqlite_savepoints(create_async_engine("sqlite+aiosqlite:///:memory:"))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def client(async_db_session, tenant_id):
    """API client sharing the test session, scoped to ``tenant_id``."""

    async def override_get_db():
        yield async_db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-Tenant-ID": str(tenant_id)},
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


# ============================================================================
# SNAPSHOT BUILDERS
# ============================================================================

def make_entry(
    service_code: str,
    category: str,
    class_code=None,
    rate="10.00",
    **kwargs,
) -> ServiceEntry:
    return ServiceEntry(
        service_code=service_code,
        service_name=kwargs.pop("service_name", service_code),
        category=category,
        class_code=class_code,
        rate=None if rate is None else Decimal(rate),
        **kwargs,
    )


def make_promo(code: str = "SUMMER25", **kwargs) -> PromoCodeSnapshot:
    values = {
        "id": uuid.uuid4(),
        "code": code,
        "discount_type": "PERCENTAGE",
        "discount_value": Decimal("25"),
    }
    values.update(kwargs)
    return PromoCodeSnapshot(**values)


@pytest.fixture
def receiving_catalog():
    """Receiving priced per class plus a flat fallback, and a flat assembly service."""
    return [
        make_entry("RCVG-S", "receiving", "S", "5.00", billing_unit="PER_ITEM"),
        make_entry("RCVG-L", "receiving", "L", "15.00", billing_unit="PER_ITEM"),
        make_entry("RCVG", "receiving", None, "8.00", billing_unit="PER_ITEM"),
        make_entry("ASSEMBLY_60", "assembly", None, "45.00", billing_unit="PER_TASK"),
    ]
