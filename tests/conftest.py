# tests/conftest.py
import os

# Must be set before anything imports app.database / app.core.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("STRIPE_MODE", "sandbox")
os.environ.setdefault("STRIPE_TEST_SECRET_KEY", "sk_test_dummy")
os.environ.pop("STRIPE_DEFAULT_TAX_CODE", None)
os.environ.pop("SYNC_SCHEDULE_CRON", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import Settings, clear_settings_cache
from app.database import Base
from app.dependencies import get_catalog_sync_service
from app.main import app
from app.services.catalog_store import CatalogStore
from app.services.catalog_sync_service import CatalogSyncService
from app.services.sync_report import SyncReportCache
from tests.mocks.fake_stripe import FakeStripeClient
from tests.mocks.fake_store import FakeCatalogStore, make_record

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

clear_settings_cache()


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        STRIPE_MODE="sandbox",
        STRIPE_TEST_SECRET_KEY="sk_test_dummy",
        STRIPE_DEFAULT_TAX_CODE=None,
        SYNC_MAX_CONCURRENT=1,
        SYNC_DEADLINE_SECONDS=None,
        SYNC_SCHEDULE_CRON=None,
    )


@pytest.fixture(scope="function")
async def test_engine():
    """In-memory SQLite engine with the schema created (function-scoped)."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def catalog_store(session_factory):
    return CatalogStore(session_factory)


@pytest.fixture
def fake_stripe():
    return FakeStripeClient()


@pytest.fixture
def fake_store():
    return FakeCatalogStore()


@pytest.fixture
def sync_service(fake_store, fake_stripe, settings):
    """CatalogSyncService wired to in-memory fakes"""
    return CatalogSyncService(
        store=fake_store,
        client=fake_stripe,
        settings=settings,
        cache=SyncReportCache(ttl_seconds=300),
    )


@pytest.fixture
def test_client(sync_service):
    """TestClient with the catalog sync service replaced by the fake-backed one"""
    app.dependency_overrides[get_catalog_sync_service] = lambda: sync_service
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_record():
    return make_record()
