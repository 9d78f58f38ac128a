from typing import AsyncGenerator, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import async_session
from app.services.catalog_sync_service import CatalogSyncService

# One per process: per-product locks and the report cache span requests and scheduled runs
_catalog_sync_service: Optional[CatalogSyncService] = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


def get_catalog_sync_service() -> CatalogSyncService:
    """Dependency for the process-wide catalog sync service."""
    global _catalog_sync_service
    if _catalog_sync_service is None:
        _catalog_sync_service = CatalogSyncService.from_settings(async_session)
    return _catalog_sync_service


def reset_catalog_sync_service() -> None:
    """Drop the shared service, e.g. after settings change"""
    global _catalog_sync_service
    _catalog_sync_service = None
