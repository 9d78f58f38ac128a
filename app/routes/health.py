from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text

from app.dependencies import get_db
from app.scheduler import get_scheduler_status

router = APIRouter(tags=["health"])

@router.get("/health")
async def health_check():
    """Basic health check"""
    return {"status": "healthy", "service": "Catalog Sync Engine"}

@router.get("/health/db")
async def database_health(db: AsyncSession = Depends(get_db)):
    """Check database connectivity and the products table"""
    try:
        await db.execute(text("SELECT 1"))
        count = await db.scalar(text("SELECT COUNT(*) FROM products"))
        return {
            "status": "healthy",
            "database": "connected",
            "products": int(count or 0),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "database": "error",
            "error": str(e)
        }

@router.get("/health/scheduler")
async def scheduler_health():
    """Scheduled job status"""
    return await get_scheduler_status()
