# app/main.py

import os
import logging
import subprocess
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.core.config import get_settings
from app.core.logging_config import configure_logging
from app.routes import health
from app.routes.catalog_sync import router as catalog_sync_router
from app.scheduler import start_scheduler, stop_scheduler

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run migrations on startup
    if os.getenv('RUN_MIGRATIONS', 'false').lower() == 'true':
        logger.info("Running database migrations...")
        try:
            result = subprocess.run(['alembic', 'upgrade', 'head'], capture_output=True, text=True)
        except OSError as e:
            logger.error(f"Migration error: {e}")
        else:
            if result.returncode == 0:
                logger.info("Migrations completed successfully")
            else:
                logger.error(f"Migration failed: {result.stderr}")

    settings = get_settings()
    if settings.SYNC_SCHEDULE_CRON:
        await start_scheduler()
    try:
        yield  # This is where the app runs
    finally:
        await stop_scheduler()

app = FastAPI(
    title="Catalog Sync Engine",
    lifespan=lifespan
)

# Add middleware to handle HTTPS behind proxy
@app.middleware("http")
async def proxy_headers_middleware(request: Request, call_next):
    forwarded_proto = request.headers.get("x-forwarded-proto")
    if forwarded_proto == "https":
        request.scope["scheme"] = "https"
    response = await call_next(request)
    return response

app.include_router(catalog_sync_router)
app.include_router(health.router)
