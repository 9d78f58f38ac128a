"""
Scheduled tasks for the catalog sync engine.
Runs a periodic catalog sync pass inside the FastAPI application when
SYNC_SCHEDULE_CRON is set.
"""

import logging
from datetime import datetime
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from app.core.config import Settings, get_settings
from app.dependencies import get_catalog_sync_service

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


async def catalog_sync_task():
    """Task to reconcile the whole catalog with Stripe"""
    try:
        logger.info("=== SCHEDULED CATALOG SYNC STARTING ===")
        service = get_catalog_sync_service()
        report = await service.run_sync(force_all=False)

        if not report.ready:
            logger.error(f"Scheduled catalog sync refused: {'; '.join(report.issues)}")
            return

        logger.info(
            f"Scheduled catalog sync finished: {report.processed} processed, "
            f"{report.succeeded} succeeded, {report.failed} failed"
        )
        for error in report.errors:
            logger.warning(f"  - product {error['product_id']}: {error['error']}")

    except Exception as e:
        logger.exception(f"Error in scheduled catalog sync task: {str(e)}")


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler(settings: Optional[Settings] = None) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler

    if scheduler is not None:
        return scheduler

    settings = settings or get_settings()
    scheduler = AsyncIOScheduler()

    # Add job event listeners
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    if settings.SYNC_SCHEDULE_CRON:
        scheduler.add_job(
            catalog_sync_task,
            CronTrigger.from_crontab(settings.SYNC_SCHEDULE_CRON),
            id="catalog_sync",
            name="Catalog Sync",
            replace_existing=True,
            max_instances=1,  # Only one sync at a time
            misfire_grace_time=3600  # 1 hour grace time
        )
        logger.info(f"Scheduled catalog sync added with schedule: {settings.SYNC_SCHEDULE_CRON}")
    else:
        logger.info("Scheduled catalog sync is disabled. Set SYNC_SCHEDULE_CRON to enable")

    return scheduler


async def start_scheduler():
    """Start the scheduler"""
    global scheduler

    if scheduler is None:
        scheduler = create_scheduler()

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started successfully")

        # Log all scheduled jobs
        jobs = scheduler.get_jobs()
        if jobs:
            logger.info(f"Active scheduled jobs: {len(jobs)}")
            for job in jobs:
                logger.info(f"  - {job.name}: {job.trigger}")
        else:
            logger.info("No scheduled jobs configured")


async def stop_scheduler():
    """Stop the scheduler gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped successfully")
    scheduler = None


async def get_scheduler_status():
    """Get current scheduler status and job information"""
    global scheduler

    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs_info = []
    for job in scheduler.get_jobs():
        jobs_info.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs_info
    }
