"""
Scheduled reconciliation.
Runs inside the FastAPI process when SCHEDULER_ENABLED is set.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from crosslist.core.config import get_settings
from crosslist.services.reconciliation_service import process_reconciliation

logger = logging.getLogger(__name__)

scheduler: Optional[AsyncIOScheduler] = None


async def reconcile_task():
    """Reconcile the default account"""
    logger.info("=== SCHEDULED RECONCILIATION STARTING ===")
    report = await process_reconciliation()
    if report.skipped:
        logger.info("Scheduled reconciliation skipped, another run holds the lock")
        return
    logger.info(
        f"Scheduled reconciliation done: {len(report.withdrawn_from_destination)} eBay and "
        f"{len(report.withdrawn_from_source)} StockX listings withdrawn, {len(report.errors)} errors"
    )


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler() -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler

    if scheduler is not None:
        return scheduler

    settings = get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    scheduler.add_job(
        reconcile_task,
        IntervalTrigger(minutes=settings.RECONCILE_INTERVAL_MINUTES),
        id="reconcile_marketplaces",
        name="Reconcile StockX and eBay",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(f"Reconciliation scheduled every {settings.RECONCILE_INTERVAL_MINUTES} minutes")
    return scheduler


def start_scheduler():
    sched = create_scheduler()
    if not sched.running:
        sched.start()
        logger.info("Scheduler started")


def shutdown_scheduler():
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None
