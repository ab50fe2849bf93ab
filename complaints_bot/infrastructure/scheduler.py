"""
APScheduler setup for periodic maintenance jobs.

Jobs are coroutines so they run on the application's event loop, never in a
worker thread, and therefore never overlap with the synchronous pairing
section of a request.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from complaints_bot.config.settings import Settings
from complaints_bot.infrastructure.rate_limiter import RateLimiter
from complaints_bot.usecases.complaint_service import ComplaintService
from complaints_bot.usecases.pairing import PairingEngine

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "pairing_sweep"
RATE_LIMIT_CLEANUP_JOB_ID = "rate_limit_cleanup"
DASHBOARD_JOB_ID = "dashboard_update"


async def sweep_pairing_store(engine: PairingEngine) -> None:
    """Evict pairing entries that fell outside the window."""
    try:
        evicted = engine.sweep()
        logger.debug(f"Pairing sweep evicted {evicted} entries")
    except Exception as e:
        logger.exception(f"Error during pairing sweep: {e}")


async def cleanup_rate_limiter(limiter: RateLimiter) -> None:
    """Forget phones with no requests in the current window."""
    removed = limiter.cleanup()
    if removed:
        logger.info(f"Rate limiter cleanup removed {removed} phones")


async def publish_dashboard(service: ComplaintService) -> None:
    """Push processing statistics to the dashboard worksheet."""
    try:
        await service.publish_dashboard()
    except Exception as e:
        logger.exception(f"Error updating dashboard: {e}")


def build_scheduler(
    settings: Settings,
    engine: PairingEngine,
    limiter: RateLimiter,
    service: Optional[ComplaintService] = None
) -> AsyncIOScheduler:
    """
    Create a scheduler with the maintenance jobs registered.

    Args:
        settings: Application settings
        engine: Pairing engine to sweep
        limiter: Rate limiter to clean up
        service: Complaint service for dashboard updates

    Returns:
        A configured, not yet started scheduler
    """
    scheduler = AsyncIOScheduler(timezone=settings.timezone)

    scheduler.add_job(
        sweep_pairing_store,
        trigger=IntervalTrigger(seconds=settings.sweep_interval_seconds),
        id=SWEEP_JOB_ID,
        replace_existing=True,
        kwargs={"engine": engine},
    )

    scheduler.add_job(
        cleanup_rate_limiter,
        trigger=IntervalTrigger(minutes=settings.rate_limit_cleanup_minutes),
        id=RATE_LIMIT_CLEANUP_JOB_ID,
        replace_existing=True,
        kwargs={"limiter": limiter},
    )

    if settings.dashboard_enabled and service is not None:
        scheduler.add_job(
            publish_dashboard,
            trigger=IntervalTrigger(minutes=settings.dashboard_interval_minutes),
            id=DASHBOARD_JOB_ID,
            replace_existing=True,
            kwargs={"service": service},
        )

    return scheduler


async def start_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Start the scheduler."""
    if not scheduler.running:
        scheduler.start()
        logger.info(f"Scheduler started with jobs: {[job.id for job in scheduler.get_jobs()]}")


async def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
