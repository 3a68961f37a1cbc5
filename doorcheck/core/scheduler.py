"""Background job scheduler for ledger reconciliation while scanning."""
import logging
from collections.abc import Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from doorcheck.core.config import settings

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

AUTO_SYNC_JOB_ID = "auto_sync"


def start_auto_sync(event_id: str, tick: Callable[[str], object], interval_seconds: int | None = None):
    """
    Reconcile ``event_id`` every interval until stopped.

    There is one auto-sync job per process; starting another replaces it.
    """
    interval = interval_seconds or settings.sync_interval_seconds

    async def run_tick(event_id: str):
        # Coroutine jobs run on the event loop, the thread that serves scans
        tick(event_id)

    # Pending jobs of a scheduler that is not running are not replaced by id
    if scheduler.get_job(AUTO_SYNC_JOB_ID):
        scheduler.remove_job(AUTO_SYNC_JOB_ID)
    scheduler.add_job(
        run_tick,
        trigger=IntervalTrigger(seconds=interval),
        args=[event_id],
        id=AUTO_SYNC_JOB_ID,
        replace_existing=True,
    )
    logger.info(f"Auto-sync started for {event_id}, every {interval} seconds")


def stop_auto_sync() -> bool:
    """Stop the auto-sync job. Returns False if none was running."""
    try:
        scheduler.remove_job(AUTO_SYNC_JOB_ID)
    except JobLookupError:
        return False
    logger.info("Auto-sync stopped")
    return True


def auto_sync_event() -> str | None:
    job = scheduler.get_job(AUTO_SYNC_JOB_ID)
    return job.args[0] if job else None


def start_scheduler():
    """Start the background scheduler."""
    scheduler.start()
    logger.info("Scheduler started")


def shutdown_scheduler():
    """Graceful shutdown."""
    scheduler.shutdown(wait=False)
    logger.info("Scheduler shut down")
