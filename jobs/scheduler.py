"""
Job scheduler.

Enqueues periodic dramatiq jobs. Run as its own process:

    python -m jobs.scheduler
"""

import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from app.config.logging import setup_logging
from app.config.settings import settings
from jobs.tasks.referral_repair import repair_referrals


def enqueue_referral_repair() -> None:
    """Send a full repair sweep to the worker queue."""
    message = repair_referrals.send()
    logger.info(f"Referral repair enqueued: {message.message_id}")


def create_scheduler() -> AsyncIOScheduler:
    """
    Create scheduler with all periodic jobs registered.

    Returns:
        AsyncIOScheduler (not started)
    """
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        enqueue_referral_repair,
        CronTrigger.from_crontab(settings.referral_repair_cron, timezone="UTC"),
        id="referral_repair",
        name="Referral repair sweep",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return scheduler


async def main() -> None:
    setup_logging(component="scheduler")

    scheduler = create_scheduler()
    scheduler.start()
    logger.info(
        f"Scheduler started, referral repair cron: {settings.referral_repair_cron}"
    )

    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
