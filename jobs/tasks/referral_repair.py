"""
Referral repair task.

Runs the reconciliation sweep: rebuilds missing hierarchy edges and
backfills missing invite and task commissions. Scheduled nightly and
safe to enqueue by hand; a Redis lock keeps sweeps from overlapping.
"""

from typing import Any

import dramatiq
from loguru import logger

from app.config.operational_constants import REFERRAL_REPAIR_TIME_LIMIT_MS
from app.config.settings import settings
from app.services.referral.repair_service import ReferralRepairService
from app.utils.distributed_lock import DistributedLock
from app.utils.redis_utils import get_redis_client
from jobs.async_runner import create_local_session, run_async
from jobs.broker import broker  # noqa: F401  # actors bind to the Redis broker

REPAIR_LOCK_KEY = "referral_repair"


@dramatiq.actor(max_retries=2, time_limit=REFERRAL_REPAIR_TIME_LIMIT_MS)
def repair_referrals(user_id: int | None = None) -> dict[str, Any]:
    """
    Run the referral reconciliation sweep.

    Args:
        user_id: Repair a single user instead of the whole ledger

    Returns:
        Repair summary (skipped=True if another sweep holds the lock)
    """
    logger.info(
        f"Starting referral repair"
        f"{f' for user {user_id}' if user_id else ''}..."
    )

    result = run_async(_repair_referrals_async(user_id))

    if result.get("skipped"):
        return result

    if result["success"]:
        logger.info(
            f"Referral repair complete: {result['repairs_performed']} repairs "
            f"({result['hierarchies_rebuilt']} hierarchies, "
            f"{result['invite_commissions_fixed']} invite, "
            f"{result['task_commissions_fixed']} task)"
        )
    else:
        logger.error(
            f"Referral repair finished with {len(result['errors'])} errors",
            extra={"errors": result["errors"][:20]},
        )

    return result


async def _repair_referrals_async(user_id: int | None) -> dict[str, Any]:
    """Async implementation of the repair sweep."""
    redis_client = await get_redis_client()
    lock = DistributedLock(redis_client=redis_client)

    lock_key = f"{REPAIR_LOCK_KEY}_user_{user_id}" if user_id else REPAIR_LOCK_KEY

    try:
        async with lock.lock(
            lock_key,
            timeout=settings.referral_repair_lock_timeout,
            blocking=False,
        ) as acquired:
            if not acquired:
                logger.warning("Referral repair already running, skipping")
                return {"skipped": True}

            async with create_local_session() as session:
                service = ReferralRepairService(session)
                if user_id:
                    report = await service.repair_user(user_id)
                else:
                    report = await service.repair_all()
                return report.to_dict()
    finally:
        await redis_client.aclose()
