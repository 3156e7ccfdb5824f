#!/usr/bin/env python3
"""
Run the referral repair sweep from the command line.

Usage:
    python scripts/repair_referrals.py --validate-only
    python scripts/repair_referrals.py --user-id 42
    python scripts/repair_referrals.py
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from app.config.database import create_engine, create_session_maker
from app.config.logging import setup_logging
from app.services.referral.repair_service import ReferralRepairService


async def run(user_id: int | None, validate_only: bool, window_days: int | None) -> int:
    engine = create_engine(null_pool=True)
    session_maker = create_session_maker(engine)

    try:
        async with session_maker() as session:
            service = ReferralRepairService(session, task_window_days=window_days)

            if validate_only:
                integrity = await service.validate_integrity()
                print(json.dumps(integrity.to_dict(), indent=2))
                return 0 if integrity.is_valid else 1

            if user_id is not None:
                report = await service.repair_user(user_id)
            else:
                report = await service.repair_all()

            print(json.dumps(report.to_dict(), indent=2))
            return 0 if report.success else 1
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Rebuild referral hierarchies and backfill missing commissions"
    )
    parser.add_argument(
        "--user-id",
        type=int,
        help="Repair a single user"
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Report integrity statistics without changing anything"
    )
    parser.add_argument(
        "--window-days",
        type=int,
        help="Override the task backfill window"
    )

    args = parser.parse_args()

    setup_logging(component="repair_referrals")
    logger.info("Starting referral repair script...")

    exit_code = asyncio.run(run(args.user_id, args.validate_only, args.window_days))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
