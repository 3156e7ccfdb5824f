"""
WalletTransaction repository.

Data access layer for the ledger. Commission lookups go through the
structured idempotency key columns, never through metadata text.
"""

import json
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import (
    CommissionSchedule,
    ReferralLevel,
    TransactionStatus,
    TransactionType,
)
from app.models.wallet_transaction import WalletTransaction
from app.repositories.base import BaseRepository


class WalletTransactionRepository(BaseRepository[WalletTransaction]):
    """Wallet transaction repository with commission queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize wallet transaction repository."""
        super().__init__(WalletTransaction, session)

    async def get_paid_levels(
        self,
        referred_user_id: int,
        schedule: CommissionSchedule,
        event_key: str,
    ) -> set[ReferralLevel]:
        """
        Get levels already paid for one commission event.

        Args:
            referred_user_id: User whose event triggered the commission
            schedule: Commission schedule
            event_key: Event key within the schedule

        Returns:
            Set of paid levels
        """
        stmt = select(WalletTransaction.commission_level).where(
            WalletTransaction.referred_user_id == referred_user_id,
            WalletTransaction.commission_schedule == schedule.value,
            WalletTransaction.event_key == event_key,
        )
        result = await self.session.execute(stmt)
        return {ReferralLevel(level) for level in result.scalars().all()}

    async def create_commission(
        self,
        *,
        ancestor_id: int,
        referred_user_id: int,
        level: ReferralLevel,
        schedule: CommissionSchedule,
        event_key: str,
        source_event_id: int | None,
        amount: Decimal,
        balance_after: Decimal,
        description: str,
        metadata: dict[str, Any],
    ) -> WalletTransaction:
        """
        Insert a tagged commission row.

        The commission key unique constraint rejects a duplicate payout
        for the same (referred user, level, schedule, event).

        Returns:
            Created transaction
        """
        return await self.create(
            user_id=ancestor_id,
            type=TransactionType.for_commission(schedule, level).value,
            amount=amount,
            balance_after=balance_after,
            reference_id=f"{schedule.value.upper()}_{level.value}_{referred_user_id}_{event_key}",
            description=description,
            metadata_json=json.dumps(metadata, default=str, sort_keys=True),
            status=TransactionStatus.COMPLETED.value,
            referred_user_id=referred_user_id,
            commission_level=level.value,
            commission_schedule=schedule.value,
            event_key=event_key,
            source_event_id=source_event_id,
        )

    async def count_commissions(
        self, schedule: CommissionSchedule | None = None
    ) -> int:
        """
        Count commission rows.

        Args:
            schedule: Optional schedule filter

        Returns:
            Number of rows
        """
        stmt = select(func.count(WalletTransaction.id)).where(
            WalletTransaction.commission_schedule.is_not(None)
        )
        if schedule is not None:
            stmt = stmt.where(
                WalletTransaction.commission_schedule == schedule.value
            )
        result = await self.session.execute(stmt)
        return result.scalar() or 0
