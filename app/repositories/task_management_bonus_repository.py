"""
TaskManagementBonus repository.

Data access layer for task commission reporting rows.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ReferralLevel
from app.models.task_management_bonus import TaskManagementBonus
from app.repositories.base import BaseRepository


class TaskManagementBonusRepository(BaseRepository[TaskManagementBonus]):
    """Repository for task management bonus rows."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(TaskManagementBonus, session)

    async def create_bonus(
        self,
        *,
        ancestor_id: int,
        subordinate_id: int,
        level: ReferralLevel,
        bonus_amount: Decimal,
        task_income: Decimal,
        task_date: datetime,
        source_task_id: int | None,
    ) -> TaskManagementBonus:
        """
        Insert a bonus row.

        Returns:
            Created bonus
        """
        return await self.create(
            user_id=ancestor_id,
            subordinate_id=subordinate_id,
            subordinate_level=level.value,
            bonus_amount=bonus_amount,
            task_income=task_income,
            task_date=task_date,
            source_task_id=source_task_id,
        )

    async def exists_for_task(
        self, subordinate_id: int, level: ReferralLevel, task_id: int
    ) -> bool:
        """
        Check if a bonus row exists for a task and level.

        Args:
            subordinate_id: User who completed the task
            level: Ancestor level
            task_id: UserVideoTask ID

        Returns:
            True if row exists
        """
        return await self.exists(
            subordinate_id=subordinate_id,
            subordinate_level=level.value,
            source_task_id=task_id,
        )
