"""
UserVideoTask repository.

Data access layer for verified task completions, the task commission
source.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.models.user_video_task import UserVideoTask
from app.repositories.base import BaseRepository


@dataclass(frozen=True)
class UserTaskSummary:
    """Verified task totals of one user inside a window."""

    user_id: int
    task_count: int
    total_reward: Decimal


class UserVideoTaskRepository(BaseRepository[UserVideoTask]):
    """User video task repository with reconciliation queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user video task repository."""
        super().__init__(UserVideoTask, session)

    async def group_verified_by_user(
        self,
        since: datetime,
        after_user_id: int = 0,
        limit: int = 500,
    ) -> list[UserTaskSummary]:
        """
        Group verified tasks of referred users by user.

        Pages by user ID (keyset) so the caller can walk every user
        without holding the whole aggregate in memory.

        Args:
            since: Oldest watched_at included
            after_user_id: Return users with ID greater than this
            limit: Max users per page

        Returns:
            Summaries ordered by user ID
        """
        stmt = (
            select(
                UserVideoTask.user_id,
                func.count(UserVideoTask.id).label("task_count"),
                func.coalesce(
                    func.sum(UserVideoTask.reward_earned), Decimal("0")
                ).label("total_reward"),
            )
            .join(User, User.id == UserVideoTask.user_id)
            .where(
                UserVideoTask.is_verified.is_(True),
                UserVideoTask.watched_at >= since,
                User.referred_by.is_not(None),
                UserVideoTask.user_id > after_user_id,
            )
            .group_by(UserVideoTask.user_id)
            .order_by(UserVideoTask.user_id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [
            UserTaskSummary(
                user_id=row.user_id,
                task_count=row.task_count,
                total_reward=Decimal(str(row.total_reward)),
            )
            for row in result.all()
        ]

    async def list_verified_for_user(
        self, user_id: int, since: datetime | None = None
    ) -> list[UserVideoTask]:
        """
        Get verified tasks of a user in chronological order.

        Args:
            user_id: User ID
            since: Optional oldest watched_at included

        Returns:
            Tasks ordered by watched_at, then ID
        """
        stmt = select(UserVideoTask).where(
            UserVideoTask.user_id == user_id,
            UserVideoTask.is_verified.is_(True),
        )
        if since is not None:
            stmt = stmt.where(UserVideoTask.watched_at >= since)
        stmt = stmt.order_by(
            UserVideoTask.watched_at.asc(), UserVideoTask.id.asc()
        )

        result = await self.session.execute(stmt)
        return list(result.scalars().all())
