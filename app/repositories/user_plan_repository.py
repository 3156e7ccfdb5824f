"""
UserPlan repository.

Data access layer for plan purchases, the invite commission source.
"""

from collections.abc import AsyncIterator

from sqlalchemy import and_, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import CommissionSchedule, PlanStatus
from app.models.user import User
from app.models.user_plan import UserPlan
from app.models.wallet_transaction import WalletTransaction
from app.repositories.base import BaseRepository


class UserPlanRepository(BaseRepository[UserPlan]):
    """User plan repository with reconciliation scans."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user plan repository."""
        super().__init__(UserPlan, session)

    def _active_referred_stmt(self):
        return (
            select(UserPlan)
            .join(User, User.id == UserPlan.user_id)
            .where(
                UserPlan.status == PlanStatus.ACTIVE.value,
                User.referred_by.is_not(None),
            )
        )

    async def iter_active_for_referred_users(
        self, page_size: int
    ) -> AsyncIterator[list[UserPlan]]:
        """
        Iterate ACTIVE plans of users that have a referrer.

        Args:
            page_size: Plans per page

        Yields:
            Pages of plans in insertion order
        """
        async for page in self.iter_pages(
            self._active_referred_stmt(), page_size
        ):
            yield page

    async def list_active_for_user(self, user_id: int) -> list[UserPlan]:
        """
        Get ACTIVE plans of a user, oldest first.

        Args:
            user_id: User ID

        Returns:
            List of plans
        """
        stmt = (
            select(UserPlan)
            .where(
                UserPlan.user_id == user_id,
                UserPlan.status == PlanStatus.ACTIVE.value,
            )
            .order_by(UserPlan.created_at.asc(), UserPlan.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_active(self) -> int:
        """Count ACTIVE plans."""
        return await self.count(status=PlanStatus.ACTIVE.value)

    async def count_active_without_invite_commission(self) -> int:
        """
        Count ACTIVE plans of referred users with no invite commission row.

        Returns:
            Number of plans
        """
        has_commission = exists().where(
            and_(
                WalletTransaction.referred_user_id == UserPlan.user_id,
                WalletTransaction.commission_schedule
                == CommissionSchedule.INVITE.value,
            )
        )
        subquery = self._active_referred_stmt().where(~has_commission).subquery()
        stmt = select(func.count()).select_from(subquery)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
