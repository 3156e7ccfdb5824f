"""
ReferralHierarchy repository.

Data access layer for materialized A/B/C ancestor edges.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ReferralLevel
from app.models.referral_hierarchy import ReferralHierarchy
from app.repositories.base import BaseRepository


class ReferralHierarchyRepository(BaseRepository[ReferralHierarchy]):
    """Referral hierarchy repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral hierarchy repository."""
        super().__init__(ReferralHierarchy, session)

    async def get_edges_for_user(
        self, user_id: int
    ) -> list[ReferralHierarchy]:
        """
        Get ancestor edges of a user ordered A, B, C.

        Args:
            user_id: Referred user ID

        Returns:
            List of edges (0-3)
        """
        stmt = (
            select(ReferralHierarchy)
            .where(ReferralHierarchy.user_id == user_id)
            .order_by(ReferralHierarchy.level.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_edge(
        self, user_id: int, referrer_id: int, level: ReferralLevel
    ) -> ReferralHierarchy:
        """
        Insert an edge.

        The (user_id, level) unique constraint rejects a second edge
        for the same level.

        Args:
            user_id: Referred user ID
            referrer_id: Ancestor user ID
            level: Ancestor level

        Returns:
            Created edge
        """
        return await self.create(
            user_id=user_id,
            referrer_id=referrer_id,
            level=level.value,
        )

    async def count_users_with_hierarchy(self) -> int:
        """Count distinct users that have at least one edge."""
        stmt = select(func.count(func.distinct(ReferralHierarchy.user_id)))
        result = await self.session.execute(stmt)
        return result.scalar() or 0
