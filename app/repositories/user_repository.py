"""
User repository.

Data access layer for User model: referrer pointers and balance credits.
"""

from collections.abc import AsyncIterator
from decimal import Decimal

from sqlalchemy import exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.referral_hierarchy import ReferralHierarchy
from app.models.user import User
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """User repository with referral specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def get_by_referral_code(self, referral_code: str) -> User | None:
        """
        Get user by referral code.

        Args:
            referral_code: Referral code

        Returns:
            User or None
        """
        return await self.get_by(referral_code=referral_code)

    async def get_referred_by_map(
        self, user_ids: list[int]
    ) -> dict[int, int | None]:
        """
        Get referred_by pointers for a set of users in one query.

        Args:
            user_ids: User IDs

        Returns:
            Dict of user ID to referrer ID (None for roots).
            Unknown IDs are absent.
        """
        if not user_ids:
            return {}

        stmt = select(User.id, User.referred_by).where(User.id.in_(user_ids))
        result = await self.session.execute(stmt)
        return {row.id: row.referred_by for row in result.all()}

    async def get_active_map(self, user_ids: list[int]) -> dict[int, bool]:
        """
        Get is_active flags for a set of users.

        Args:
            user_ids: User IDs

        Returns:
            Dict of user ID to is_active
        """
        if not user_ids:
            return {}

        stmt = select(User.id, User.is_active).where(User.id.in_(user_ids))
        result = await self.session.execute(stmt)
        return {row.id: row.is_active for row in result.all()}

    async def set_referred_by(self, user_id: int, referrer_id: int) -> bool:
        """
        Set referrer pointer if it is not set yet.

        The WHERE clause makes the pointer write-once even under
        concurrent registrations.

        Args:
            user_id: User ID
            referrer_id: Referrer user ID

        Returns:
            True if the pointer was written
        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.referred_by.is_(None))
            .values(referred_by=referrer_id)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def credit_balance(
        self, user_id: int, amount: Decimal
    ) -> Decimal | None:
        """
        Atomically credit wallet balance and total earnings.

        Uses a SQL-side increment so concurrent credits to the same
        ancestor never lose an update.

        Args:
            user_id: User ID
            amount: Amount to add (positive)

        Returns:
            Wallet balance after the credit, or None if user is missing
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                wallet_balance=User.wallet_balance + amount,
                total_earnings=User.total_earnings + amount,
            )
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            return None

        balance_stmt = select(User.wallet_balance).where(User.id == user_id)
        balance_result = await self.session.execute(balance_stmt)
        return balance_result.scalar_one()

    def _missing_hierarchy_stmt(self):
        has_edges = exists().where(ReferralHierarchy.user_id == User.id)
        return select(User).where(User.referred_by.is_not(None), ~has_edges)

    async def iter_users_missing_hierarchy(
        self, page_size: int
    ) -> AsyncIterator[list[User]]:
        """
        Iterate referred users that have no hierarchy edges.

        Args:
            page_size: Users per page

        Yields:
            Pages of users
        """
        async for page in self.iter_pages(
            self._missing_hierarchy_stmt(), page_size
        ):
            yield page

    async def count_missing_hierarchy(self) -> int:
        """Count referred users that have no hierarchy edges."""
        subquery = self._missing_hierarchy_stmt().subquery()
        stmt = select(func.count()).select_from(subquery)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_referred(self) -> int:
        """Count users that have a referrer."""
        stmt = select(func.count(User.id)).where(User.referred_by.is_not(None))
        result = await self.session.execute(stmt)
        return result.scalar() or 0
