"""
Base repository.

Generic CRUD operations shared by the referral ledger repositories.
"""

from collections.abc import AsyncIterator
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

# Generic type for model
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with generic CRUD operations.

    Type Parameters:
        ModelType: SQLAlchemy model class

    Example:
        class UserRepository(BaseRepository[User]):
            def __init__(self, session: AsyncSession):
                super().__init__(User, session)
    """

    def __init__(
        self, model: type[ModelType], session: AsyncSession
    ) -> None:
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def get_by_id(self, id: int) -> ModelType | None:
        """
        Get entity by ID.

        Args:
            id: Entity ID

        Returns:
            Entity or None if not found
        """
        return await self.session.get(self.model, id)

    async def get_by(self, **filters: Any) -> ModelType | None:
        """
        Get single entity by filters.

        Args:
            **filters: Column filters

        Returns:
            First matching entity or None
        """
        stmt = select(self.model).filter_by(**filters).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, **data: Any) -> ModelType:
        """
        Create new entity.

        Flushes so that constraint violations surface here and the
        generated primary key is available.

        Args:
            **data: Entity data

        Returns:
            Created entity
        """
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def count(self, **filters: Any) -> int:
        """
        Count entities matching filters.

        Args:
            **filters: Column filters

        Returns:
            Count of matching entities
        """
        stmt = select(func.count()).select_from(self.model)

        if filters:
            stmt = stmt.filter_by(**filters)

        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def exists(self, **filters: Any) -> bool:
        """
        Check if entity exists.

        Args:
            **filters: Column filters

        Returns:
            True if exists, False otherwise
        """
        stmt = select(self.model.id).filter_by(**filters).limit(1)
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def iter_pages(
        self, stmt: Select, page_size: int
    ) -> AsyncIterator[list[Any]]:
        """
        Iterate a query in keyset pages ordered by primary key.

        Keyset pagination keeps the scan stable while rows are appended
        and bounds memory for large tables.

        Args:
            stmt: Select of self.model entities (extra filters allowed)
            page_size: Rows per page

        Yields:
            Lists of entities
        """
        last_id = 0
        while True:
            page_stmt = (
                stmt.where(self.model.id > last_id)
                .order_by(self.model.id.asc())
                .limit(page_size)
            )
            result = await self.session.execute(page_stmt)
            rows = list(result.scalars().all())
            if not rows:
                return

            # Read the cursor before yielding: the caller may commit or roll
            # back, which expires the loaded entities.
            last_id = rows[-1].id
            is_last_page = len(rows) < page_size

            yield rows

            if is_last_page:
                return
