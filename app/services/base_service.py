"""
Base service class.

Session access, a logger bound to the service name and the decorators
the referral services share.

Transaction ownership: the hierarchy builder and the commission
distributor write inside savepoints and never commit or roll back the
session they are given; the purchase and task flows that call them
commit their own transaction. The repair sweep owns its session and
commits one item at a time with @transaction.
"""

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction


# Type variable for generic decorator return types
T = TypeVar("T")


class BaseService:
    """
    Base service class.

    Provides:
    - Session access
    - Logging with bound service context
    - Commit, rollback and savepoint helpers
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session
        """
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    async def rollback(self) -> None:
        """Rollback current transaction."""
        await self.session.rollback()

    def savepoint(self) -> AsyncSessionTransaction:
        """
        Open a SAVEPOINT inside the current transaction.

        Leaving the block with an exception rolls back to the savepoint
        only. Work the caller added to the session before stays pending.

        Usage:
            async with self.savepoint():
                await self.user_repo.credit_balance(ancestor_id, amount)
        """
        return self.session.begin_nested()


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Commit after the wrapped method, roll back if it raises.

    Only for services that own their session, e.g. one repair item:

        @transaction
        async def _distribute(self, event):
            return await self.distributor.distribute(event)

    Args:
        func: Async method to wrap

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        try:
            result = await func(self, *args, **kwargs)
            await self.commit()
            return result
        except Exception as e:
            await self.rollback()
            self.logger.error(
                f"Transaction failed in {func.__name__}",
                extra={
                    "error": str(e),
                    "function": func.__name__,
                },
            )
            raise

    return wrapper


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Log entry, exit and duration of a sweep-level operation.

    Used on repair_all / repair_user, not on per-item calls.

    Args:
        func: Async method to wrap

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        start_time = time.monotonic()

        self.logger.info(
            f"Starting {func.__name__}",
            extra={"function": func.__name__, "args": args},
        )

        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            self.logger.error(
                f"Failed {func.__name__}",
                extra={
                    "function": func.__name__,
                    "duration_seconds": round(time.monotonic() - start_time, 3),
                    "error": str(e),
                },
            )
            raise

        self.logger.info(
            f"Completed {func.__name__}",
            extra={
                "function": func.__name__,
                "duration_seconds": round(time.monotonic() - start_time, 3),
            },
        )
        return result

    return wrapper
