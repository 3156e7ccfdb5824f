"""
Distributed lock.

Redis-backed lock that keeps periodic jobs from running concurrently
on several workers.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import LockError, RedisError

LOCK_PREFIX = "lock:"


class DistributedLock:
    """
    Named lock on top of redis-py's Lock.

    Without a Redis client the lock degrades to a no-op that always
    acquires, with a warning.
    """

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        """
        Initialize lock.

        Args:
            redis_client: Async Redis client (optional)
        """
        self.redis_client = redis_client

    @asynccontextmanager
    async def lock(
        self,
        key: str,
        timeout: int = 60,
        blocking: bool = True,
        blocking_timeout: float | None = None,
    ) -> AsyncIterator[bool]:
        """
        Hold a named lock for the duration of the block.

        Args:
            key: Lock name
            timeout: Lock expiry in seconds
            blocking: Wait for the lock if it is held
            blocking_timeout: Max seconds to wait when blocking

        Yields:
            True if the lock was acquired
        """
        if self.redis_client is None:
            logger.warning(f"No Redis client, running '{key}' without lock")
            yield True
            return

        redis_lock = self.redis_client.lock(
            f"{LOCK_PREFIX}{key}",
            timeout=timeout,
            blocking=blocking,
            blocking_timeout=blocking_timeout,
        )

        try:
            acquired = await redis_lock.acquire()
        except RedisError as e:
            logger.warning(f"Failed to acquire lock '{key}': {e}")
            acquired = False

        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await redis_lock.release()
                except LockError:
                    # Expired before release
                    logger.warning(f"Lock '{key}' expired before release")
