"""
Fixtures for integration tests.

Each test gets its own SQLite database file (aiosqlite driver) with the
full schema, so sessions opened from the same factory see each other's
commits like separate connections to Postgres would. The services leave
committing to their caller, so tests commit before reading through a
fresh session. An open SQLite read transaction blocks another session's
commit, so a session that only reads is committed before the next
writer commits.
"""

import itertools
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import create_async_engine

from app.config.database import create_session_maker
from app.models import (
    Base,
    PlanStatus,
    User,
    UserPlan,
    UserVideoTask,
    WalletTransaction,
)
from app.utils.datetime_utils import utc_now


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Async engine on a fresh SQLite file with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'referrals.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on sqlite3
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_user(session):
    """Factory: insert a user and return its ID."""
    counter = itertools.count(1)

    async def _make_user(referred_by: int | None = None, **fields) -> int:
        n = next(counter)
        fields.setdefault("name", f"user{n}")
        fields.setdefault("phone", f"+92300{n:07d}")
        fields.setdefault("referral_code", f"REF{n:04d}")
        user = User(referred_by=referred_by, **fields)
        session.add(user)
        await session.commit()
        return user.id

    return _make_user


@pytest.fixture
def make_chain(make_user):
    """Factory: build root -> ... -> leaf and return IDs, root first."""

    async def _make_chain(length: int) -> list[int]:
        ids = [await make_user()]
        for _ in range(length - 1):
            ids.append(await make_user(referred_by=ids[-1]))
        return ids

    return _make_chain


@pytest.fixture
def make_plan(session):
    """Factory: insert a plan purchase and return its ID."""

    async def _make_plan(
        user_id: int,
        position_tier: str = "P1",
        amount_paid: Decimal = Decimal("5000"),
        status: PlanStatus = PlanStatus.ACTIVE,
    ) -> int:
        plan = UserPlan(
            user_id=user_id,
            plan_name=f"Plan {position_tier}",
            position_tier=position_tier,
            amount_paid=amount_paid,
            status=status.value,
        )
        session.add(plan)
        await session.commit()
        return plan.id

    return _make_plan


@pytest.fixture
def make_task(session):
    """Factory: insert a verified video task and return its ID."""

    async def _make_task(
        user_id: int,
        reward_earned: Decimal = Decimal("62"),
        watched_at: datetime | None = None,
        is_verified: bool = True,
    ) -> int:
        task = UserVideoTask(
            user_id=user_id,
            video_id=1,
            reward_earned=reward_earned,
            is_verified=is_verified,
            watched_at=watched_at or utc_now() - timedelta(hours=1),
        )
        session.add(task)
        await session.commit()
        return task.id

    return _make_task


@pytest.fixture
def wallet_balance(session_maker):
    """Read a user's wallet balance through a fresh session."""

    async def _wallet_balance(user_id: int) -> Decimal:
        async with session_maker() as fresh:
            value = await fresh.scalar(
                select(User.wallet_balance).where(User.id == user_id)
            )
        return Decimal(str(value))

    return _wallet_balance


@pytest.fixture
def commission_rows(session_maker):
    """Read commission rows through a fresh session."""

    async def _commission_rows(
        referred_user_id: int | None = None,
    ) -> list[WalletTransaction]:
        stmt = select(WalletTransaction).where(
            WalletTransaction.commission_schedule.is_not(None)
        )
        if referred_user_id is not None:
            stmt = stmt.where(WalletTransaction.referred_user_id == referred_user_id)
        async with session_maker() as fresh:
            result = await fresh.execute(stmt.order_by(WalletTransaction.id))
            return list(result.scalars().all())

    return _commission_rows
