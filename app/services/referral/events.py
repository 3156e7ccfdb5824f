"""
Commission trigger events.

Logical events reconstructed from plan purchases and verified tasks.
Each event maps to exactly one schedule and one idempotency event key.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

from app.models.enums import CommissionSchedule
from app.models.user_plan import UserPlan
from app.models.user_video_task import UserVideoTask
from app.services.referral.config import INVITE_EVENT_KEY


@dataclass(frozen=True)
class PlanPurchase:
    """A referred user bought a subscription plan."""

    user_id: int
    amount_paid: Decimal
    position_tier: str
    plan_id: int | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    schedule = CommissionSchedule.INVITE

    @property
    def event_key(self) -> str:
        """Invite commission is paid once per referred user."""
        return INVITE_EVENT_KEY

    @property
    def source_event_id(self) -> int | None:
        return self.plan_id

    @classmethod
    def from_user_plan(cls, plan: UserPlan) -> "PlanPurchase":
        """Reconstruct the event from a stored plan."""
        return cls(
            user_id=plan.user_id,
            amount_paid=plan.amount_paid,
            position_tier=plan.position_tier,
            plan_id=plan.id,
            timestamp=plan.created_at,
        )


@dataclass(frozen=True)
class TaskCompletion:
    """A referred user earned a task reward."""

    user_id: int
    reward_earned: Decimal
    task_id: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    schedule = CommissionSchedule.TASK

    @property
    def event_key(self) -> str:
        """Task commission is paid once per task."""
        return f"task:{self.task_id}"

    @property
    def source_event_id(self) -> int | None:
        return self.task_id

    @classmethod
    def from_video_task(cls, task: UserVideoTask) -> "TaskCompletion":
        """Reconstruct the event from a stored task."""
        return cls(
            user_id=task.user_id,
            reward_earned=task.reward_earned,
            task_id=task.id,
            timestamp=task.watched_at,
        )


CommissionEvent = PlanPurchase | TaskCompletion
