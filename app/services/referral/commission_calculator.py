"""
Commission calculator.

Pure functions that compute per-level payouts for both commission
schedules. No I/O: the distributor and the repair sweep both call these,
so recomputation is deterministic.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.models.enums import ReferralLevel
from app.services.referral.config import (
    INTERN_TIER,
    INVITE_COMMISSION_TABLE,
    TASK_COMMISSION_RATES,
)
from app.services.referral.events import (
    CommissionEvent,
    PlanPurchase,
    TaskCompletion,
)
from app.utils.exceptions import InvalidEventError

WHOLE_UNIT = Decimal("1")


@dataclass(frozen=True)
class LevelAmounts:
    """Payout per level. Every level is always defined, possibly zero."""

    a: Decimal
    b: Decimal
    c: Decimal

    def for_level(self, level: ReferralLevel) -> Decimal:
        """Amount for a level."""
        if level == ReferralLevel.A_LEVEL:
            return self.a
        if level == ReferralLevel.B_LEVEL:
            return self.b
        return self.c

    def as_dict(self) -> dict[ReferralLevel, Decimal]:
        return {level: self.for_level(level) for level in ReferralLevel}

    @property
    def total(self) -> Decimal:
        return self.a + self.b + self.c


ZERO_AMOUNTS = LevelAmounts(Decimal("0"), Decimal("0"), Decimal("0"))


def compute_invite(position_tier: str) -> LevelAmounts:
    """
    Compute invite commission for a purchased tier.

    Args:
        position_tier: Tier name (P1..P10, Intern)

    Returns:
        Fixed payouts from the tier table (zeros for Intern)

    Raises:
        InvalidEventError: If tier is unknown
    """
    if position_tier == INTERN_TIER:
        return ZERO_AMOUNTS

    rates = INVITE_COMMISSION_TABLE.get(position_tier)
    if rates is None:
        raise InvalidEventError(f"Unknown position tier: {position_tier!r}")

    return LevelAmounts(
        a=rates[ReferralLevel.A_LEVEL],
        b=rates[ReferralLevel.B_LEVEL],
        c=rates[ReferralLevel.C_LEVEL],
    )


def round_half_up(amount: Decimal) -> Decimal:
    """Round to a whole currency unit, halves away from zero."""
    return amount.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def compute_task(task_income: Decimal | int | str) -> LevelAmounts:
    """
    Compute task commission from a subordinate's task income.

    Each level is rounded on its own, so the sum may differ from
    rounding the combined 10%.

    Example:
        compute_task(62) -> A=4 (3.72), B=2 (1.86), C=1 (0.62)

    Args:
        task_income: Task reward earned by the referred user

    Returns:
        Rounded payouts per level

    Raises:
        InvalidEventError: If income is not a non-negative number
    """
    try:
        income = Decimal(str(task_income))
    except InvalidOperation as e:
        raise InvalidEventError(f"Invalid task income: {task_income!r}") from e

    if not income.is_finite() or income < 0:
        raise InvalidEventError(f"Invalid task income: {task_income!r}")

    return LevelAmounts(
        a=round_half_up(income * TASK_COMMISSION_RATES[ReferralLevel.A_LEVEL]),
        b=round_half_up(income * TASK_COMMISSION_RATES[ReferralLevel.B_LEVEL]),
        c=round_half_up(income * TASK_COMMISSION_RATES[ReferralLevel.C_LEVEL]),
    )


def compute_for_event(event: CommissionEvent) -> LevelAmounts:
    """
    Compute payouts for any commission event.

    Args:
        event: PlanPurchase or TaskCompletion

    Returns:
        Payouts per level

    Raises:
        InvalidEventError: If event kind is unknown or values are invalid
    """
    if isinstance(event, PlanPurchase):
        return compute_invite(event.position_tier)
    if isinstance(event, TaskCompletion):
        return compute_task(event.reward_earned)
    raise InvalidEventError(
        f"Unsupported commission event: {type(event).__name__}"
    )
