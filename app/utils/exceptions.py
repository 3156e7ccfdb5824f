"""
Exception handling utilities.

Defines the referral engine's exception types and the category of
failures a batch job expects per item.
"""

from sqlalchemy.exc import SQLAlchemyError


class ReferralError(Exception):
    """Base class for referral engine errors."""
    pass


class NotFoundError(ReferralError):
    """Raised when a referenced user or edge does not exist."""

    def __init__(self, entity: str, entity_id: int | str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidEventError(ReferralError):
    """Raised when a commission trigger has an unknown shape or value."""
    pass


class LedgerWriteError(ReferralError):
    """Raised when the store rejects an atomic commission write."""
    pass


class ReferralLinkError(ReferralError):
    """Raised when a referrer cannot be attached to a user."""
    pass


# Exception categories based on handling strategy

# Collected into a repair report - one item failed, the sweep continues
PER_ITEM_FAILURES = (
    ReferralError,
    SQLAlchemyError,
)


def is_per_item_failure(exc: Exception) -> bool:
    """
    Check if exception is an expected per-item failure.

    Expected failures are logged without a traceback; anything else
    is logged with one, but both are recorded and the batch continues.

    Args:
        exc: Exception to check

    Returns:
        True if exception is a known referral or store failure
    """
    return isinstance(exc, PER_ITEM_FAILURES)
