"""
Datetime utilities.

Timezone-aware helpers for ledger timestamps and repair windows.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Get current UTC datetime with timezone info."""
    return datetime.now(UTC)


def window_start(days: int, now: datetime | None = None) -> datetime:
    """
    Get the start of a trailing window.

    Args:
        days: Window length in days
        now: Reference time (defaults to utc_now())

    Returns:
        now minus `days`
    """
    return (now or utc_now()) - timedelta(days=days)
