"""
Operational constants.

Defaults for batch jobs. Each value can be overridden through Settings.
"""

# ========================================================================
# REFERRAL RECONCILIATION
# ========================================================================

# Verified tasks older than this are not replayed by the repair sweep
REFERRAL_TASK_REPAIR_WINDOW_DAYS = 90

# Page size for scans over users, plans and tasks
REFERRAL_REPAIR_BATCH_SIZE = 500

# Redis lock TTL for one sweep (must be > dramatiq time limit in seconds)
REFERRAL_REPAIR_LOCK_TIMEOUT_SECONDS = 3600

# Dramatiq actor time limit for a full sweep (milliseconds)
REFERRAL_REPAIR_TIME_LIMIT_MS = 3_000_000
