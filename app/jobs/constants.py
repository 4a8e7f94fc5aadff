"""Fixed tuning constants for the job runner.

These are deliberately not settings: changing the staleness window without
adding heartbeat renewal would let a live run be superseded.
"""

# An InProgress run older than this is treated as crashed and no longer holds the lock
LOCK_STALENESS_MINUTES = 10

# Error text stored on a failed run is cut to the column size
ERROR_MESSAGE_MAX_LENGTH = 500

# Latency of one simulated notification send
SIMULATED_SEND_DELAY_SECONDS = 2.0

# Per-item cost used for the "had we done this sequentially" estimate
SEQUENTIAL_ESTIMATE_PER_ITEM_MS = 2000

# How long the revoke job keeps the lock before selecting work, so that
# concurrent triggers from other tabs or servers hit the conflict path
REVOKE_HOLD_DELAY_SECONDS = 15.0

# Notification eligibility window and final-reminder threshold, in days
NOTIFICATION_WINDOW_DAYS = 30
FINAL_REMINDER_DAYS = 7

# Recorded as the actor on audit rows written by the jobs
NOTIFICATION_SENT_BY = "System - Automated Job ({notification_type})"
REVOKED_BY = "System - Scheduled Expiry Job"
