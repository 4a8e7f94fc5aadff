"""Centralized datetime utilities for consistent timezone handling.

All functions return naive datetimes for database compatibility
(SQLAlchemy models store naive UTC).

Usage:
    from app.core.datetime_utils import utc_now, get_cutoff, days_until

    now = utc_now()
    cutoff = get_cutoff(minutes=10)
    days_left = days_until(request.expires_on, now)
"""

from datetime import UTC, datetime, timedelta

# Expiry stored for access requests that never expire
NEVER_EXPIRES = datetime(9999, 12, 31, 23, 59, 59)


def utc_now() -> datetime:
    """Get current UTC time as naive datetime.

    Returns naive datetime for database compatibility.
    Replaces deprecated datetime.utcnow().
    """
    return datetime.now(UTC).replace(tzinfo=None)


def get_cutoff(
    minutes: int = 0, hours: int = 0, days: int = 0, now: datetime | None = None
) -> datetime:
    """Get cutoff datetime for filtering queries.

    Args:
        minutes: Minutes to subtract from now
        hours: Hours to subtract from now
        days: Days to subtract from now
        now: Reference time, defaults to the current time

    Returns:
        Naive UTC datetime representing the cutoff point
    """
    delta = timedelta(minutes=minutes, hours=hours, days=days)
    return (now or utc_now()) - delta


def get_expiry(minutes: int = 0, hours: int = 0, days: int = 0) -> datetime:
    """Get future expiry datetime.

    Args:
        minutes: Minutes to add to now
        hours: Hours to add to now
        days: Days to add to now

    Returns:
        Naive UTC datetime representing the expiry point
    """
    delta = timedelta(minutes=minutes, hours=hours, days=days)
    return utc_now() + delta


def start_of_day(dt: datetime) -> datetime:
    """Truncate a datetime to midnight of the same day."""
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def days_until(expires_on: datetime, now: datetime | None = None) -> int:
    """Count calendar-day boundaries between now and expires_on.

    Matches a SQL ``DATEDIFF(DAY, now, expires_on)``: something expiring later
    today is 0 days away, and something that expired yesterday is -1.
    """
    now = now or utc_now()
    return (expires_on.date() - now.date()).days


def elapsed_ms(start: float, end: float) -> int:
    """Convert two perf_counter readings into whole milliseconds."""
    return int(round((end - start) * 1000))
