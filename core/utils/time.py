"""
Time Utilities

This module provides utilities for handling timestamps from different exchanges
and for the countdown arithmetic used by the alert scheduler.

Different exchanges return timestamps in different formats:
- Binance, Bybit, Bitget, KuCoin: milliseconds since epoch (e.g., 1704110400000)
- Gate.io: seconds since epoch (e.g., 1704110400)
- We need: Python datetime objects in UTC

Funding settlement on most exchanges happens on an 8-hour UTC cycle
(00:00/08:00/16:00). KuCoin staggers its cycle by 4 hours (04:00/12:00/20:00).
When an exchange omits the next settlement time we estimate it from that cycle.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

SETTLEMENT_CYCLE_HOURS = 8


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to UTC datetime.

    Detection Logic:
        - If timestamp > 1e12 (1 trillion): Assumed to be milliseconds
        - Otherwise: Assumed to be seconds

    Args:
        timestamp: Unix timestamp in seconds or milliseconds

    Returns:
        datetime: Timezone-aware datetime object in UTC

    Raises:
        ValueError: If timestamp is negative or invalid

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    # Seconds are ~1.7e9 today, milliseconds ~1.7e12
    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def current_utc_datetime() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        datetime: Current time as timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def next_settlement_boundary(offset_hours: int = 0, now: Optional[datetime] = None) -> datetime:
    """
    Estimate the next funding settlement on an 8-hour UTC cycle.

    The cycle boundaries are the hours h where (h - offset_hours) % 8 == 0.
    The result is always strictly in the future: a call made exactly on a
    boundary returns the following one.

    Args:
        offset_hours: Exchange-specific cycle offset (0 for most, 4 for KuCoin)
        now: Reference time (defaults to current UTC time)

    Returns:
        datetime: Next boundary, timezone-aware UTC

    Examples:
        >>> now = datetime(2024, 1, 1, 7, 59, tzinfo=timezone.utc)
        >>> next_settlement_boundary(0, now)
        datetime.datetime(2024, 1, 1, 8, 0, tzinfo=datetime.timezone.utc)

        >>> next_settlement_boundary(4, now)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    now = now or current_utc_datetime()
    now = now.astimezone(timezone.utc)

    hour_start = now.replace(minute=0, second=0, microsecond=0)
    hours_into_cycle = (now.hour - offset_hours) % SETTLEMENT_CYCLE_HOURS
    # On a boundary hour this lands a full cycle ahead
    return hour_start + timedelta(hours=SETTLEMENT_CYCLE_HOURS - hours_into_cycle)


def minutes_until_ceil(when: datetime, now: Optional[datetime] = None) -> int:
    """
    Minutes until `when`, rounded up. Used for scheduling decisions.

    Example:
        >>> now = datetime(2024, 1, 1, 7, 30, 1, tzinfo=timezone.utc)
        >>> minutes_until_ceil(datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc), now)
        30
    """
    now = now or current_utc_datetime()
    return math.ceil((when - now).total_seconds() / 60.0)


def minutes_until_floor(when: datetime, now: Optional[datetime] = None) -> int:
    """
    Minutes until `when`, rounded down. Used for display.
    """
    now = now or current_utc_datetime()
    return math.floor((when - now).total_seconds() / 60.0)


def seconds_until_minute_of_hour(minute: int, now: Optional[datetime] = None) -> float:
    """
    Seconds until the next occurrence of hh:`minute`:00.

    Args:
        minute: Minute of the hour (0-59)
        now: Reference time (defaults to current UTC time)

    Returns:
        float: Delay in seconds, in the range (0, 3600]
    """
    now = now or current_utc_datetime()
    target = now.replace(minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(hours=1)
    return (target - now).total_seconds()
