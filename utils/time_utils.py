"""
utils/time_utils.py

Purpose: Time and expiry helpers

- Single source of "now" (naive UTC, matching what Mongo returns)
- Code expiry checks
- Minute rounding for retry hints
"""

import calendar
import math
from datetime import datetime, timedelta
from typing import Optional


def utcnow() -> datetime:
    """
    Returns the current naive UTC time.
    """
    return datetime.utcnow()


def calculate_code_expiry(issued_at: datetime, ttl_ms: int) -> datetime:
    """
    Calculates a verification code expiry timestamp.
    """
    return issued_at + timedelta(milliseconds=ttl_ms)


def is_code_expired(expiry: datetime, now: datetime) -> bool:
    """
    A code is expired from the instant its expiry is reached.
    """
    return now >= expiry


def minutes_remaining(delta: timedelta) -> int:
    """
    Rounds a remaining duration up to whole minutes.
    """
    return math.ceil(delta.total_seconds() / 60)


def to_timestamp(dt: datetime) -> int:
    """
    Converts a naive UTC datetime to a unix timestamp.
    """
    return calendar.timegm(dt.utctimetuple())


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """
    Formats a datetime as ISO-8601 with a trailing Z.
    """
    if not dt:
        return None
    return dt.replace(microsecond=0).isoformat() + "Z"
