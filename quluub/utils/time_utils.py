"""
quluub/utils/time_utils.py

Purpose: Time helpers

- Timezone-aware timestamps for persisted documents
- Call duration formatting for guardian emails
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Returns the current time as an aware UTC datetime.
    """
    return datetime.now(timezone.utc)


def format_call_duration(seconds: Optional[int]) -> str:
    """
    Formats a call duration as m:ss.
    """
    if not seconds or seconds < 0:
        return "0:00"
    return f"{seconds // 60}:{seconds % 60:02d}"


def format_timestamp(dt: Optional[datetime], format_str: str = "%Y-%m-%d %H:%M:%S UTC") -> str:
    """
    Formats a datetime object to string.
    """
    if not dt:
        return "N/A"
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime(format_str)
