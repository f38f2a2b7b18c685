"""Date manipulation utilities"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def local_today(tz_name: str = "UTC") -> date:
    """Current calendar date in the given IANA timezone"""
    tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    return datetime.now(tz).date()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
