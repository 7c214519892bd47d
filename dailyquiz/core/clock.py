from datetime import datetime, timezone
from typing import Optional


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to an aware UTC value (SQLite hands back naive ones)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SystemClock:
    """Wall clock in UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at a given instant, for jobs replayed against fixed dates and tests"""

    def __init__(self, instant: datetime):
        self.instant = as_utc(instant)

    def now(self) -> datetime:
        return self.instant


def isoformat_z(value: datetime) -> str:
    """UTC timestamp with millisecond precision and a Z suffix, e.g. 2025-12-13T22:00:00.000Z"""
    value = as_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
