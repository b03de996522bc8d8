"""
Time bucketing: maps timestamps to dashboard period keys.

    daily   → YYYY-MM-DD
    weekly  → YYYY-MM-DD of the Monday opening the ISO week
    monthly → YYYY-MM
"""

from datetime import date, datetime, timedelta
from enum import Enum


class Period(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


_LOOKBACK_DAYS = {
    Period.DAILY: 30,
    Period.WEEKLY: 90,
    Period.MONTHLY: 365,
}


def lookback_days(period: Period) -> int:
    """Size of the raw query window for a period."""
    return _LOOKBACK_DAYS[Period(period)]


def bucket_key(value: date | datetime, period: Period) -> str:
    period = Period(period)
    day = value.date() if isinstance(value, datetime) else value
    if period is Period.WEEKLY:
        # isoweekday(): Monday == 1 regardless of locale
        monday = day - timedelta(days=day.isoweekday() - 1)
        return monday.strftime("%Y-%m-%d")
    if period is Period.MONTHLY:
        return day.strftime("%Y-%m")
    return day.strftime("%Y-%m-%d")


def parse_point_date(raw: str | date | datetime | None) -> date | None:
    """Parse an analytics point date. Returns None when it cannot be read.

    Offsets are ignored: a point dated ``2024-03-10T23:30:00-05:00`` lands in
    the 10th, the day the upstream reported it for.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None
