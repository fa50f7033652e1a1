# networth/utils/date_utils.py
"""
Date helpers shared by the price cache and the valuation service.

Cache entries are keyed by UTC calendar date, so every "today" in the engine
goes through utc_now() rather than the local clock.

Usage:
    from networth.utils.date_utils import date_key, trailing_days

    today = utc_now().date()
    key = date_key(today)                 # "2024-03-15"
    for day in trailing_days(today, 7):   # 2024-03-14 ... 2024-03-08
        ...
"""

from collections.abc import Iterator
from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """Aware UTC view of ts. Naive values are taken to already be UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def date_key(d: date) -> str:
    """
    Format a date as the cache key component.

    Example:
        >>> date_key(date(2024, 3, 5))
        '2024-03-05'
    """
    return d.isoformat()


def trailing_days(anchor: date, days: int) -> Iterator[date]:
    """
    Yield the `days` calendar days before anchor, most recent first.

    The anchor itself is not included.

    Example:
        >>> list(trailing_days(date(2024, 3, 5), 2))
        [date(2024, 3, 4), date(2024, 3, 3)]
    """
    for offset in range(1, days + 1):
        yield anchor - timedelta(days=offset)
