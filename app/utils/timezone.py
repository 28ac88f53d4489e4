# FILE: app/utils/timezone.py
from __future__ import annotations

from datetime import datetime, date, timedelta
from zoneinfo import ZoneInfo

from app.core.config import settings

LOCAL_TZ = ZoneInfo(settings.TIMEZONE)


def now_local() -> datetime:
    """
    Returns a *naive* datetime in the hospital's timezone.
    DateTime columns are naive, so the tzinfo is dropped.
    """
    return datetime.now(LOCAL_TZ).replace(tzinfo=None)


def today_local() -> date:
    return now_local().date()


def day_bounds(d: date) -> tuple[datetime, datetime]:
    """[start, next-day start) for filtering naive DateTime columns."""
    start = datetime(d.year, d.month, d.day)
    return start, start + timedelta(days=1)
