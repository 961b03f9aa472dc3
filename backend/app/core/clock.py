"""Hotel-local time. "Today" for every business rule is the hotel's today."""

from datetime import date, datetime
from functools import lru_cache
from zoneinfo import ZoneInfo

from app.core.config import settings


@lru_cache
def hotel_timezone() -> ZoneInfo:
    return ZoneInfo(settings.timezone)


def hotel_now() -> datetime:
    """Current time in the hotel's timezone (timezone-aware)."""
    return datetime.now(hotel_timezone())


def hotel_today() -> date:
    return hotel_now().date()
