"""Time helpers. All stored instants are timezone-aware UTC."""

from collections.abc import Callable
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from tenderflow.config import settings

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_zone() -> ZoneInfo:
    """Zone used for calendar-day rules (standstill end, reminder offsets)."""
    return ZoneInfo(settings.timezone)


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
