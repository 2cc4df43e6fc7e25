"""IST date helpers. The platform only operates in India, so all delivery
date logic runs on the Asia/Kolkata wall clock."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from giftscart.config import Config

IST_OFFSET = timedelta(hours=5, minutes=30)

try:
    LOCAL_TZ = ZoneInfo(Config.DEFAULT_TIMEZONE)
except ZoneInfoNotFoundError:
    LOCAL_TZ = timezone(IST_OFFSET, "IST")


def now_ist(now: Optional[datetime] = None) -> datetime:
    """Current time on the IST wall clock. ``now`` may be naive UTC or aware."""
    if now is None:
        now = datetime.now(timezone.utc)
    return to_utc(now).astimezone(LOCAL_TZ)


def today_ist(now: Optional[datetime] = None) -> date:
    return now_ist(now).date()


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date(value: Any) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (or a full ISO timestamp) into a calendar date."""
    if not isinstance(value, str) or not value:
        return None
    value = value.strip()
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def parse_hhmm(value: str) -> Optional[int]:
    """Minutes since midnight for an ``HH:MM`` string."""
    try:
        hours, minutes = (int(part) for part in value.split(":", 1))
    except (AttributeError, ValueError):
        return None
    if not 0 <= minutes < 60:
        return None
    total = hours * 60 + minutes
    if not 0 <= total < 24 * 60:
        return None
    return total
