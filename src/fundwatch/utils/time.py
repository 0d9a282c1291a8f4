from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

MARKET_TZ = "Asia/Shanghai"

def utc_now() -> datetime:
    """Timezone-aware current UTC datetime."""
    return datetime.now(tz=timezone.utc)

# --- trading-day helpers ---

def market_day(now: datetime, tz_name: str = MARKET_TZ) -> date:
    """
    Calendar date of `now` in the reference zone, independent of the host zone.
    Naive datetimes are rejected because their day is ambiguous.
    """
    if now.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return now.astimezone(ZoneInfo(tz_name)).date()
