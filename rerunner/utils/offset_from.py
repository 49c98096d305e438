"""
Time offsets relative to "now", e.g. offset_from_now(-30, "days").
"""
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

TimeUnit = Literal["seconds", "minutes", "hours", "days", "weeks"]

_UNIT_SECONDS = {
    "seconds": 1,
    "minutes": 60,
    "hours": 60 * 60,
    "days": 24 * 60 * 60,
    "weeks": 7 * 24 * 60 * 60,
}


def offset_from(base: datetime, amount: float, unit: TimeUnit) -> datetime:
    if unit not in _UNIT_SECONDS:
        raise ValueError(f"Unsupported time unit: {unit}")
    return base + timedelta(seconds=amount * _UNIT_SECONDS[unit])


def offset_from_now(amount: float, unit: TimeUnit, now: Optional[datetime] = None) -> datetime:
    """Return an aware UTC datetime ``amount`` units away from now (negative = past)."""
    return offset_from(now or datetime.now(timezone.utc), amount, unit)
