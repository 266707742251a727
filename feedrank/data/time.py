"""Provide time runtime helpers."""

from __future__ import annotations

import math
from datetime import datetime, timezone

MS_PER_HOUR = 60 * 60 * 1000
MS_PER_DAY = 24 * MS_PER_HOUR


def now_ms() -> int:
    """Return current UTC timestamp in milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def to_ms(value: datetime | int | float | str | None, default: int | None = None) -> int | None:
    """Convert a datetime, epoch milliseconds or ISO string into epoch milliseconds."""
    if value is None:
        return default
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return default
        return int(value)
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return default
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return default
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp() * 1000)
    return default


def age_hours(created_at_ms: int, now_ms_value: int) -> float:
    """Return age in hours, never negative."""
    return max(now_ms_value - int(created_at_ms), 0) / MS_PER_HOUR


def age_days(created_at_ms: int, now_ms_value: int) -> float:
    """Return age in days, never negative."""
    return max(now_ms_value - int(created_at_ms), 0) / MS_PER_DAY
