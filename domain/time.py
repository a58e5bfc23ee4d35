"""
Domain time utilities (pure).

Centralized timestamp validation and business-local clock helpers.

Behavior and error messages must remain consistent across the domain model:
persisted timestamps are UTC, while schedule slots are expressed in the
business's local wall-clock time.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces the requirement that persisted timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    """Default clock for services. Tests inject their own."""

    return datetime.now(timezone.utc)


def to_local(value: datetime, tz: ZoneInfo) -> datetime:
    """Convert a UTC timestamp to the business's local time."""

    require_utc_timestamp("value", value)
    return value.astimezone(tz)


def local_to_utc(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Interpret a local (date, wall-clock time) pair and return it in UTC."""

    return datetime.combine(day, at, tzinfo=tz).astimezone(timezone.utc)
