"""Timestamp helpers shared by the submissions query and the runner."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional


_LOCAL_TZ = datetime.now().astimezone().tzinfo or timezone.utc


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_datetime(value: Any) -> Optional[datetime]:
    """Best-effort conversion to an aware ``datetime`` in the local timezone."""

    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        for candidate in (_try_isoformat, _try_datetime_from_formats):
            dt = candidate(text)
            if dt is not None:
                break
        else:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=_LOCAL_TZ)
    return dt.astimezone(_LOCAL_TZ)


def _try_isoformat(value: str) -> Optional[datetime]:
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except ValueError:
        return None


_KNOWN_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
)


def _try_datetime_from_formats(value: str) -> Optional[datetime]:
    for fmt in _KNOWN_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def to_datetime(value: Any) -> Optional[datetime]:
    """Public wrapper exposing the internal conversion helper.

    Date-only strings such as ``"2025-09-18"`` resolve to local midnight.
    """

    return _coerce_datetime(value)


def to_naive_utc(value: datetime) -> datetime:
    """Convert ``value`` to the naive UTC form stored in SQLite columns."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=_LOCAL_TZ)
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_today(now: Optional[datetime] = None) -> datetime:
    ref = _coerce_datetime(now) if now is not None else None
    if ref is None:
        ref = datetime.now(tz=_LOCAL_TZ)
    return ref.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(now: Optional[datetime] = None) -> datetime:
    """Local midnight of the Monday starting the week containing ``now``."""

    today = start_of_today(now)
    return today - timedelta(days=today.weekday())


def today_range(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    start = start_of_today(now)
    return start, start + timedelta(days=1)


def week_range(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    start = start_of_week(now)
    return start, start + timedelta(days=7)


__all__ = [
    "now_utc",
    "to_datetime",
    "to_naive_utc",
    "start_of_today",
    "start_of_week",
    "today_range",
    "week_range",
]
