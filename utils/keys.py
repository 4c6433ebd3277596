"""Staff keys and period date keys used to group submissions."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional

_WS = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    return _WS.sub(" ", name.strip().lower())


def make_staff_key(a: str, b: str) -> str:
    """Return an order-independent key for a pair of staff members.

    >>> make_staff_key("Pat  Smith", "alex jones")
    'alex jones__pat smith'
    """

    x, y = sorted((normalize_name(a), normalize_name(b)))
    return f"{x}__{y}"


def _as_date(d: date | datetime | None) -> date:
    if d is None:
        return date.today()
    if isinstance(d, datetime):
        return d.date()
    return d


def date_to_iso(d: date | datetime | None = None) -> str:
    return _as_date(d).isoformat()


def iso_week_year(d: date | datetime | None = None) -> tuple[int, int]:
    """ISO-8601 ``(year, week)``; weeks start on Monday and the Thursday decides the year."""

    iso = _as_date(d).isocalendar()
    return iso[0], iso[1]


def date_key_weekly(d: date | datetime | None = None) -> str:
    year, week = iso_week_year(d)
    return f"{year}-W{week:02d}"


def date_key_for(period: str, d: date | datetime | None = None) -> str:
    if period == "weekly":
        return date_key_weekly(d)
    return date_to_iso(d)


def parse_staff_param(raw: Optional[str]) -> tuple[str, str]:
    """Split a ``?s=Alice,Bob`` deep-link value into two names.

    Missing names come back as empty strings.
    """

    if not raw:
        return "", ""
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    a = parts[0] if len(parts) > 0 else ""
    b = parts[1] if len(parts) > 1 else ""
    return a, b


__all__ = [
    "normalize_name",
    "make_staff_key",
    "date_to_iso",
    "iso_week_year",
    "date_key_weekly",
    "date_key_for",
    "parse_staff_param",
]
