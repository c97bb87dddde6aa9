"""
Timestamp helpers shared by the models, the freshness resolver and the UI.

The store returns timestamps as ISO-8601 strings in several shapes
(``2026-02-24``, ``2026-02-24T15:00:00``, ``2026-02-24T15:00:00.123+00:00``,
``...Z``).  Everything is normalized to timezone-aware UTC datetimes here so
comparisons never mix naive and aware values.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def ensure_utc(ts: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a store timestamp into an aware UTC datetime.

    Accepts ``datetime``, ``date`` and ISO-8601 strings (``Z`` suffix
    allowed).  Returns ``None`` for ``None``, empty strings and anything
    unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        ts = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(ts)


def parse_date(value: Any) -> Optional[date]:
    """Parse a store date (or timestamp) into a ``date``."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    ts = parse_timestamp(value)
    return ts.date() if ts is not None else None


def hours_between(earlier: datetime, later: datetime) -> float:
    """Signed hours from ``earlier`` to ``later``."""
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds() / 3600.0
