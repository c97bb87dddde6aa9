"""
Batch freshness: the authoritative "as-of" time for a fetched batch.

Resolution rule
---------------
    boundary = now + safety_boundary_hours   (default 1 h)

Walk the batch's ``updated_at`` timestamps.  A timestamp is accepted only if
it parses, is strictly after the running maximum and strictly before
``boundary``.  The as-of time is the accepted maximum; if nothing is
accepted it falls back to ``now``.  One future-dated row (clock skew, bad
insert) therefore cannot move the displayed sync time.

Status classification
---------------------
  "fresh"   — as-of age < stale_after_hours
  "stale"   — as-of age >= stale_after_hours
  "unknown" — no row carried a usable timestamp (as-of fell back to now)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Optional

from alpha_ledger.models.market import MarketRecord
from alpha_ledger.utils.time_utils import ensure_utc, hours_between, parse_timestamp, utcnow

DEFAULT_SAFETY_BOUNDARY = timedelta(hours=1)


class FreshnessStatus(str, Enum):
    """Classification of how current a batch is."""

    FRESH   = "fresh"
    STALE   = "stale"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FreshnessResult:
    """Freshness outcome for one fetched batch.

    Attributes:
        as_of:        Resolved as-of timestamp (UTC).
        checked_at:   The ``now`` used for resolution.
        from_data:    True if as_of came from a row, False if it fell back.
        age_hours:    Hours between as_of and checked_at.
        synced_today: as_of falls on the same UTC date as checked_at.
        status:       FreshnessStatus classification.
    """

    as_of:        datetime
    checked_at:   datetime
    from_data:    bool
    age_hours:    float
    synced_today: bool
    status:       FreshnessStatus


# ── Resolution ────────────────────────────────────────────────────────────────


def _max_accepted(
    timestamps: Iterable[Any],
    boundary: datetime,
) -> Optional[datetime]:
    running: Optional[datetime] = None
    for raw in timestamps:
        ts = parse_timestamp(raw)
        if ts is None:
            continue
        if ts >= boundary:
            continue
        if running is None or ts > running:
            running = ts
    return running


def resolve_as_of(
    timestamps: Iterable[Any],
    now: Optional[datetime] = None,
    safety_boundary: timedelta = DEFAULT_SAFETY_BOUNDARY,
) -> datetime:
    """Return the as-of time for a batch of row timestamps.

    Args:
        timestamps:      ``datetime`` values or ISO-8601 strings; ``None``
                         and unparseable values are ignored.
        now:             Reference time; defaults to the current UTC time.
        safety_boundary: How far past ``now`` a timestamp may be and still
                         be accepted (exclusive).

    Returns:
        Aware UTC datetime.
    """
    now = ensure_utc(now) if now is not None else utcnow()
    accepted = _max_accepted(timestamps, now + safety_boundary)
    return accepted if accepted is not None else now


def is_same_day(as_of: datetime, now: datetime) -> bool:
    return ensure_utc(as_of).date() == ensure_utc(now).date()


def age_hours(as_of: datetime, now: datetime) -> float:
    """Hours since ``as_of``; never negative."""
    return max(0.0, hours_between(as_of, now))


def check_batch_freshness(
    records: Iterable[MarketRecord],
    now: Optional[datetime] = None,
    safety_boundary_hours: float = 1.0,
    stale_after_hours: float = 24.0,
) -> FreshnessResult:
    """Resolve and classify the as-of time of a fetched market batch."""
    now = ensure_utc(now) if now is not None else utcnow()
    boundary = now + timedelta(hours=safety_boundary_hours)
    accepted = _max_accepted((r.updated_at for r in records), boundary)

    as_of = accepted if accepted is not None else now
    age = age_hours(as_of, now)
    if accepted is None:
        status = FreshnessStatus.UNKNOWN
    elif age >= stale_after_hours:
        status = FreshnessStatus.STALE
    else:
        status = FreshnessStatus.FRESH

    return FreshnessResult(
        as_of=as_of,
        checked_at=now,
        from_data=accepted is not None,
        age_hours=age,
        synced_today=is_same_day(as_of, now),
        status=status,
    )
