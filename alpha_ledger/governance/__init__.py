"""
Data governance checks.

freshness : resolve_as_of() + check_batch_freshness() — the authoritative
            sync time for a fetched batch, guarded against future-dated rows.
"""

from alpha_ledger.governance.freshness import (
    FreshnessResult,
    FreshnessStatus,
    age_hours,
    check_batch_freshness,
    is_same_day,
    resolve_as_of,
)

__all__ = [
    "FreshnessResult",
    "FreshnessStatus",
    "age_hours",
    "check_batch_freshness",
    "is_same_day",
    "resolve_as_of",
]
