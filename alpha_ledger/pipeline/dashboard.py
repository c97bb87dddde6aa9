"""
Dashboard load: fetch market analysis and portfolio together, then derive.

The two store queries are independent, so they run on a two-worker pool and
are joined before anything downstream runs.  If either fails, the whole load
fails: the state carries the generic sync error and no partial data.  There
is no retry and no cancellation; the HTTP client timeout bounds each call.

Downstream derivation (decision matrix, batch freshness) is pure and runs
on the calling thread.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from alpha_ledger.config import FreshnessConfig
from alpha_ledger.governance.freshness import FreshnessResult, check_batch_freshness
from alpha_ledger.ingestion.store_client import StoreClient, StoreError
from alpha_ledger.models.market import MarketRecord
from alpha_ledger.models.portfolio import PositionRecord
from alpha_ledger.recommendations.ranker import DecisionMatrix, build_decision_matrix
from alpha_ledger.session import Session
from alpha_ledger.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

SYNC_FAILED_MESSAGE = "數據同步失敗"


@dataclass
class DashboardState:
    """Result of one dashboard load.

    Attributes:
        records:   Market records (empty on error).
        positions: Active holdings (empty on error).
        loaded_at: When the load finished (UTC).
        freshness: Batch as-of resolution; None on error.
        matrix:    Decision matrix; None on error.
        error:     User-facing error string, or None on success.
        detail:    Underlying error message for logs / debug display.
    """

    records:   list[MarketRecord] = field(default_factory=list)
    positions: list[PositionRecord] = field(default_factory=list)
    loaded_at: Optional[datetime] = None
    freshness: Optional[FreshnessResult] = None
    matrix:    Optional[DecisionMatrix] = None
    error:     Optional[str] = None
    detail:    Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def load_dashboard(
    store: StoreClient,
    session: Optional[Session] = None,
    freshness: Optional[FreshnessConfig] = None,
    now: Optional[datetime] = None,
) -> DashboardState:
    """Fetch both datasets concurrently and derive the dashboard state.

    Args:
        store:     Store client.
        session:   Signed-in session (portfolio rows are per-user).
        freshness: Freshness thresholds; defaults to ``FreshnessConfig()``.
        now:       Reference time for freshness; defaults to current UTC.

    Returns:
        DashboardState; check ``state.ok`` before using the data.
    """
    freshness = freshness or FreshnessConfig()

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="dashboard-fetch") as pool:
        market_future = pool.submit(store.fetch_daily_analysis, session)
        portfolio_future = pool.submit(store.fetch_portfolio, session)
        try:
            records = market_future.result()
            positions = portfolio_future.result()
        except StoreError as exc:
            logger.error("Dashboard sync failed: %s", exc)
            return DashboardState(loaded_at=utcnow(), error=SYNC_FAILED_MESSAGE, detail=str(exc))

    now = now or utcnow()
    return DashboardState(
        records=records,
        positions=positions,
        loaded_at=now,
        freshness=check_batch_freshness(
            records,
            now=now,
            safety_boundary_hours=freshness.safety_boundary_hours,
            stale_after_hours=freshness.stale_after_hours,
        ),
        matrix=build_decision_matrix(records, positions),
    )
