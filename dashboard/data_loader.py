"""
Dashboard data loader.

Store fetches are decorated with ``@st.cache_data`` so Streamlit only hits
the store when the TTL lapses or the user presses Refresh, not on every
widget interaction.  Clients are built once per process with
``@st.cache_resource``.

Frame builders turn engine output into ``pandas.DataFrame`` tables for
``st.dataframe``; they are plain functions and work outside Streamlit.
"""

from __future__ import annotations

from typing import Optional

import pandas as pd

from alpha_ledger.config import AppConfig, load_config
from alpha_ledger.ingestion.ai_client import AiClient
from alpha_ledger.ingestion.store_client import StoreClient
from alpha_ledger.models.market import MarketRecord
from alpha_ledger.models.recommendation import Recommendation
from alpha_ledger.pipeline.dashboard import DashboardState, load_dashboard
from alpha_ledger.recommendations.ranker import DecisionMatrix
from alpha_ledger.session import Session

try:
    import streamlit as st
    _CACHE = st.cache_data
    _RESOURCE = st.cache_resource
except ImportError:
    # Allow importing outside Streamlit context (e.g. tests).
    def _CACHE(fn=None, **_kwargs):  # type: ignore[misc]
        return fn if fn is not None else (lambda f: f)

    _RESOURCE = _CACHE  # type: ignore[assignment]


# ── Resources ────────────────────────────────────────────────────────────────

@_RESOURCE
def get_config() -> AppConfig:
    return load_config()


@_RESOURCE
def get_store() -> StoreClient:
    return StoreClient.from_config(get_config().store)


@_RESOURCE
def get_ai_client() -> AiClient:
    return AiClient.from_config(get_config().ai)


# ── Loaders ──────────────────────────────────────────────────────────────────

@_CACHE(ttl=300, show_spinner="同步市場數據中...")
def load_state(user_id: Optional[str], email: Optional[str], access_token: Optional[str]) -> DashboardState:
    """Fetch analysis + portfolio for the given session.

    Keyed on the session fields so a sign-in or sign-out forces a reload.
    TTL: 5 minutes.
    """
    session = Session(user_id=user_id, email=email, access_token=access_token)
    return load_dashboard(get_store(), session, freshness=get_config().freshness)


# ── Frame builders ───────────────────────────────────────────────────────────

def signals_frame(signals: list[tuple[MarketRecord, Recommendation]]) -> pd.DataFrame:
    """One row per instrument: score, price, banding label and action."""
    rows = []
    for record, rec in signals:
        rows.append(
            {
                "代號":     record.code,
                "名稱":     record.name or "",
                "AI 分數":  record.score,
                "收盤價":   record.close_price,
                "ROE":      record.roe,
                "營收 YoY": record.revenue_yoy,
                "本益比":   record.pe_ratio,
                "訊號":     rec.confidence_label,
                "動作":     rec.action.value,
                "日期":     record.analysis_date,
            }
        )
    return pd.DataFrame(rows)


def portfolio_frame(matrix: DecisionMatrix) -> pd.DataFrame:
    """One row per holding with return and unrealized P/L."""
    rows = []
    for detail in matrix.positions:
        pos = detail.position
        rows.append(
            {
                "id":       pos.id,
                "代號":     pos.code,
                "名稱":     pos.name or "",
                "成本":     pos.entry_price,
                "股數":     pos.quantity,
                "現價":     detail.current_price,
                "報酬率%":  round(detail.return_pct, 2),
                "未實現損益": round(detail.unrealized_pl, 0),
                "AI 分數":  detail.ai_score,
                "訊號":     detail.recommendation.confidence_label if detail.recommendation else "",
                "警示":     "弱勢" if detail.is_weak else "",
            }
        )
    return pd.DataFrame(rows)
