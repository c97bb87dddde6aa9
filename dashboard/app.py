"""
Alpha Ledger — Streamlit Dashboard
==================================

Interactive front end over the same engine the CLI uses.  Reads from the
hosted store and the AI service; it never writes analysis data.

App structure (4 tabs)
----------------------
  1. Market Signals — Top pick plus banding label for every instrument.
  2. My Portfolio   — Holdings with return, P/L, signal and weak alerts;
                      add / remove holdings (sign-in required).
  3. Detail         — Weighted short/long plan for one instrument, with an
                      optional AI deep-dive.
  4. AI Report      — Market briefing and web-grounded daily / weekly
                      intelligence report with source links.

Provenance surfacing
--------------------
Every tab shows a colour-coded freshness badge for the analysis batch:
  - FRESH   (green)  — batch as-of time within ``stale_after_hours``.
  - STALE   (orange) — older; signals may not reflect the current market.
  - UNKNOWN (grey)   — rows carry no usable timestamp; showing fetch time.

Session
-------
Sign-in lives in the sidebar.  Every rerun counts as activity and restarts
the idle countdown; after ``idle_timeout_minutes`` without interaction the
session is terminated and the next rerun shows the signed-out view.

Usage
-----
    pip install -e ".[dashboard]"
    streamlit run dashboard/app.py
"""

from __future__ import annotations

import sys
from pathlib import Path

# ── Ensure project root is importable ────────────────────────────────────────
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import streamlit as st

# ── Must be the first Streamlit call ─────────────────────────────────────────
st.set_page_config(
    page_title="Alpha Ledger",
    layout="wide",
    initial_sidebar_state="expanded",
)

from dashboard.data_loader import (
    get_ai_client,
    get_config,
    get_store,
    load_state,
    portfolio_frame,
    signals_frame,
)
from alpha_ledger.governance.freshness import FreshnessStatus
from alpha_ledger.ingestion.store_client import StoreError
from alpha_ledger.models.recommendation import Strategy, TradeMode
from alpha_ledger.recommendations.engine import RecommendationEngine
from alpha_ledger.reporting.formatters import format_price
from alpha_ledger.reporting.prompts import (
    ReportKind,
    build_intelligence_report_prompt,
    build_market_briefing_prompt,
    build_stock_analysis_prompt,
)
from alpha_ledger.session import SessionManager
from alpha_ledger.utils.logging import configure_logging

config = get_config()
configure_logging(config.logging)
store = get_store()


# ── Session ───────────────────────────────────────────────────────────────────

def _on_signed_out() -> None:
    st.cache_data.clear()


if "session_manager" not in st.session_state:
    st.session_state.session_manager = SessionManager(
        auth=store,
        idle_timeout_seconds=config.session.idle_timeout_minutes * 60,
        on_signed_out=_on_signed_out,
    )
manager: SessionManager = st.session_state.session_manager
manager.touch()
session = manager.session


# ── Sidebar ───────────────────────────────────────────────────────────────────

with st.sidebar:
    st.title("Alpha Ledger")
    st.caption("AI 選股儀表板")
    st.divider()

    if not store.is_configured:
        st.error("Store not configured. Set ALPHA_LEDGER_SUPABASE_URL and ALPHA_LEDGER_SUPABASE_KEY.")

    if session.is_authenticated:
        st.success(f"已登入：{session.email}")
        if st.button("登出"):
            try:
                manager.sign_out()
            except StoreError as exc:
                st.warning(f"遠端登出失敗：{exc}")
            st.rerun()
    else:
        with st.form("login"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            col_in, col_up = st.columns(2)
            do_sign_in = col_in.form_submit_button("登入")
            do_sign_up = col_up.form_submit_button("註冊")
        if do_sign_in:
            try:
                manager.sign_in(email, password)
                st.rerun()
            except StoreError as exc:
                st.error(f"登入失敗：{exc}")
        elif do_sign_up:
            try:
                created = manager.sign_up(email, password)
            except StoreError as exc:
                st.error(f"註冊失敗：{exc}")
            else:
                if created.is_authenticated:
                    st.rerun()
                st.info("註冊成功，請至信箱完成驗證後登入。")

    st.divider()
    if st.button("重新整理", help="Force a fresh store fetch."):
        st.cache_data.clear()
        st.rerun()
    st.caption(f"Idle logout after {config.session.idle_timeout_minutes:g} min")


# ── Load ──────────────────────────────────────────────────────────────────────

state = load_state(session.user_id, session.email, session.access_token)

if not state.ok:
    st.error(state.error)
    if config.debug and state.detail:
        st.caption(state.detail)
    st.stop()

matrix = state.matrix
records = [record for record, _ in matrix.signals]
engine = RecommendationEngine()


def _freshness_badge() -> None:
    fr = state.freshness
    stamp = fr.as_of.strftime("%Y-%m-%d %H:%M UTC")
    if fr.status is FreshnessStatus.UNKNOWN:
        st.info(f"AGE UNKNOWN — showing fetch time {stamp}")
    elif fr.status is FreshnessStatus.STALE:
        st.warning(f"STALE — as of {stamp} ({fr.age_hours:.1f}h ago); signals may be outdated")
    else:
        sync = "今日已同步" if fr.synced_today else "非今日數據"
        st.success(f"FRESH — as of {stamp} ({fr.age_hours:.1f}h ago) · {sync}")


def _render_ai(report) -> None:
    if report.ok:
        st.markdown(report.text)
    else:
        st.error(report.text)
    if report.links:
        st.caption("Sources")
        for link in report.links:
            st.markdown(f"- [{link.title}]({link.uri})")


tab_signals, tab_portfolio, tab_detail, tab_ai = st.tabs(
    ["Market Signals", "My Portfolio", "Detail", "AI Report"]
)


# ══════════════════════════════════════════════════════════════════════════════
# Tab 1 — Market Signals
# ══════════════════════════════════════════════════════════════════════════════

with tab_signals:
    st.header("市場訊號")
    _freshness_badge()

    pick = matrix.top_pick
    if pick is None:
        st.info("尚無分析資料。")
    else:
        col1, col2, col3 = st.columns(3)
        col1.metric("今日首選", f"{pick.name} ({pick.code})")
        col2.metric("AI 分數", f"{pick.score:.1f}")
        col3.metric("收盤價", format_price(pick.close_price))

        st.dataframe(signals_frame(matrix.signals), use_container_width=True, hide_index=True)


# ══════════════════════════════════════════════════════════════════════════════
# Tab 2 — My Portfolio
# ══════════════════════════════════════════════════════════════════════════════

with tab_portfolio:
    st.header("我的持股")
    _freshness_badge()

    if not session.is_authenticated:
        st.info("請先登入以檢視持股。")
    else:
        if matrix.positions:
            col1, col2 = st.columns(2)
            col1.metric("總成本", f"{matrix.total_cost:,.0f}")
            col2.metric("未實現損益", f"{matrix.total_unrealized_pl:,.0f}")
            st.dataframe(portfolio_frame(matrix), use_container_width=True, hide_index=True)
        else:
            st.info("尚未登錄任何持股。")

        st.subheader("持股警報")
        if not matrix.alerts:
            st.success("Status: Nominal. 目前庫存股評分均保持在優質區間。")
        for d in matrix.alerts:
            st.warning(
                f"{d.position.name or d.position.code} ({d.position.code})："
                f"評分轉弱 ({d.ai_score:.0f})，建議啟動停損程序。"
            )

        st.subheader("新增持股")
        with st.form("add_position", clear_on_submit=True):
            c1, c2, c3, c4 = st.columns(4)
            new_code = c1.text_input("代號", placeholder="2330")
            new_name = c2.text_input("名稱")
            new_price = c3.number_input("成本價", min_value=0.0, step=0.5)
            new_qty = c4.number_input("股數", min_value=0.0, step=1000.0)
            submitted = st.form_submit_button("登錄")
        if submitted:
            try:
                store.add_position(session, new_code, new_name, new_price, new_qty)
            except (StoreError, ValueError) as exc:
                st.error(f"登錄失敗：{exc}")
            else:
                st.cache_data.clear()
                st.rerun()

        if matrix.positions:
            st.subheader("刪除持股")
            labels = {
                f"{d.position.code} x{d.position.quantity:g} @ {d.position.entry_price:g}": d.position.id
                for d in matrix.positions
                if d.position.id
            }
            choice = st.selectbox("持股", list(labels.keys()))
            if st.button("刪除") and choice:
                try:
                    store.delete_position(session, labels[choice])
                except StoreError as exc:
                    st.error(f"刪除失敗：{exc}")
                else:
                    st.cache_data.clear()
                    st.rerun()


# ══════════════════════════════════════════════════════════════════════════════
# Tab 3 — Detail
# ══════════════════════════════════════════════════════════════════════════════

with tab_detail:
    st.header("個股策略")
    _freshness_badge()

    if not records:
        st.info("尚無分析資料。")
    else:
        by_label = {f"{r.code} {r.name}": r for r in records}
        chosen = st.selectbox("標的", list(by_label.keys()))
        mode_choice = st.radio("模式", ["自動", "當沖 (short)", "波段 (long)"], horizontal=True)
        forced = {"當沖 (short)": TradeMode.SHORT, "波段 (long)": TradeMode.LONG}.get(mode_choice)

        record = by_label[chosen]
        rec = engine.recommend(record, strategy=Strategy.WEIGHTED, forced_mode=forced)

        col1, col2, col3, col4 = st.columns(4)
        col1.metric("建議", rec.confidence_label)
        col2.metric(rec.entry_hint.label, format_price(rec.entry_hint.price))
        col3.metric(rec.exit_hint.label, format_price(rec.exit_hint.price))
        col4.metric(rec.stop_hint.label, format_price(rec.stop_hint.price))
        if rec.risk_flag is not None:
            st.warning(f"風險：{rec.risk_flag.value}")
        st.write(rec.rationale)

        if st.button("AI 深度分析"):
            with st.spinner("AI 分析中..."):
                _render_ai(get_ai_client().generate(build_stock_analysis_prompt(record, rec)))


# ══════════════════════════════════════════════════════════════════════════════
# Tab 4 — AI Report
# ══════════════════════════════════════════════════════════════════════════════

with tab_ai:
    st.header("AI 情報")

    col1, col2 = st.columns(2)
    with col1:
        if st.button("市場簡報"):
            prompt = build_market_briefing_prompt(records, limit=config.ai.briefing_size)
            with st.spinner("AI 分析中..."):
                _render_ai(get_ai_client().generate(prompt))
    with col2:
        kind = st.selectbox("報告類型", [ReportKind.DAILY, ReportKind.WEEKLY], format_func=lambda k: k.value)
        if st.button("產生情報報告"):
            codes = [d.position.code for d in matrix.positions]
            prompt = build_intelligence_report_prompt(kind, codes)
            with st.spinner(f"{config.ai.report_model} 搜尋中..."):
                _render_ai(
                    get_ai_client().generate(prompt, use_search=True, model=config.ai.report_model)
                )
