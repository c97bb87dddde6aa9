"""
Plain-text formatters for CLI output.

All formatters accept engine / ranker objects and return multi-line strings
suitable for ``typer.echo()``.  No third-party dependencies.

Prices
------
Derived prices (targets, stops, entries) are shown with one decimal.
``parse_price()`` reads them back, so a formatted price round-trips to the
original value within 0.05.

Sync banner
-----------
Every listing starts with a banner stating the resolved as-of time::

  [FRESH] As of 2026-02-24 15:00 UTC (1.2h ago)
  [STALE] As of 2026-02-20 15:00 UTC (96.0h ago) -- analysis may be outdated
  [AGE UNKNOWN] No row timestamps -- showing fetch time
"""

from __future__ import annotations

import re
from typing import Optional

from alpha_ledger.governance.freshness import FreshnessResult, FreshnessStatus
from alpha_ledger.models.market import MarketRecord
from alpha_ledger.models.recommendation import Recommendation
from alpha_ledger.recommendations.ranker import DecisionMatrix, PositionDetail

_PRICE_RE = re.compile(r"[-+]?\d+(?:\.\d+)?")


# ── Prices ────────────────────────────────────────────────────────────────────


def format_price(value: Optional[float]) -> str:
    """One-decimal price string; ``"N/A"`` for None."""
    if value is None:
        return "N/A"
    return f"{value:.1f}"


def parse_price(text: str) -> Optional[float]:
    """Read back a price produced by ``format_price`` (extra text ignored)."""
    match = _PRICE_RE.search(text.replace(",", ""))
    return float(match.group(0)) if match else None


def format_pct(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    return f"{value:+.1f}%"


# ── Sync banner ───────────────────────────────────────────────────────────────


def format_sync_banner(freshness: FreshnessResult) -> str:
    """Return a one-line as-of indicator."""
    stamp = freshness.as_of.strftime("%Y-%m-%d %H:%M UTC")
    if freshness.status is FreshnessStatus.UNKNOWN:
        return f"  [AGE UNKNOWN] No row timestamps -- showing fetch time {stamp}"
    if freshness.status is FreshnessStatus.STALE:
        return (
            f"  [STALE] As of {stamp} ({freshness.age_hours:.1f}h ago) "
            "-- analysis may be outdated"
        )
    return f"  [FRESH] As of {stamp} ({freshness.age_hours:.1f}h ago)"


# ── Market signals ────────────────────────────────────────────────────────────


def format_signal_table(
    signals: list[tuple[MarketRecord, Recommendation]],
    freshness: Optional[FreshnessResult] = None,
    top_n: Optional[int] = None,
) -> str:
    """Banding signals, one row per instrument::

        Code       Name          Close  Score  Signal      Target    Stop
        -----------------------------------------------------------------
        2330.TW    台積電        1025.0   91.0  STRONG_BUY  1055.8   994.2
    """
    lines: list[str] = ["", "=== Market Signals ==="]
    if freshness is not None:
        lines.append(format_sync_banner(freshness))

    if not signals:
        lines.append("")
        lines.append("  (no analysis rows available)")
        return "\n".join(lines)

    rows = signals[:top_n] if top_n else signals
    header = (
        f"  {'Code':<10} {'Name':<12} {'Close':>8} {'Score':>6}  "
        f"{'Signal':<11} {'Target':>8} {'Stop':>8}"
    )
    lines.append("")
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for record, rec in rows:
        score = f"{record.ai_score:.1f}" if record.ai_score is not None else "--"
        lines.append(
            f"  {record.code:<10} {record.name[:12]:<12} "
            f"{format_price(record.close_price):>8} {score:>6}  "
            f"{rec.confidence_label:<11} {format_price(rec.exit_hint.price):>8} "
            f"{format_price(rec.stop_hint.price):>8}"
        )
    return "\n".join(lines)


def format_top_pick(matrix: DecisionMatrix) -> str:
    pick = matrix.top_pick
    if pick is None:
        return "  今日首選 / TOP PICK: (no data)"
    return (
        f"  今日首選 / TOP PICK: {pick.name} ({pick.code}) "
        f"score {pick.score:.1f} @ {format_price(pick.close_price)}"
    )


# ── Detail view ───────────────────────────────────────────────────────────────


def format_advice(record: MarketRecord, rec: Recommendation) -> str:
    """Multi-line detail card for one instrument."""
    lines = [
        "",
        f"=== {record.name} ({record.code}) ===",
        f"  Close:      {format_price(record.close_price)}",
        f"  AI score:   {record.ai_score if record.ai_score is not None else '--'}",
        f"  ROE:        {format_pct(record.roe)}",
        f"  Revenue YoY:{format_pct(record.revenue_yoy)}",
        f"  P/E:        {format_price(record.pe_ratio)}",
        "",
        f"  Action:     {rec.action.value} ({rec.confidence_label})",
    ]
    if rec.mode is not None:
        lines.append(f"  Mode:       {rec.mode.value}")
    lines.append(f"  Entry:      {rec.entry_hint.label} @ {format_price(rec.entry_hint.price)}")
    lines.append(f"  Exit:       {rec.exit_hint.label} @ {format_price(rec.exit_hint.price)}")
    lines.append(f"  Stop:       {rec.stop_hint.label} @ {format_price(rec.stop_hint.price)}")
    if rec.risk_flag is not None:
        lines.append(f"  Risk:       {rec.risk_flag.value}")
    lines.append(f"  Rationale:  {rec.rationale}")
    return "\n".join(lines)


# ── Portfolio ─────────────────────────────────────────────────────────────────


def _position_signal(detail: PositionDetail) -> str:
    if detail.recommendation is None:
        return "NO DATA"
    return detail.recommendation.confidence_label


def format_portfolio_table(matrix: DecisionMatrix) -> str:
    """Holdings with valuation, return and signal, followed by weak alerts."""
    lines: list[str] = ["", "=== My Portfolio ==="]
    if not matrix.positions:
        lines.append("")
        lines.append("  (no registered holdings)")
        return "\n".join(lines)

    header = (
        f"  {'ID':<8} {'Code':<10} {'Qty':>8} {'Entry':>8} {'Now':>8} "
        f"{'Return':>8} {'P/L':>12}  {'Signal':<10}"
    )
    lines.append("")
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for d in matrix.positions:
        pos = d.position
        lines.append(
            f"  {(pos.id or '')[:8]:<8} {pos.code:<10} {pos.quantity:>8.0f} "
            f"{format_price(pos.entry_price):>8} {format_price(d.current_price):>8} "
            f"{format_pct(d.return_pct):>8} {d.unrealized_pl:>12,.0f}  "
            f"{_position_signal(d):<10}"
        )
    lines.append("")
    lines.append(f"  Total cost: {matrix.total_cost:,.0f}   Unrealized P/L: {matrix.total_unrealized_pl:,.0f}")

    alerts = matrix.alerts
    lines.append("")
    lines.append("  持股警報 / PORTFOLIO ALERT")
    if not alerts:
        lines.append("    Status: Nominal. 目前庫存股評分均保持在優質區間。")
    for d in alerts:
        lines.append(
            f"    {d.position.name or d.position.code} ({d.position.code}): "
            f"評分轉弱 ({d.ai_score:.0f})，建議啟動停損程序。"
        )
    return "\n".join(lines)
