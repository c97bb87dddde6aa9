"""
Tests for alpha_ledger/reporting/prompts.py.

What we test
------------
  - Market briefing lists at most 5 records, highest score first.
  - briefing limit is clamped to [1, 5].
  - Empty record list still produces a prompt.
  - Stock analysis prompt embeds the engine's plan and risk flag.
  - Intelligence report names the holdings and switches scope by kind.
"""

from __future__ import annotations

from alpha_ledger.models.market import MarketRecord
from alpha_ledger.models.recommendation import Strategy
from alpha_ledger.recommendations.engine import recommend
from alpha_ledger.reporting.prompts import (
    ReportKind,
    build_intelligence_report_prompt,
    build_market_briefing_prompt,
    build_stock_analysis_prompt,
    summarize_record,
)


def _record(code: str, score: float | None, **kw) -> MarketRecord:
    return MarketRecord(code=code, name=f"N{code}", close_price=100.0, ai_score=score, **kw)


class TestMarketBriefing:
    def test_top_five_by_score(self):
        records = [_record(f"{i}.TW", float(i * 10)) for i in range(1, 8)]
        prompt = build_market_briefing_prompt(records)
        assert "1. N7.TW" in prompt
        assert "5. N3.TW" in prompt
        assert "N2.TW" not in prompt

    def test_limit_is_clamped(self):
        records = [_record(f"{i}.TW", float(i)) for i in range(1, 8)]
        assert "2. N" not in build_market_briefing_prompt(records, limit=0)
        assert "6. N" not in build_market_briefing_prompt(records, limit=10)

    def test_empty(self):
        assert "今日無分析資料" in build_market_briefing_prompt([])


class TestStockAnalysis:
    def test_includes_plan(self):
        stock = _record("2330.TW", 90.0, volume_ratio=3.0, ai_comment="法說會優於預期")
        advice = recommend(stock, strategy=Strategy.WEIGHTED)
        prompt = build_stock_analysis_prompt(stock, advice)
        assert "系統量化建議" in prompt
        assert advice.confidence_label in prompt
        assert "volume surge" in prompt
        assert "法說會優於預期" in prompt

    def test_without_plan(self):
        prompt = build_stock_analysis_prompt(_record("2330.TW", None))
        assert "系統量化建議" not in prompt
        assert "AI 評分 無" in summarize_record(_record("2330.TW", None))


class TestIntelligenceReport:
    def test_daily_with_holdings(self):
        prompt = build_intelligence_report_prompt(ReportKind.DAILY, ["2330.TW", "2454.TW"])
        assert "2330.TW、2454.TW" in prompt
        assert "今日市場動態" in prompt

    def test_weekly_without_holdings(self):
        prompt = build_intelligence_report_prompt(ReportKind.WEEKLY, [])
        assert "尚無持股" in prompt
        assert "本週市場總結" in prompt
