"""
Tests for alpha_ledger/models/market.py.

What we test
------------
to_float():
  - None, "", bools, junk strings, NaN and inf become None.
  - Numeric strings with thousands separators and % parse.

MarketRecord:
  - Frozen; ai_score clamped to [0, 100]; NaN / inf score -> None.
  - Requires a code and a positive close.

MarketRecord.from_row():
  - Column aliases (stock_code, vol_ratio, score_short, trade_tp1, ...).
  - Missing numerics become None (optional) or 0 (momentum inputs).
  - Non-positive precomputed stop / target become None.
  - Timestamps parse to aware UTC.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from alpha_ledger.models.market import MarketRecord, to_float, to_text


class TestToFloat:
    @pytest.mark.parametrize("value", [None, "", "  ", True, False, "abc", math.nan, math.inf, [1]])
    def test_missing_encodings_become_none(self, value):
        assert to_float(value) is None

    @pytest.mark.parametrize(
        "value, expected",
        [(1, 1.0), (2.5, 2.5), ("3.5", 3.5), ("1,234.5", 1234.5), ("12.5%", 12.5), (" -4 ", -4.0)],
    )
    def test_numeric_values(self, value, expected):
        assert to_float(value) == pytest.approx(expected)

    def test_to_text(self):
        assert to_text("  台積電 ") == "台積電"
        assert to_text("") is None
        assert to_text(None) is None


class TestMarketRecord:
    def test_frozen(self):
        rec = MarketRecord(code="2330.TW", close_price=100.0)
        with pytest.raises(ValidationError):
            rec.close_price = 200.0  # type: ignore[misc]

    def test_score_is_clamped(self):
        assert MarketRecord(code="A", close_price=1.0, ai_score=120.0).ai_score == 100.0
        assert MarketRecord(code="A", close_price=1.0, ai_score=-3.0).ai_score == 0.0

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_score_is_missing(self, value):
        rec = MarketRecord(code="A", close_price=1.0, ai_score=value)
        assert rec.ai_score is None
        assert rec.score == 0.0

    def test_missing_score_property(self):
        rec = MarketRecord(code="A", close_price=1.0)
        assert rec.ai_score is None
        assert rec.score == 0.0

    def test_requires_positive_close(self):
        with pytest.raises(ValidationError):
            MarketRecord(code="A", close_price=0.0)

    def test_requires_code(self):
        with pytest.raises(ValidationError):
            MarketRecord(code="", close_price=1.0)


class TestFromRow:
    def test_full_row(self, sample_row):
        rec = MarketRecord.from_row(sample_row)
        assert rec.code == "2330.TW"
        assert rec.name == "台積電"
        assert rec.close_price == 1025.0
        assert rec.ai_score == 91.0
        assert rec.roe == 28.5
        assert rec.revenue_yoy == pytest.approx(32.1)
        assert rec.volume_ratio == pytest.approx(1.6)
        assert rec.short_term_score == 70.0
        assert rec.long_term_score == 82.0
        assert rec.target_price == 1100.0
        assert rec.analysis_date == date(2026, 2, 24)
        assert rec.updated_at == datetime(2026, 2, 24, 7, 30, tzinfo=timezone.utc)
        assert rec.technical_signal == "多頭排列"
        assert rec.ai_comment == "先進製程需求強勁"

    def test_missing_numerics(self, sample_row):
        rec = MarketRecord.from_row(sample_row)
        assert rec.pe_ratio is None
        assert rec.volatility == 0.0

    def test_zero_stop_becomes_none(self, sample_row):
        assert MarketRecord.from_row(sample_row).stop_price is None

    def test_negative_momentum_is_floored(self):
        rec = MarketRecord.from_row(
            {"stock_code": "A", "close_price": 10, "vol_ratio": -1, "volatility": "-2"}
        )
        assert rec.volume_ratio == 0.0
        assert rec.volatility == 0.0

    def test_alias_fallbacks(self):
        rec = MarketRecord.from_row(
            {"code": "B.TW", "close": "50", "revenue_growth": "8%", "created_at": "2026-02-23T01:00:00+08:00"}
        )
        assert rec.code == "B.TW"
        assert rec.close_price == 50.0
        assert rec.revenue_yoy == 8.0
        assert rec.updated_at == datetime(2026, 2, 22, 17, 0, tzinfo=timezone.utc)

    def test_row_without_close_is_rejected(self):
        with pytest.raises(ValidationError):
            MarketRecord.from_row({"stock_code": "A", "close_price": None})

    def test_row_without_code_is_rejected(self):
        with pytest.raises(ValidationError):
            MarketRecord.from_row({"close_price": 10})
