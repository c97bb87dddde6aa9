"""
Tests for alpha_ledger/models/portfolio.py.

What we test
------------
normalize_code():
  - Appends .TW when there is no suffix; upper-cases; keeps existing suffix.
  - Empty input raises ValueError.

PositionRecord:
  - Positive price and quantity enforced.
  - cost_basis = entry_price * quantity.
  - from_row maps store columns and stringifies the id.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from alpha_ledger.models.portfolio import PositionRecord, normalize_code


class TestNormalizeCode:
    @pytest.mark.parametrize(
        "raw, expected",
        [("2330", "2330.TW"), (" 2330 ", "2330.TW"), ("6488.two", "6488.TWO"), ("2330.TW", "2330.TW")],
    )
    def test_normalize(self, raw, expected):
        assert normalize_code(raw) == expected

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            normalize_code("   ")


class TestPositionRecord:
    def test_cost_basis(self):
        pos = PositionRecord(code="2330.TW", entry_price=612.5, quantity=2000)
        assert pos.cost_basis == pytest.approx(1_225_000.0)

    @pytest.mark.parametrize("price, qty", [(0, 1), (-1, 1), (10, 0), (10, -5)])
    def test_non_positive_rejected(self, price, qty):
        with pytest.raises(ValidationError):
            PositionRecord(code="2330.TW", entry_price=price, quantity=qty)

    def test_from_row(self):
        pos = PositionRecord.from_row(
            {
                "id": 42,
                "stock_code": "2454.TW",
                "stock_name": "聯發科",
                "buy_price": "1200.5",
                "quantity": 1000,
                "status": "holding",
                "created_at": "2026-02-20T02:00:00Z",
            }
        )
        assert pos.id == "42"
        assert pos.code == "2454.TW"
        assert pos.name == "聯發科"
        assert pos.entry_price == 1200.5
        assert pos.quantity == 1000.0
        assert pos.opened_at == datetime(2026, 2, 20, 2, 0, tzinfo=timezone.utc)

    def test_from_row_missing_price_rejected(self):
        with pytest.raises(ValidationError):
            PositionRecord.from_row({"stock_code": "2330.TW", "buy_price": None, "quantity": 1})
