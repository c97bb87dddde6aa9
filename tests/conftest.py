"""
Shared pytest fixtures for the Alpha Ledger test suite.

Provides:
  - ``fixed_now``: a fixed aware UTC reference time.
  - ``fake_timer``: a drop-in for ``threading.Timer`` that never starts a
    thread; tests fire it manually with ``trigger()``.
  - ``sample_row``: a raw ``daily_analysis`` row as the store returns it.

Domain-object factories live next to the tests that use them
(``_record()``, ``_position()``), so each module reads on its own.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import pytest


class FakeTimer:
    """Records start / cancel calls; fire manually with ``trigger()``."""

    instances: list["FakeTimer"] = []

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def trigger(self) -> None:
        if not self.cancelled:
            self.function()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 2, 24, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fake_timer() -> type[FakeTimer]:
    FakeTimer.instances = []
    return FakeTimer


@pytest.fixture
def sample_row() -> dict[str, Any]:
    """A ``daily_analysis`` row with the loose typing the store produces."""
    return {
        "id": 17,
        "stock_code": "2330.TW",
        "stock_name": "台積電",
        "close_price": "1025.0",
        "ai_score": 91,
        "roe": "28.5",
        "revenue_yoy": 32.1,
        "pe_ratio": None,
        "volume": 35_000_000,
        "vol_ratio": 1.6,
        "volatility": "",
        "score_short": 70,
        "score_long": 82,
        "trade_stop": 0,
        "trade_tp1": 1100.0,
        "analysis_date": "2026-02-24",
        "updated_at": "2026-02-24T07:30:00Z",
        "sector": "半導體",
        "technical_signal": "多頭排列",
        "ai_comment": "先進製程需求強勁",
    }
