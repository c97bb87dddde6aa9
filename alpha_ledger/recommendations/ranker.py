"""
Decision matrix: ranks market records and values the portfolio.

Usage flow
----------
1. latest_per_code(records)
   -> list[MarketRecord]  (one per code, score-descending)

2. top_pick(records)
   -> MarketRecord | None  (highest ai_score)

3. build_portfolio_details(positions, records)
   -> list[PositionDetail]  (valuation + banding recommendation per holding)

4. build_decision_matrix(records, positions)
   -> DecisionMatrix  (all of the above plus weak-holding alerts)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from alpha_ledger.models.market import MarketRecord
from alpha_ledger.models.portfolio import PositionRecord
from alpha_ledger.models.recommendation import Recommendation
from alpha_ledger.recommendations.engine import RecommendationEngine

# Holdings scoring below this are flagged in the portfolio alert panel.
WEAK_SCORE_THRESHOLD = 60.0


@dataclass(frozen=True)
class PositionDetail:
    """A holding joined with its latest market snapshot.

    Attributes:
        position:        The held lot.
        market:          Latest snapshot for the code, or None if the code is
                         not in today's analysis.
        current_price:   Market close, or the entry price when unmatched.
        ai_score:        Market ai_score, or 0 when unmatched / unscored.
        return_pct:      (current - entry) / entry * 100.
        unrealized_pl:   (current - entry) * quantity.
        is_weak:         ai_score < WEAK_SCORE_THRESHOLD.
        recommendation:  Banding recommendation with the held-lot context;
                         None when there is no market snapshot to score.
    """

    position:       PositionRecord
    market:         Optional[MarketRecord]
    current_price:  float
    ai_score:       float
    return_pct:     float
    unrealized_pl:  float
    is_weak:        bool
    recommendation: Optional[Recommendation]

    @property
    def market_value(self) -> float:
        return self.current_price * self.position.quantity


@dataclass
class DecisionMatrix:
    """Everything the overview screen needs, derived in one pass."""

    top_pick:     Optional[MarketRecord]
    signals:      list[tuple[MarketRecord, Recommendation]] = field(default_factory=list)
    positions:    list[PositionDetail] = field(default_factory=list)

    @property
    def alerts(self) -> list[PositionDetail]:
        return [p for p in self.positions if p.is_weak]

    @property
    def total_cost(self) -> float:
        return sum(p.position.cost_basis for p in self.positions)

    @property
    def total_unrealized_pl(self) -> float:
        return sum(p.unrealized_pl for p in self.positions)


def _latest_key(record: MarketRecord) -> tuple[date, float]:
    return (record.analysis_date or date.min, record.score)


def latest_per_code(records: list[MarketRecord]) -> list[MarketRecord]:
    """Keep one record per code: latest ``analysis_date``, then highest score.

    Output is sorted by score descending, then code, so list views are stable.
    """
    best: dict[str, MarketRecord] = {}
    for record in records:
        current = best.get(record.code)
        if current is None or _latest_key(record) > _latest_key(current):
            best[record.code] = record
    return sorted(best.values(), key=lambda r: (-r.score, r.code))


def top_pick(records: list[MarketRecord]) -> Optional[MarketRecord]:
    """Highest-scoring record (missing score = 0); the later record wins ties."""
    if not records:
        return None
    best = records[0]
    for record in records[1:]:
        if record.score >= best.score:
            best = record
    return best


def build_portfolio_details(
    positions: list[PositionRecord],
    records: list[MarketRecord],
    engine: Optional[RecommendationEngine] = None,
) -> list[PositionDetail]:
    """Value each holding against the latest snapshot of its code."""
    engine = engine or RecommendationEngine()
    by_code = {r.code: r for r in latest_per_code(records)}

    details: list[PositionDetail] = []
    for pos in positions:
        market = by_code.get(pos.code)
        current = market.close_price if market is not None else pos.entry_price
        score = market.score if market is not None else 0.0
        rec = (
            engine.recommend(market, is_held=True, entry_price=pos.entry_price)
            if market is not None
            else None
        )
        details.append(
            PositionDetail(
                position=pos,
                market=market,
                current_price=current,
                ai_score=score,
                return_pct=(current - pos.entry_price) / pos.entry_price * 100.0,
                unrealized_pl=(current - pos.entry_price) * pos.quantity,
                is_weak=score < WEAK_SCORE_THRESHOLD,
                recommendation=rec,
            )
        )
    return details


def build_decision_matrix(
    records: list[MarketRecord],
    positions: list[PositionRecord],
    engine: Optional[RecommendationEngine] = None,
) -> DecisionMatrix:
    """Derive top pick, per-record banding signals and portfolio details."""
    engine = engine or RecommendationEngine()
    latest = latest_per_code(records)
    held = {p.code: p for p in positions}

    signals: list[tuple[MarketRecord, Recommendation]] = []
    for record in latest:
        pos = held.get(record.code)
        if pos is not None:
            rec = engine.recommend(record, is_held=True, entry_price=pos.entry_price)
        else:
            rec = engine.recommend(record)
        signals.append((record, rec))

    return DecisionMatrix(
        top_pick=top_pick(latest),
        signals=signals,
        positions=build_portfolio_details(positions, latest, engine),
    )
