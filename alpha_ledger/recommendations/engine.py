"""
RecommendationEngine — one entry point over the banding and weighted
strategies in ``scorer``.

Callers pick the strategy explicitly: banding for list views (market
signals, portfolio cards), weighted for the single-instrument detail view.
The engine keeps no state between calls.
"""

from __future__ import annotations

from typing import Optional

from alpha_ledger.models.market import MarketRecord
from alpha_ledger.models.recommendation import (
    Action,
    PriceHint,
    Recommendation,
    RiskFlag,
    Strategy,
    TradeMode,
)
from alpha_ledger.recommendations.scorer import (
    band_for_score,
    build_weighted_rationale,
    change_pct,
    choose_mode,
    compute_weights,
    detect_risk_flag,
    entry_hint,
    exit_hint,
    is_stop_triggered,
    stop_hint,
)

_MODE_LABEL: dict[TradeMode, str] = {
    TradeMode.SHORT: "DAY_TRADE",
    TradeMode.LONG:  "SWING",
}


class RecommendationEngine:
    """Pure mapping from a market snapshot (plus held state) to a recommendation.

    Usage::

        engine = RecommendationEngine()
        rec = engine.recommend(record)                                   # banding
        rec = engine.recommend(record, is_held=True, entry_price=612.0)  # held lot
        rec = engine.recommend(record, strategy=Strategy.WEIGHTED)       # detail view
    """

    def recommend(
        self,
        stock: MarketRecord,
        is_held: bool = False,
        entry_price: Optional[float] = None,
        strategy: Strategy = Strategy.BANDING,
        forced_mode: Optional[TradeMode] = None,
    ) -> Recommendation:
        """Return the recommendation for ``stock``.

        Args:
            stock:       Market snapshot.
            is_held:     True if the user holds this instrument.
            entry_price: Entry price of the held lot; required when
                         ``is_held`` is True.
            strategy:    ``Strategy.BANDING`` or ``Strategy.WEIGHTED``.
            forced_mode: Weighted strategy only; overrides the weight
                         comparison.

        Raises:
            ValueError: If ``is_held`` without a positive ``entry_price``.
        """
        if is_held and (entry_price is None or entry_price <= 0):
            raise ValueError(
                f"A held position needs a positive entry_price, got {entry_price!r}."
            )
        if strategy is Strategy.WEIGHTED:
            return self._weighted(stock, forced_mode)
        return self._banding(stock, is_held, entry_price)

    # ── Strategies ────────────────────────────────────────────────────────────

    def _banding(
        self,
        stock: MarketRecord,
        is_held: bool,
        entry_price: Optional[float],
    ) -> Recommendation:
        entry = PriceHint(label="市價", price=stock.close_price)
        exit_ = exit_hint(stock, TradeMode.SHORT)
        stop = stop_hint(stock, TradeMode.SHORT)

        if is_held and entry_price is not None and is_stop_triggered(stock.close_price, entry_price):
            drop = change_pct(stock.close_price, entry_price)
            return Recommendation(
                action=Action.SELL,
                confidence_label="STOP_LOSS",
                rationale=f"跌幅 {drop:.1f}% 觸及停損線，立即執行停損。",
                risk_flag=RiskFlag.STOP_TRIGGERED,
                entry_hint=entry,
                exit_hint=exit_,
                stop_hint=PriceHint(label="停損出場", price=stock.close_price),
                strategy=Strategy.BANDING,
            )

        band = band_for_score(stock.ai_score, is_held)
        return Recommendation(
            action=band.action,
            confidence_label=band.label,
            rationale=band.rationale,
            entry_hint=entry,
            exit_hint=exit_,
            stop_hint=stop,
            strategy=Strategy.BANDING,
        )

    def _weighted(
        self,
        stock: MarketRecord,
        forced_mode: Optional[TradeMode],
    ) -> Recommendation:
        weights = compute_weights(stock)
        mode = choose_mode(weights, forced_mode)
        return Recommendation(
            action=Action.BUY,
            confidence_label=_MODE_LABEL[mode],
            rationale=build_weighted_rationale(weights, mode, forced=forced_mode is not None),
            risk_flag=detect_risk_flag(stock.volatility, stock.volume_ratio),
            entry_hint=entry_hint(stock, mode),
            exit_hint=exit_hint(stock, mode),
            stop_hint=stop_hint(stock, mode),
            strategy=Strategy.WEIGHTED,
            mode=mode,
        )


_DEFAULT_ENGINE = RecommendationEngine()


def recommend(
    stock: MarketRecord,
    is_held: bool = False,
    entry_price: Optional[float] = None,
    strategy: Strategy = Strategy.BANDING,
    forced_mode: Optional[TradeMode] = None,
) -> Recommendation:
    """Module-level shortcut for ``RecommendationEngine().recommend(...)``."""
    return _DEFAULT_ENGINE.recommend(stock, is_held, entry_price, strategy, forced_mode)
