"""
Recommendation scoring primitives: pure functions, no I/O.

Banding strategy (list views)
-----------------------------
Priority order, first match wins:

    1. STOP-LOSS : held AND (close - entry) / entry * 100 <= -5  → SELL
    2. BUY       : ai_score >= 85   (label ADD if held, STRONG_BUY if not)
    3. HOLD      : 75 <= ai_score < 85   (label HOLD if held, WATCH if not)
    4. AVOID     : ai_score < 75

Missing ai_score counts as 0.  Boundaries resolve to the higher band.

Weighted strategy (detail view)
-------------------------------
    momentum_bias = (volatility > 3.5 ? 10 : 0) + (volume_ratio > 1.5 ? 10 : 0)
    short_weight  = short_term_score + volume_ratio * 5 + volatility * 2 + momentum_bias
    long_weight   = long_term_score + roe / 2           (missing roe → 0)

    mode = short  if short_weight >= long_weight  else long

Hints per mode:

    ==========  ================================  ========================
    hint        short (day trade)                 long (swing)
    ==========  ================================  ========================
    exit        target_price or close * 1.03      target_price or close * 1.10
    stop        stop_price   or close * 0.97      stop_price   or close * 0.93
    entry       close if volume_ratio > 1.8,      close * 0.985 (staged)
                else close * 0.995 (limit)
    ==========  ================================  ========================

Risk flag (at most one): volatility > 4.5 → extreme volatility;
else volume_ratio > 2.5 → volume surge.

The thresholds are fixed policy, not tuned.  The -5% stop does not scale
with instrument volatility.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from alpha_ledger.models.market import MarketRecord
from alpha_ledger.models.recommendation import Action, PriceHint, RiskFlag, TradeMode

# ── Policy constants ──────────────────────────────────────────────────────────

BUY_THRESHOLD       = 85.0
WATCH_THRESHOLD     = 75.0
STOP_LOSS_PCT       = -5.0

MOMENTUM_VOLATILITY = 3.5
MOMENTUM_VOLUME     = 1.5
MOMENTUM_BONUS      = 10.0
AGGRESSIVE_ENTRY_VOLUME = 1.8
EXTREME_VOLATILITY  = 4.5
VOLUME_SURGE        = 2.5

_EXIT_MULTIPLIER:  dict[TradeMode, float] = {TradeMode.SHORT: 1.03,  TradeMode.LONG: 1.10}
_STOP_MULTIPLIER:  dict[TradeMode, float] = {TradeMode.SHORT: 0.97,  TradeMode.LONG: 0.93}
LIMIT_ENTRY_MULTIPLIER  = 0.995
STAGED_ENTRY_MULTIPLIER = 0.985


# ── Banding ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Band:
    """Outcome of the score-band lookup."""

    action:    Action
    label:     str
    rationale: str


def change_pct(close_price: float, entry_price: float) -> float:
    """Percent change from ``entry_price`` to ``close_price``."""
    return (close_price - entry_price) / entry_price * 100.0


def is_stop_triggered(close_price: float, entry_price: float) -> bool:
    return change_pct(close_price, entry_price) <= STOP_LOSS_PCT


def band_for_score(score: Optional[float], is_held: bool) -> Band:
    """Map an ai_score to its band.  ``None`` scores as 0."""
    value = score if score is not None else 0.0
    if value >= BUY_THRESHOLD:
        if is_held:
            return Band(Action.BUY, "ADD", "高信心動能延續，可沿趨勢加碼。")
        return Band(Action.BUY, "STRONG_BUY", "高信心動能，基本面與技術面共振。")
    if value >= WATCH_THRESHOLD:
        if is_held:
            return Band(Action.HOLD, "HOLD", "結構改善中，尚未達加碼門檻，續抱觀察。")
        return Band(Action.HOLD, "WATCH", "結構改善中，尚未達進場門檻，列入觀察。")
    return Band(Action.AVOID, "AVOID", "評分偏低，缺乏優勢，持續觀望。")


# ── Weighted ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ModeWeights:
    """Short/long weights for one record.

    Attributes:
        momentum_bias: 0, 10 or 20 depending on volatility and volume.
        short_weight:  Day-trade weight.
        long_weight:   Swing weight.
    """

    momentum_bias: float
    short_weight:  float
    long_weight:   float

    @property
    def natural_mode(self) -> TradeMode:
        """Mode chosen by weight alone; ties go to short."""
        return TradeMode.SHORT if self.short_weight >= self.long_weight else TradeMode.LONG


def compute_weights(record: MarketRecord) -> ModeWeights:
    bias = 0.0
    if record.volatility > MOMENTUM_VOLATILITY:
        bias += MOMENTUM_BONUS
    if record.volume_ratio > MOMENTUM_VOLUME:
        bias += MOMENTUM_BONUS

    short_weight = (
        record.short_term_score
        + record.volume_ratio * 5.0
        + record.volatility * 2.0
        + bias
    )
    long_weight = record.long_term_score + (record.roe or 0.0) / 2.0
    return ModeWeights(momentum_bias=bias, short_weight=short_weight, long_weight=long_weight)


def choose_mode(weights: ModeWeights, forced_mode: Optional[TradeMode] = None) -> TradeMode:
    return forced_mode if forced_mode is not None else weights.natural_mode


def exit_hint(record: MarketRecord, mode: TradeMode) -> PriceHint:
    if record.target_price is not None:
        return PriceHint(label="獲利目標", price=record.target_price)
    return PriceHint(label="獲利目標", price=record.close_price * _EXIT_MULTIPLIER[mode])


def stop_hint(record: MarketRecord, mode: TradeMode) -> PriceHint:
    if record.stop_price is not None:
        return PriceHint(label="防守底線", price=record.stop_price)
    return PriceHint(label="防守底線", price=record.close_price * _STOP_MULTIPLIER[mode])


def entry_hint(record: MarketRecord, mode: TradeMode) -> PriceHint:
    close = record.close_price
    if mode is TradeMode.SHORT:
        if record.volume_ratio > AGGRESSIVE_ENTRY_VOLUME:
            return PriceHint(label="動能確認，市價強攻", price=close)
        return PriceHint(label="尋求平盤附近低接", price=close * LIMIT_ENTRY_MULTIPLIER)
    return PriceHint(label="支撐區間分批佈局", price=close * STAGED_ENTRY_MULTIPLIER)


def detect_risk_flag(volatility: float, volume_ratio: float) -> Optional[RiskFlag]:
    """Return the single highest-priority risk flag, if any."""
    if volatility > EXTREME_VOLATILITY:
        return RiskFlag.EXTREME_VOLATILITY
    if volume_ratio > VOLUME_SURGE:
        return RiskFlag.VOLUME_SURGE
    return None


def build_weighted_rationale(weights: ModeWeights, mode: TradeMode, forced: bool) -> str:
    """Assemble the weighted-mode explanation, e.g.
    ``"當沖權重 86.0 vs 波段權重 90.0；波段價值佈局"``.
    """
    reasons = [f"當沖權重 {weights.short_weight:.1f} vs 波段權重 {weights.long_weight:.1f}"]
    if weights.momentum_bias > 0:
        reasons.append(f"動能偏置 +{weights.momentum_bias:.0f}")
    reasons.append("當沖特快操作" if mode is TradeMode.SHORT else "波段價值佈局")
    if forced:
        reasons.append("模式由使用者指定")
    return "；".join(reasons)
