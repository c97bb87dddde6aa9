"""
Recommendation output model.

A ``Recommendation`` is produced on demand by the engine and never persisted.
Hint prices are raw floats; rounding to one decimal is done by the
formatters at display time.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Action(str, Enum):
    """What the user should do with the instrument."""

    BUY   = "BUY"
    HOLD  = "HOLD"
    SELL  = "SELL"
    AVOID = "AVOID"


class Strategy(str, Enum):
    """Which scoring strategy produced the recommendation."""

    BANDING  = "banding"   # coarse ai_score bands, list views
    WEIGHTED = "weighted"  # short/long weighted scoring, detail view


class TradeMode(str, Enum):
    SHORT = "short"  # day trade
    LONG  = "long"   # swing position


class RiskFlag(str, Enum):
    STOP_TRIGGERED     = "stop-triggered"
    EXTREME_VOLATILITY = "extreme volatility"
    VOLUME_SURGE       = "volume surge"


class PriceHint(BaseModel):
    """A labelled price level (entry, exit or stop)."""

    model_config = ConfigDict(frozen=True)

    label: str
    price: float


class Recommendation(BaseModel):
    """Engine output for one instrument.

    Attributes:
        action: BUY / HOLD / SELL / AVOID.
        confidence_label: Display label; differs by held state in banding
            mode (``ADD`` vs ``STRONG_BUY``) and by mode in weighted mode.
        rationale: One-sentence explanation.
        risk_flag: At most one risk flag, or ``None``.
        entry_hint: Suggested entry level.
        exit_hint: Profit target.
        stop_hint: Defensive stop level.
        strategy: Strategy that produced this output.
        mode: Weighted-mode trade horizon; ``None`` for banding.
    """

    model_config = ConfigDict(frozen=True)

    action: Action
    confidence_label: str
    rationale: str
    risk_flag: Optional[RiskFlag] = None
    entry_hint: PriceHint
    exit_hint: PriceHint
    stop_hint: PriceHint
    strategy: Strategy
    mode: Optional[TradeMode] = None
