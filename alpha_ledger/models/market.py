"""
Market record model — one instrument's daily analysis snapshot.

Rows arrive from the store with loosely typed columns: numeric fields may be
``null``, absent, an empty string or a numeric string depending on which
analysis job wrote them.  ``MarketRecord.from_row()`` is the single place
where those encodings collapse into ``None`` (or a documented default), so
the recommendation engine never special-cases absent values.

The model is frozen (immutable) after construction.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from alpha_ledger.utils.time_utils import parse_date, parse_timestamp

# Store column → model field.  Later aliases only apply when earlier ones
# are missing or null.
_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "code":             ("stock_code", "code"),
    "name":             ("stock_name", "name"),
    "close_price":      ("close_price", "close"),
    "ai_score":         ("ai_score",),
    "roe":              ("roe",),
    "revenue_yoy":      ("revenue_yoy", "revenue_growth"),
    "pe_ratio":         ("pe_ratio", "pe"),
    "volume":           ("volume",),
    "volume_ratio":     ("vol_ratio", "volume_ratio"),
    "volatility":       ("volatility",),
    "short_term_score": ("score_short", "short_term_score"),
    "long_term_score":  ("score_long", "long_term_score"),
    "stop_price":       ("trade_stop", "stop_price"),
    "target_price":     ("trade_tp1", "target_price"),
    "analysis_date":    ("analysis_date",),
    "updated_at":       ("updated_at", "created_at"),
    "sector":           ("sector",),
    "technical_signal": ("technical_signal",),
    "trade_signal":     ("trade_signal",),
    "ai_comment":       ("ai_comment", "ai_summary", "ai_suggestion"),
}


def to_float(value: Any) -> Optional[float]:
    """Coerce a loosely typed numeric cell to ``float`` or ``None``.

    ``None``, ``""``, booleans, non-numeric strings, NaN and infinities all
    map to ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "").rstrip("%")
        if not text:
            return None
        try:
            result = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _pick(row: Mapping[str, Any], field: str) -> Any:
    for column in _COLUMN_ALIASES[field]:
        value = row.get(column)
        if value is not None and value != "":
            return value
    return None


class MarketRecord(BaseModel):
    """One instrument's analysis snapshot for one date.

    Attributes:
        code: Exchange-qualified symbol (e.g. ``"2330.TW"``).
        name: Display name.
        close_price: Latest close; always positive.
        ai_score: Composite analysis score, clamped to [0, 100]; ``None`` if
            the analysis job produced no score.
        roe: Return on equity in percent, or ``None``.
        revenue_yoy: Revenue growth year-over-year in percent, or ``None``.
        pe_ratio: Price/earnings ratio, or ``None``.
        volume: Traded volume (shares), or ``None``.
        volume_ratio: Volume relative to its average; 0 when unknown.
        volatility: Daily volatility in percent; 0 when unknown.
        short_term_score: Short-horizon sub-score (0–100); 0 when unknown.
        long_term_score: Long-horizon sub-score (0–100); 0 when unknown.
        stop_price: Precomputed stop level, or ``None`` to derive one.
        target_price: Precomputed first profit target, or ``None`` to derive one.
        analysis_date: Trading date the snapshot describes.
        updated_at: When the row was last written (UTC).
        sector, technical_signal, trade_signal, ai_comment: Descriptive text
            carried through for display and prompts.
    """

    model_config = ConfigDict(frozen=True)

    code: str = Field(min_length=1)
    name: str = ""
    close_price: float = Field(gt=0)
    ai_score: Optional[float] = None
    roe: Optional[float] = None
    revenue_yoy: Optional[float] = None
    pe_ratio: Optional[float] = None
    volume: Optional[float] = None
    volume_ratio: float = Field(default=0.0, ge=0)
    volatility: float = Field(default=0.0, ge=0)
    short_term_score: float = 0.0
    long_term_score: float = 0.0
    stop_price: Optional[float] = Field(default=None, gt=0)
    target_price: Optional[float] = Field(default=None, gt=0)
    analysis_date: Optional[date] = None
    updated_at: Optional[datetime] = None
    sector: Optional[str] = None
    technical_signal: Optional[str] = None
    trade_signal: Optional[str] = None
    ai_comment: Optional[str] = None

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        return v.strip()

    @field_validator("ai_score")
    @classmethod
    def clamp_ai_score(cls, v: Optional[float]) -> Optional[float]:
        if v is None or not math.isfinite(v):
            return None
        return max(0.0, min(100.0, v))

    @property
    def score(self) -> float:
        """``ai_score`` with missing treated as 0."""
        return self.ai_score if self.ai_score is not None else 0.0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "MarketRecord":
        """Build a record from a raw store row.

        Raises:
            pydantic.ValidationError: If the row has no code or no positive
                close price.
        """
        values: dict[str, Any] = {
            "code":          to_text(_pick(row, "code")) or "",
            "name":          to_text(_pick(row, "name")) or "",
            "close_price":   to_float(_pick(row, "close_price")),
            "analysis_date": parse_date(_pick(row, "analysis_date")),
            "updated_at":    parse_timestamp(_pick(row, "updated_at")),
        }
        for field in ("ai_score", "roe", "revenue_yoy", "pe_ratio", "volume"):
            values[field] = to_float(_pick(row, field))
        for field in ("volume_ratio", "volatility", "short_term_score", "long_term_score"):
            values[field] = to_float(_pick(row, field)) or 0.0
        for field in ("stop_price", "target_price"):
            price = to_float(_pick(row, field))
            values[field] = price if price is not None and price > 0 else None
        for field in ("sector", "technical_signal", "trade_signal", "ai_comment"):
            values[field] = to_text(_pick(row, field))
        # Momentum inputs are non-negative.
        values["volume_ratio"] = max(0.0, values["volume_ratio"])
        values["volatility"] = max(0.0, values["volatility"])
        return cls(**values)
