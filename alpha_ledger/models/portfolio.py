"""
Portfolio models — open holdings read from the store's ``portfolio`` table.

Only rows with ``status = 'holding'`` are active.  The store client enforces
one active holding per code: adding a position for a code that is already
held replaces the old lot instead of averaging into it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from alpha_ledger.models.market import to_float, to_text
from alpha_ledger.utils.time_utils import parse_timestamp

DEFAULT_EXCHANGE_SUFFIX = ".TW"
HOLDING_STATUS = "holding"


def normalize_code(code: str, suffix: str = DEFAULT_EXCHANGE_SUFFIX) -> str:
    """Upper-case a symbol and append the exchange suffix if it has none.

    >>> normalize_code("2330")
    '2330.TW'
    >>> normalize_code("6488.two")
    '6488.TWO'
    """
    text = code.strip().upper()
    if not text:
        raise ValueError("Stock code must not be empty.")
    if "." in text:
        return text
    return f"{text}{suffix}"


class PositionRecord(BaseModel):
    """One active holding.

    Attributes:
        id: Store row id (string form), or ``None`` before insertion.
        code: Exchange-qualified symbol, matches ``MarketRecord.code``.
        name: Display name entered by the user.
        entry_price: Price paid per share; positive.
        quantity: Number of shares; positive.
        opened_at: Row creation time (UTC), or ``None``.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    code: str = Field(min_length=1)
    name: str = ""
    entry_price: float = Field(gt=0)
    quantity: float = Field(gt=0)
    opened_at: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        return v.strip()

    @property
    def cost_basis(self) -> float:
        return self.entry_price * self.quantity

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PositionRecord":
        """Build a position from a raw ``portfolio`` row.

        Raises:
            pydantic.ValidationError: On missing code, or non-positive price
                or quantity.
        """
        return cls(
            id=to_text(row.get("id")),
            code=to_text(row.get("stock_code")) or "",
            name=to_text(row.get("stock_name")) or "",
            entry_price=to_float(row.get("buy_price")),
            quantity=to_float(row.get("quantity")),
            opened_at=parse_timestamp(row.get("created_at")),
        )
