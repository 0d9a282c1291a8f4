from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TypedDict, Literal

# ---- ingest-level primitives ----

@dataclass(frozen=True, slots=True)
class Quote:
    """
    Point-in-time snapshot for one fund, as served by the quote source.
    Prices are Decimal so threshold comparisons are exact.
    """
    code: str             # pure digits, e.g. "159973"
    symbol: str           # exchange-prefixed, e.g. "sz159973"
    name: str
    trade: Decimal        # last trade price
    open: Decimal         # session open
    prior_close: Decimal  # previous session close ("settlement")
    high: Decimal = Decimal(0)
    low: Decimal = Decimal(0)
    volume: int = 0
    amount: int = 0
    tick_time: str = ""

# ---- alerting domain ----

AlertKind = Literal["gap", "move", "not_found", "fetch_error"]
Direction = Literal["up", "down"]

class AlertEvent(TypedDict, total=False):
    kind: AlertKind
    code: str
    name: str
    direction: Direction
    pct: Decimal
    index: int            # ladder index after a move alert
    source: str           # fund class label for fetch errors
    error: str
