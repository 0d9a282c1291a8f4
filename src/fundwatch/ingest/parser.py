from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from fundwatch.utils.types import Quote


class PayloadError(ValueError):
    """Response body did not contain a JSONP array we could read."""


def extract_jsonp_array(body: str) -> list[dict]:
    """
    Pull the JSON array out of a Sina JSONP response.

    The body looks like:
      /*<script>location.href='//sina.com';</script>*/
      IO.XSRV2.CallbackList['da_yPT46_Ll7K6WD']([{...}, {...}]);
    An empty node comes back as `(null)` or `([])`.
    """
    start = body.find("([")
    end = body.rfind("])")
    if start == -1 or end == -1 or end < start:
        stripped = body.strip().rstrip(";")
        if stripped.endswith("(null)") or stripped.endswith("()") or stripped == "null":
            return []
        raise PayloadError(f"no JSONP array in response: {body[:120]!r}")
    try:
        data = json.loads(body[start + 1 : end + 1])
    except json.JSONDecodeError as e:
        raise PayloadError(f"bad JSON in response: {e}") from e
    if not isinstance(data, list):
        raise PayloadError("JSONP payload is not a list")
    return [row for row in data if isinstance(row, dict)]


def _dec(v: Any) -> Optional[Decimal]:
    if v is None or v == "":
        return None
    try:
        # str() first so floats keep their printed value, not their binary one
        d = Decimal(str(v))
    except InvalidOperation:
        return None
    return d if d.is_finite() else None


def _int(v: Any) -> int:
    try:
        return int(Decimal(str(v)))
    except (InvalidOperation, ValueError, OverflowError):
        return 0


def parse_quote_row(m: dict) -> Optional[Quote]:
    """
    Return a Quote for one Sina row, or None if it is unusable.

    Fields used (all prices arrive as strings like "1.234"):
      - "code": "159973"      - "symbol": "sz159973"   - "name"
      - "trade" (last)        - "open"                 - "settlement" (prior close)
      - "high" / "low"        - "volume" / "amount"    - "ticktime": "15:00:00"
    """
    code = m.get("code")
    if not code:
        return None
    trade = _dec(m.get("trade"))
    open_ = _dec(m.get("open"))
    prior = _dec(m.get("settlement"))
    if trade is None or open_ is None or prior is None:
        return None

    return Quote(
        code=str(code),
        symbol=str(m.get("symbol") or code),
        name=str(m.get("name") or code),
        trade=trade,
        open=open_,
        prior_close=prior,
        high=_dec(m.get("high")) or Decimal(0),
        low=_dec(m.get("low")) or Decimal(0),
        volume=_int(m.get("volume")),
        amount=_int(m.get("amount")),
        tick_time=str(m.get("ticktime") or ""),
    )
