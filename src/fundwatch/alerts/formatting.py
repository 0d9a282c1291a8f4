from __future__ import annotations

from decimal import Decimal, ROUND_HALF_EVEN

# Mathematical sans-serif bold digits; they stand out in chat clients.
_BOLD_DIGITS = str.maketrans("0123456789", "𝟬𝟭𝟮𝟯𝟰𝟱𝟲𝟳𝟴𝟵")

# red = up, green = down (mainland market convention)
_GLYPH = {"up": "🔴", "down": "🟢"}
_GAP_LABEL = {"up": "gap up", "down": "gap down"}

CENT = Decimal("0.01")


def fmt_pct(pct: Decimal) -> str:
    """Exactly two decimals, rounded on the decimal value itself."""
    q = pct.quantize(CENT, rounding=ROUND_HALF_EVEN)
    if q.is_zero():
        q = abs(q)  # no "-0.00"
    return f"{q:f}"


def bold_digits(text: str) -> str:
    return text.translate(_BOLD_DIGITS)


def format_alert_text(evt: dict, styled_digits: bool = True) -> str:
    kind = evt.get("kind")
    if kind == "not_found":
        return f"no matching instrument for code {evt.get('code', '?')}"
    if kind == "fetch_error":
        return f"failed to fetch [{evt.get('source', '?')}] quotes: {evt.get('error', '')}"

    name = evt.get("name") or evt.get("code", "?")
    dirn = evt.get("direction", "up")
    pct = fmt_pct(evt.get("pct", Decimal(0)))
    if styled_digits:
        pct = bold_digits(pct)

    if kind == "gap":
        return f"【{name}】{_GLYPH[dirn]}{_GAP_LABEL[dirn]} {pct}%"
    if kind == "move":
        return f"【{name}】{_GLYPH[dirn]}intraday {pct}%"
    raise ValueError(f"unknown alert kind: {kind!r}")


def join_lines(lines: list[str]) -> str:
    """One blank line between alerts, none trailing."""
    return "\n\n".join(line for line in lines if line)
