from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog

from fundwatch.alerts.ladder import EscalationLadder
from fundwatch.alerts.rules import MonitoringRule
from fundwatch.alerts.state import AlertState, AlertStateStore
from fundwatch.utils.types import AlertEvent, Quote

log = structlog.get_logger("evaluator")

HUNDRED = Decimal(100)


def percent_change(a: Decimal, b: Decimal) -> Optional[Decimal]:
    """(a - b) / a * 100. None when a is zero (suspended funds quote 0)."""
    if a == 0:
        return None
    return (a - b) / a * HUNDRED


def ratchet(move_pct: Decimal, threshold: Decimal, ladder: EscalationLadder, index: int) -> int:
    """
    Advance `index` past every rung the move has reached and return it.

    move_pct is in percent, threshold is a fraction, so rung i sits at
    threshold * 100 * ladder[i] percent. A single large move can cross several
    rungs at once. The result is never below `index`.
    """
    mag = abs(move_pct)
    step = threshold * HUNDRED
    while mag >= step * ladder[index]:
        index += 1
    return index


def check_gap_open(quote: Quote, st: AlertState) -> Optional[AlertEvent]:
    """
    Open vs prior close, reported once per instrument per day.
    An unchanged open (or a zero open) leaves the flag alone so a later cycle
    can still report a real gap.
    """
    if st.gap_notified:
        return None
    if quote.prior_close < quote.open:
        direction = "up"
    elif quote.prior_close > quote.open:
        direction = "down"
    else:
        return None
    gap_pct = percent_change(quote.open, quote.prior_close)
    if gap_pct is None:
        log.debug("gap_check_skipped_zero_open", code=quote.code)
        return None
    st.gap_notified = True
    return {
        "kind": "gap",
        "code": quote.code,
        "name": quote.name,
        "direction": direction,
        "pct": gap_pct,
    }


def check_intraday(
    quote: Quote, rule: MonitoringRule, st: AlertState, ladder: EscalationLadder
) -> Optional[AlertEvent]:
    """Trade vs open, escalating along the ladder. Emits only when a new rung is crossed."""
    if quote.open == 0:
        log.debug("move_check_skipped_zero_open", code=quote.code)
        return None
    if quote.open < quote.trade:
        direction = "up"
        threshold, start = rule.up_threshold, st.up_index
    elif quote.open > quote.trade:
        direction = "down"
        threshold, start = rule.down_threshold, st.down_index
    else:
        return None

    move_pct = percent_change(quote.trade, quote.open)
    if move_pct is None:
        log.debug("move_check_skipped_zero_trade", code=quote.code)
        return None

    index = ratchet(move_pct, threshold, ladder, start)
    if index == start:
        return None
    if direction == "up":
        st.up_index = index
    else:
        st.down_index = index
    return {
        "kind": "move",
        "code": quote.code,
        "name": quote.name,
        "direction": direction,
        "pct": move_pct,
        "index": index,
    }


@dataclass(slots=True)
class RuleEvaluator:
    """
    Runs both checks for one (quote, rule) pair against the shared state store.
    No I/O; returns the events to report.
    """
    store: AlertStateStore
    ladder: EscalationLadder = field(default_factory=EscalationLadder)

    def evaluate(self, quote: Quote, rule: MonitoringRule, now: datetime) -> list[AlertEvent]:
        events: list[AlertEvent] = []
        with self.store.hold(rule.code, now) as st:
            gap = check_gap_open(quote, st)
            if gap is not None:
                events.append(gap)
            move = check_intraday(quote, rule, st, self.ladder)
            if move is not None:
                events.append(move)
        return events

    @staticmethod
    def not_found(rule: MonitoringRule) -> AlertEvent:
        return {"kind": "not_found", "code": rule.code}
