# src/fundwatch/alerts/rules.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import structlog

log = structlog.get_logger("rules")


@dataclass(frozen=True, slots=True)
class MonitoringRule:
    """
    One watched fund.
    - up_threshold / down_threshold are fractions: 0.10 → first alert at a 10% move,
      then at 20%, 30%, 50%, ... of the open (ladder multiples).
    """
    code: str
    up_threshold: Decimal
    down_threshold: Decimal


@dataclass(frozen=True, slots=True)
class RuleProblem:
    entry: str
    reason: str


def _parse_threshold(raw: str) -> Decimal | None:
    try:
        v = Decimal(raw.strip())
    except InvalidOperation:
        return None
    if not v.is_finite() or v <= 0:
        return None
    return v


def parse_rules(raw: str) -> tuple[list[MonitoringRule], list[RuleProblem]]:
    """
    Parse "code-up-down,code-up-down,...".

    Bad entries never abort the load; each one comes back as a RuleProblem
    (and is logged) so startup can warn about it. The first entry wins when a
    code repeats.
    """
    rules: list[MonitoringRule] = []
    problems: list[RuleProblem] = []
    seen: set[str] = set()

    for item in raw.split(","):
        entry = item.strip()
        if not entry:
            continue
        parts = entry.split("-")
        if len(parts) != 3:
            problems.append(RuleProblem(entry, "expected code-up-down"))
            continue
        code = parts[0].strip()
        if not code:
            problems.append(RuleProblem(entry, "empty code"))
            continue
        up = _parse_threshold(parts[1])
        down = _parse_threshold(parts[2])
        if up is None or down is None:
            problems.append(RuleProblem(entry, "thresholds must be positive numbers"))
            continue
        if code in seen:
            problems.append(RuleProblem(entry, "duplicate code"))
            continue
        seen.add(code)
        rules.append(MonitoringRule(code=code, up_threshold=up, down_threshold=down))

    for p in problems:
        log.warning("rule_entry_dropped", entry=p.entry, reason=p.reason)
    return rules, problems
