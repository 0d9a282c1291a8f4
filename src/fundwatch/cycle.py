# src/fundwatch/cycle.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol, Sequence

import structlog

from fundwatch.alerts.evaluator import RuleEvaluator
from fundwatch.alerts.formatting import format_alert_text, join_lines
from fundwatch.alerts.ladder import EscalationLadder
from fundwatch.alerts.notifiers import Notifier
from fundwatch.alerts.rules import MonitoringRule
from fundwatch.alerts.state import AlertStateStore
from fundwatch.ingest.sina import FUND_LABELS
from fundwatch.utils.time import utc_now
from fundwatch.utils.types import AlertEvent, Quote

log = structlog.get_logger("cycle")


class QuoteSource(Protocol):
    async def fetch_quotes(self, fund_class: str) -> list[Quote]: ...


@dataclass(slots=True)
class CycleConfig:
    interval_s: float = 30.0
    fund_classes: tuple[str, ...] = ("etf", "lof")
    state_keep_days: int = 2
    styled_digits: bool = True


@dataclass(frozen=True, slots=True)
class CycleResult:
    text: str          # what went to the sink ("" when nothing to say)
    events: int
    delivered: bool


class CycleOrchestrator:
    """
    Timer-driven fetch → evaluate → notify loop.

    States:
      - idle:    waiting for the next tick
      - running: one cycle in flight; ticks that land now are dropped, not queued

    Inputs:
      - source:   QuoteSource (fetch_quotes per fund class)
      - notifier: Notifier    (send(text), called at most once per cycle)
      - rules:    watchlist, evaluated in order
    """

    def __init__(
        self,
        *,
        source: QuoteSource,
        notifier: Notifier,
        rules: Sequence[MonitoringRule],
        store: Optional[AlertStateStore] = None,
        ladder: Optional[EscalationLadder] = None,
        cfg: Optional[CycleConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        format_fn: Optional[Callable[[AlertEvent], str]] = None,
    ):
        self.source = source
        self.notifier = notifier
        self.rules = list(rules)
        self.cfg = cfg or CycleConfig()
        self.store = store or AlertStateStore()
        self.evaluator = RuleEvaluator(store=self.store, ladder=ladder or EscalationLadder())
        self._clock = clock
        self._format_fn = format_fn or (lambda e: format_alert_text(e, styled_digits=self.cfg.styled_digits))

        self._stop = asyncio.Event()
        self._inflight: Optional[asyncio.Task] = None
        self.cycles_run = 0
        self.ticks_dropped = 0

    # ---------------------------- public API ---------------------------- #

    @property
    def state(self) -> str:
        if self._inflight is not None and not self._inflight.done():
            return "running"
        return "idle"

    async def start(self) -> None:
        """Tick every interval until stop; then let the in-flight cycle finish."""
        log.info("cycle_loop_start", interval_s=self.cfg.interval_s, rules=len(self.rules))
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.cfg.interval_s)
            except asyncio.TimeoutError:
                self.tick()
        await self._drain()
        log.info("cycle_loop_exit", cycles=self.cycles_run, dropped=self.ticks_dropped)

    def request_stop(self) -> None:
        """Signal-handler safe: no new cycles start after this."""
        self._stop.set()

    async def stop(self) -> None:
        self.request_stop()
        await self._drain()

    def tick(self) -> bool:
        """Start a cycle unless one is running. Returns True if one was started."""
        if self.state == "running":
            self.ticks_dropped += 1
            log.info("tick_dropped_cycle_running", dropped=self.ticks_dropped)
            return False
        self._inflight = asyncio.create_task(self._guarded_cycle(), name="fund-cycle")
        return True

    async def run_cycle(self) -> CycleResult:
        now = self._clock()
        evicted = self.store.sweep(now, self.cfg.state_keep_days)
        if evicted:
            log.debug("alert_state_evicted", entries=evicted)

        events: list[AlertEvent] = []
        quotes, fetch_failed = await self._fetch_all(events)

        for rule in self.rules:
            q = quotes.get(rule.code)
            if q is None:
                # it may live in a class that failed this round; only report when all fetched
                if not fetch_failed:
                    log.warning("rule_code_not_found", code=rule.code)
                    events.append(self.evaluator.not_found(rule))
                continue
            events.extend(self.evaluator.evaluate(q, rule, now))

        text = join_lines([self._format_fn(e) for e in events])
        delivered = False
        if text:
            try:
                await self.notifier.send(text)
                delivered = True
            except Exception as e:
                # ratchet and gap flags stay advanced; delivery is best-effort
                log.error("notify_failed", err=str(e))

        self.cycles_run += 1
        log.info("cycle_done", events=len(events), quotes=len(quotes), delivered=delivered)
        return CycleResult(text=text, events=len(events), delivered=delivered)

    # --------------------------- core internals ------------------------- #

    async def _fetch_all(self, events: list[AlertEvent]) -> tuple[dict[str, Quote], bool]:
        classes = self.cfg.fund_classes
        results = await asyncio.gather(
            *(self.source.fetch_quotes(c) for c in classes), return_exceptions=True
        )
        quotes: dict[str, Quote] = {}
        failed = False
        for fund_class, res in zip(classes, results):
            if isinstance(res, Exception):
                failed = True
                log.warning("fetch_failed", fund_class=fund_class, err=str(res))
                events.append({
                    "kind": "fetch_error",
                    "source": FUND_LABELS.get(fund_class, fund_class),
                    "error": str(res) or type(res).__name__,
                })
                continue
            if isinstance(res, BaseException):
                raise res
            for q in res:
                quotes[q.code] = q
        return quotes, failed

    async def _guarded_cycle(self) -> None:
        try:
            await self.run_cycle()
        except Exception as e:
            log.exception("cycle_crashed", err=str(e))

    async def _drain(self) -> None:
        task = self._inflight
        if task is not None and not task.done():
            log.info("waiting_for_inflight_cycle")
            await task
