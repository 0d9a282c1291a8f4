# src/fundwatch/alerts/notifiers.py
from __future__ import annotations

from typing import Protocol, Sequence

import structlog

log = structlog.get_logger("notifier")


class NotificationError(Exception):
    """Raised by a sink when a message could not be delivered."""


class Notifier(Protocol):
    async def send(self, text: str) -> None: ...


class ConsoleNotifier:
    def __init__(self, prefix: str = "[ALERT]"):
        self._prefix = prefix

    async def send(self, text: str) -> None:
        print(f"{self._prefix} {text}" if self._prefix else text, flush=True)


class FanoutNotifier:
    """
    Deliver the same text to every child sink. One failing child does not stop
    the others; the failure is raised after all have been tried.
    """
    def __init__(self, sinks: Sequence[Notifier]):
        self._sinks = list(sinks)

    async def send(self, text: str) -> None:
        failed: list[str] = []
        for sink in self._sinks:
            try:
                await sink.send(text)
            except Exception as e:
                name = type(sink).__name__
                log.warning("sink_send_failed", sink=name, err=str(e))
                failed.append(name)
        if failed:
            raise NotificationError(f"delivery failed for: {', '.join(failed)}")
