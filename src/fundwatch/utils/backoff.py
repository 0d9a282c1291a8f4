from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterator

def next_backoff(prev: float, cap: float) -> float:
    """Exponential backoff progression with cap (no jitter)."""
    return min(prev * 2.0, cap)

def jitter(v: float, *, ratio: float = 0.2) -> float:
    """
    Add ±ratio jitter. ratio=0.2 -> multiply by [0.8, 1.2].
    """
    lo = 1.0 - ratio
    hi = 1.0 + ratio
    return v * (lo + (hi - lo) * random.random())


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Bounded retry schedule for outbound HTTP calls.
    `max_attempts` counts the first try, so there are max_attempts - 1 sleeps.
    """
    max_attempts: int = 4
    initial_s: float = 0.5
    cap_s: float = 8.0
    jitter_ratio: float = 0.2

    def delays(self) -> Iterator[float]:
        """Plain (unjittered) sleeps between attempts: 0.5, 1, 2, ... capped."""
        v = self.initial_s
        for _ in range(max(0, self.max_attempts - 1)):
            yield v
            v = next_backoff(v, self.cap_s)

    def jittered(self) -> Iterator[float]:
        for d in self.delays():
            yield jitter(d, ratio=self.jitter_ratio) if self.jitter_ratio else d
