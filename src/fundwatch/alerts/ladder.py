# src/fundwatch/alerts/ladder.py
from __future__ import annotations

import threading

DEFAULT_LENGTH = 20


def fibonacci_terms(n: int) -> list[int]:
    """First n terms of 1, 2, 3, 5, 8, ... (each term is the sum of the two before)."""
    if n < 2:
        raise ValueError("ladder needs at least two terms")
    terms = [1, 2]
    while len(terms) < n:
        terms.append(terms[-1] + terms[-2])
    return terms


class EscalationLadder:
    """
    Multipliers that turn one base threshold into ever larger trigger points:
    trigger(i) = base * ladder[i].

    The first `length` terms are built up front. Reading past the end extends
    the sequence in place, so a ratchet that keeps climbing never runs off it.
    """

    def __init__(self, length: int = DEFAULT_LENGTH):
        self._terms = fibonacci_terms(length)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._terms)

    def __getitem__(self, i: int) -> int:
        if i < 0:
            raise IndexError("ladder index must be >= 0")
        if i >= len(self._terms):
            self._extend_to(i)
        return self._terms[i]

    def _extend_to(self, i: int) -> None:
        with self._lock:
            terms = self._terms
            while len(terms) <= i:
                terms.append(terms[-1] + terms[-2])

    def terms(self) -> list[int]:
        """Copy of the materialized terms."""
        return list(self._terms)
