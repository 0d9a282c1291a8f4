from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator

from fundwatch.utils.time import MARKET_TZ, market_day


@dataclass(slots=True)
class AlertState:
    gap_notified: bool = False   # gap-open line already sent today
    up_index: int = 0            # rungs crossed upward today
    down_index: int = 0          # rungs crossed downward today


StateKey = tuple[str, date]


class AlertStateStore:
    """
    Per (code, market day) alert state. Process-lifetime only; a restart
    starts every instrument back at zero.

    A new day gets a fresh key, which is how indices reset. Old days are
    dropped by sweep() rather than left to grow.
    """

    def __init__(self, tz_name: str = MARKET_TZ):
        self.tz_name = tz_name
        self._states: dict[StateKey, AlertState] = {}
        self._key_locks: dict[StateKey, threading.Lock] = {}
        self._lock = threading.Lock()  # guards both dicts

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def get(self, code: str, day: date) -> AlertState:
        key = (code, day)
        with self._lock:
            st = self._states.get(key)
            if st is None:
                st = AlertState()
                self._states[key] = st
            return st

    def resolve(self, code: str, now: datetime) -> AlertState:
        """State for `code` on the market day containing `now`."""
        return self.get(code, market_day(now, self.tz_name))

    @contextmanager
    def hold(self, code: str, now: datetime) -> Iterator[AlertState]:
        """
        Exclusive read-modify-write on one key. Callers on other keys are not
        blocked; callers on the same key queue up.
        """
        key = (code, market_day(now, self.tz_name))
        with self._lock:
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = threading.Lock()
                self._key_locks[key] = key_lock
        with key_lock:
            yield self.get(*key)

    def evict_before(self, day: date) -> int:
        """Drop entries for days strictly before `day`. Returns how many went."""
        with self._lock:
            stale = [k for k in self._states if k[1] < day]
            for k in stale:
                del self._states[k]
            for k in [k for k in self._key_locks if k[1] < day]:
                del self._key_locks[k]
            return len(stale)

    def sweep(self, now: datetime, keep_days: int = 2) -> int:
        """Keep only the last `keep_days` market days (today included)."""
        today = market_day(now, self.tz_name)
        return self.evict_before(today - timedelta(days=max(1, keep_days) - 1))
