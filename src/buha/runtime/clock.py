from __future__ import annotations

import threading
import time

from buha.ledger.constants import SECONDS_PER_DAY


class SystemClock:
    """Wall clock in whole unix seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Deterministic clock for tests and simulations.

    Time only moves forward; callers advance it explicitly.
    """

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._now = int(start)
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def set(self, ts: int) -> None:
        with self._lock:
            if int(ts) < self._now:
                raise ValueError(f"clock cannot move backwards: now={self._now} requested={int(ts)}")
            self._now = int(ts)

    def advance(self, seconds: int) -> int:
        if int(seconds) < 0:
            raise ValueError(f"advance expects seconds >= 0; got: {seconds}")
        with self._lock:
            self._now += int(seconds)
            return self._now

    def advance_days(self, days: int) -> int:
        return self.advance(int(days) * SECONDS_PER_DAY)
