"""
Time sources for the ledger shells.

Ledgers never cache time: every entry point calls its time provider once and
passes the value into the kernel.
"""

from __future__ import annotations

import time
from typing import Callable

TimeProvider = Callable[[], int]

DAY = 24 * 3600
WEEK = 7 * DAY


def system_time() -> int:
    return int(time.time())


class ManualClock:
    """Deterministic, manually advanced clock for tests and scenario replays."""

    def __init__(self, start: int = 1_700_000_000):
        if not isinstance(start, int) or isinstance(start, bool) or start < 0:
            raise ValueError("start must be a non-negative int")
        self._now = start

    def __call__(self) -> int:
        return self._now

    @property
    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("time is monotonic; cannot advance by a negative amount")
        self._now += seconds
        return self._now

    def advance_to(self, timestamp: int) -> int:
        if timestamp < self._now:
            raise ValueError(f"time is monotonic; {timestamp} < {self._now}")
        self._now = timestamp
        return self._now
