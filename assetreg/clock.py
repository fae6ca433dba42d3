# assetreg/clock.py
"""
Logical clocks for creation stamps.

A clock only has to hand out integers that never go backwards.
"""

import threading
import time

CLOCK_KEY = ("clock",)


class SequenceClock:
    """
    Counter that advances by one on every reading.

    Given a store, the current value lives at ("clock",) in it, so the
    sequence carries on across reopens and is advanced inside whatever
    transaction is reading it. Without one it is held in memory.
    """

    def __init__(self, start: int = 0, store=None):
        self.start = start
        self.store = store
        self._value = start
        self._lock = threading.Lock()

    def now(self) -> int:
        if self.store is not None:
            with self.store.transaction() as store:
                value = store.get(CLOCK_KEY, self.start) + 1
                store.set(CLOCK_KEY, value)
                return value

        with self._lock:
            self._value += 1
            return self._value


class WallClock:
    """
    Nanoseconds since the epoch.

    Readings are clamped so a wall-clock step backwards never produces a
    smaller value within this process.
    """

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            self._last = max(self._last + 1, time.time_ns())
            return self._last


def make_clock(name: str, store=None):
    """
    Build a clock by its config name ("sequence" or "wall").

    A sequence clock keeps its value in store when one is given.
    """
    if name == "sequence":
        return SequenceClock(store=store)
    if name == "wall":
        return WallClock()
    raise ValueError(f"Unknown clock: {name!r} (expected one of ['sequence', 'wall'])")
