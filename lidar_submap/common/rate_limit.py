"""
Rate limiting and execution statistics for periodic submap operations.

RateLimiter is the single policy object behind carving (one per layer) and
feature recomputation: an operation is due when it never ran or when at least
min_interval seconds passed since it last ran. Only the caller that actually
executes the operation calls mark_run(), so a skipped call leaves the limiter
untouched.

ExecutionStats accumulates stopwatch measurements across threads.
"""

from __future__ import annotations

from dataclasses import dataclass
import threading
from typing import Optional


@dataclass
class RateLimiter:
    min_interval: float
    last_run: Optional[float] = None

    def due_now(self, now: float) -> bool:
        """True if the operation may run at time `now` (seconds)."""
        if self.last_run is None:
            return True
        return (now - self.last_run) >= self.min_interval

    def mark_run(self, now: float) -> None:
        self.last_run = float(now)

    def elapsed(self, now: float) -> Optional[float]:
        """Seconds since the last run, None if never run."""
        if self.last_run is None:
            return None
        return now - self.last_run

    def reset(self) -> None:
        self.last_run = None


@dataclass
class ExecutionStatsSnapshot:
    count: int = 0
    total_msec: float = 0.0

    @property
    def avg_msec(self) -> float:
        return self.total_msec / self.count if self.count > 0 else 0.0

    @property
    def frequency_hz(self) -> float:
        avg = self.avg_msec
        return 1e3 / avg if avg > 0.0 else 0.0


class ExecutionStats:
    """Thread-safe accumulator of execution times with a reporting window."""

    def __init__(self, window_start: float = 0.0) -> None:
        self._lock = threading.Lock()
        self._stats = ExecutionStatsSnapshot()
        self._window_start = float(window_start)

    def add_measurement_msec(self, msec: float) -> None:
        with self._lock:
            self._stats.count += 1
            self._stats.total_msec += max(0.0, float(msec))

    def snapshot(self) -> ExecutionStatsSnapshot:
        with self._lock:
            return ExecutionStatsSnapshot(count=self._stats.count, total_msec=self._stats.total_msec)

    def window_elapsed(self, now: float) -> float:
        with self._lock:
            return now - self._window_start

    def consume(self, now: float) -> ExecutionStatsSnapshot:
        """Return the accumulated stats and start a new window at `now`."""
        with self._lock:
            snapshot = ExecutionStatsSnapshot(count=self._stats.count, total_msec=self._stats.total_msec)
            self._stats = ExecutionStatsSnapshot()
            self._window_start = float(now)
        return snapshot
