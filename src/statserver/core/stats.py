"""
=============================================================================
SERVER STATISTICS
=============================================================================

Process-wide request counter and uptime clock, shared by every connection
worker thread.

=============================================================================
SHARED STATE UNDER THREADS
=============================================================================

Every request, on every connection, bumps the same counter:

    ┌──────────────┐   ┌──────────────┐   ┌──────────────┐
    │ Connection 1 │   │ Connection 2 │   │ Connection 3 │
    │  (thread)    │   │  (thread)    │   │  (thread)    │
    └──────┬───────┘   └──────┬───────┘   └──────┬───────┘
           │ increment()      │ increment()      │ snapshot()
           └──────────────────┼──────────────────┘
                              ▼
                   ┌─────────────────────┐
                   │    StatsTracker     │
                   │  total_requests: N  │
                   │  start_time: T0     │
                   └─────────────────────┘

`count += 1` is a read-modify-write. Two threads can both read 41 and both
write 42, losing one request. A lock around the addition makes it atomic.
The critical section is a single integer add, so holding it never waits on
I/O.

The tracker is created once by HTTPServer and handed to the Router. It is
never a module-level global, so two servers in one process (tests do this)
keep separate counts.

=============================================================================
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict


Clock = Callable[[], float]


@dataclass(frozen=True)
class StatsSnapshot:
    """
    Point-in-time view of the server statistics.

    Body of the /stats endpoint. Built fresh for each request, never cached.

    JSON field order:
        {"total_requests": 6, "uptime_seconds": 0, "requests_per_second": 0.0}
    """

    total_requests: int
    uptime_seconds: int
    requests_per_second: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "uptime_seconds": self.uptime_seconds,
            "requests_per_second": self.requests_per_second,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatsSnapshot":
        return cls(
            total_requests=int(data["total_requests"]),
            uptime_seconds=int(data["uptime_seconds"]),
            requests_per_second=float(data["requests_per_second"]),
        )


class StatsTracker:
    """
    Thread-safe request counter with a fixed start instant.

    Usage:
        stats = StatsTracker()
        stats.increment()            # once per dispatched request
        snap = stats.snapshot()      # for /stats
        snap.total_requests          # -> 1

    The clock is injectable so tests can pin uptime:

        now = [100.0]
        stats = StatsTracker(clock=lambda: now[0])
        now[0] += 4.0
        stats.uptime_seconds         # -> 4
    """

    def __init__(self, clock: Clock = time.monotonic):
        """
        Initialize the tracker and capture the start instant.

        Args:
            clock: Monotonic time source in seconds. Wall-clock time can
                   jump backwards (NTP), so uptime must not use it.
        """
        self._clock = clock
        self._start_time = clock()
        self._total_requests = 0
        self._lock = threading.Lock()

    @property
    def start_time(self) -> float:
        """Clock reading captured at construction."""
        return self._start_time

    @property
    def total_requests(self) -> int:
        """Requests dispatched so far."""
        with self._lock:
            return self._total_requests

    @property
    def uptime_seconds(self) -> int:
        """Whole seconds elapsed since the tracker was created."""
        return max(0, int(self._clock() - self._start_time))

    def increment(self) -> int:
        """
        Count one request. Safe to call from any number of threads.

        Returns:
            The new total, i.e. this request's 1-based sequence number.
        """
        with self._lock:
            self._total_requests += 1
            return self._total_requests

    def snapshot(self) -> StatsSnapshot:
        """
        Read the counter and derive uptime and throughput.

        The counter and the clock are read separately; a concurrent
        increment between the two reads is acceptable.

        Returns:
            StatsSnapshot with requests_per_second == 0.0 while uptime
            is still under one second.
        """
        total = self.total_requests
        uptime = self.uptime_seconds

        if uptime > 0:
            rps = total / uptime
        else:
            rps = 0.0

        return StatsSnapshot(
            total_requests=total,
            uptime_seconds=uptime,
            requests_per_second=rps,
        )
