"""Counters and latency statistics updated from instrumented call sites."""
from __future__ import annotations

from collections import deque
from dataclasses import replace
import logging
import math
import threading
import time
from typing import Any, Callable, Deque

from opswatch.models import CounterSet, IntervalBucket, ResponseTimeStats, SlowQueryRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

QUERY_FRAGMENT_LENGTH = 100


def _as_duration(value: Any) -> float | None:
    """Coerce a latency into a non-negative finite float, or None when unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except Exception:  # noqa: BLE001
        return None
    if math.isnan(number) or math.isinf(number) or number < 0:
        return None
    return number


class MetricsRecorder:
    """Thread-safe recorder of request, error, query and cache activity.

    Every ``record_*`` call is a constant-time mutation guarded by a lock and
    never raises; bad input is dropped with a debug log entry so that
    instrumentation cannot fail the caller's actual work.
    """

    def __init__(
        self,
        *,
        slow_query_threshold_ms: float = 100,
        slow_query_capacity: int = 100,
        clock: Clock = time.time,
    ) -> None:
        self._slow_query_threshold_ms = slow_query_threshold_ms
        self._slow_query_capacity = max(1, slow_query_capacity)
        self._clock = clock
        self._lock = threading.Lock()
        self._counters = CounterSet()
        self._response_time = ResponseTimeStats()
        self._slow_queries: Deque[SlowQueryRecord] = deque(maxlen=self._slow_query_capacity)
        self._interval_requests = 0
        self._interval_errors = 0
        self._interval_start = clock()

    @property
    def slow_query_capacity(self) -> int:
        return self._slow_query_capacity

    def record_request(self, latency_ms: float | None = None) -> None:
        latency = _as_duration(latency_ms)
        if latency is None and latency_ms is not None:
            logger.debug("Ignoring invalid request latency %r", latency_ms)
        with self._lock:
            self._counters.requests += 1
            self._interval_requests += 1
            if latency is not None:
                self._response_time.observe(latency)

    def record_error(self) -> None:
        with self._lock:
            self._counters.errors += 1
            self._interval_errors += 1

    def record_db_query(self, elapsed_ms: float, query_text: Any = "") -> None:
        elapsed = _as_duration(elapsed_ms)
        with self._lock:
            self._counters.db_queries += 1
            if elapsed is None or elapsed <= self._slow_query_threshold_ms:
                return
            try:
                fragment = str(query_text or "")[:QUERY_FRAGMENT_LENGTH]
            except Exception:  # noqa: BLE001
                fragment = "<unprintable query>"
            self._slow_queries.append(
                SlowQueryRecord(query=fragment, elapsed_ms=elapsed, timestamp=self._clock())
            )

    def record_cache_hit(self) -> None:
        with self._lock:
            self._counters.cache_hits += 1

    def record_cache_miss(self) -> None:
        with self._lock:
            self._counters.cache_misses += 1

    def drain_interval(self) -> IntervalBucket:
        """Close the running interval and start the next one atomically."""

        with self._lock:
            now = self._clock()
            bucket = IntervalBucket(
                start_time=self._interval_start,
                requests=self._interval_requests,
                errors=self._interval_errors,
                duration_ms=max(0, round((now - self._interval_start) * 1000)),
            )
            self._interval_requests = 0
            self._interval_errors = 0
            self._interval_start = now
        return bucket

    def current_interval(self) -> IntervalBucket:
        with self._lock:
            now = self._clock()
            return IntervalBucket(
                start_time=self._interval_start,
                requests=self._interval_requests,
                errors=self._interval_errors,
                duration_ms=max(0, round((now - self._interval_start) * 1000)),
            )

    def trim_slow_queries(self, capacity: int | None = None) -> int:
        """Drop the oldest slow queries beyond ``capacity``; returns how many went."""

        limit = self._slow_query_capacity if capacity is None else max(0, capacity)
        with self._lock:
            removed = 0
            while len(self._slow_queries) > limit:
                self._slow_queries.popleft()
                removed += 1
        return removed

    def counters(self) -> CounterSet:
        with self._lock:
            return replace(self._counters)

    def response_time(self) -> ResponseTimeStats:
        with self._lock:
            return replace(self._response_time)

    def slow_queries(self) -> list[SlowQueryRecord]:
        with self._lock:
            return list(self._slow_queries)

    def reset(self) -> None:
        """Zero all counters and statistics (test isolation only)."""

        with self._lock:
            self._counters = CounterSet()
            self._response_time = ResponseTimeStats()
            self._slow_queries.clear()
            self._interval_requests = 0
            self._interval_errors = 0
            self._interval_start = self._clock()
