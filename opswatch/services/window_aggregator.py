"""Rotate recorder intervals into minute/hour buckets with bounded retention."""
from __future__ import annotations

from collections import deque
from dataclasses import replace
import logging
import math
import threading
import time
from typing import Callable, Deque

from opswatch.models import IntervalBucket
from opswatch.services.metrics_recorder import MetricsRecorder

logger = logging.getLogger(__name__)

HOUR_SECONDS = 3600
RATE_WINDOW_BUCKETS = 10


class WindowAggregator:
    """Keeps recent minute buckets and hourly roll-ups derived from the recorder."""

    def __init__(
        self,
        recorder: MetricsRecorder,
        *,
        rotation_interval: float = 60,
        minute_retention: float = 3600,
        hour_retention: float = 86400,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._recorder = recorder
        self._minute_retention = minute_retention
        self._hour_retention = hour_retention
        self._clock = clock
        self._lock = threading.Lock()
        minute_capacity = max(1, math.ceil(minute_retention / rotation_interval))
        hour_capacity = max(1, math.ceil(hour_retention / HOUR_SECONDS))
        self._minutes: Deque[IntervalBucket] = deque(maxlen=minute_capacity)
        self._hours: Deque[IntervalBucket] = deque(maxlen=hour_capacity)
        self._pending_hour: IntervalBucket | None = None

    def rotate(self) -> IntervalBucket:
        """Close the running interval into a new minute bucket."""

        bucket = self._recorder.drain_interval()
        with self._lock:
            self._minutes.append(bucket)
            self._roll_into_hour(bucket)
        logger.debug(
            "Rotated interval: %s requests, %s errors over %sms",
            bucket.requests,
            bucket.errors,
            bucket.duration_ms,
        )
        return bucket

    def _roll_into_hour(self, bucket: IntervalBucket) -> None:
        pending = self._pending_hour
        if pending is None:
            pending = IntervalBucket(start_time=bucket.start_time)
        pending.requests += bucket.requests
        pending.errors += bucket.errors
        pending.duration_ms += bucket.duration_ms
        if bucket.end_time - pending.start_time >= HOUR_SECONDS:
            self._hours.append(pending)
            pending = None
        self._pending_hour = pending

    def cleanup(self) -> dict[str, int]:
        """Drop buckets outside the retention windows and trim slow queries."""

        now = self._clock()
        minute_cutoff = now - self._minute_retention
        hour_cutoff = now - self._hour_retention
        with self._lock:
            minutes_before = len(self._minutes)
            hours_before = len(self._hours)
            self._minutes = deque(
                (b for b in self._minutes if b.end_time > minute_cutoff),
                maxlen=self._minutes.maxlen,
            )
            self._hours = deque(
                (b for b in self._hours if b.end_time > hour_cutoff),
                maxlen=self._hours.maxlen,
            )
            pruned = {
                "minute_buckets": minutes_before - len(self._minutes),
                "hour_buckets": hours_before - len(self._hours),
            }
        pruned["slow_queries"] = self._recorder.trim_slow_queries()
        if any(pruned.values()):
            logger.info("Retention cleanup pruned %s", pruned)
        return pruned

    def requests_per_minute(self) -> int:
        with self._lock:
            recent = list(self._minutes)[-RATE_WINDOW_BUCKETS:]
        if not recent:
            return 0
        return round(sum(b.requests for b in recent) / len(recent))

    def minute_buckets(self) -> list[IntervalBucket]:
        with self._lock:
            return [replace(b) for b in self._minutes]

    def hour_buckets(self) -> list[IntervalBucket]:
        with self._lock:
            return [replace(b) for b in self._hours]

    def current_bucket(self) -> IntervalBucket:
        return self._recorder.current_interval()

    def reset(self) -> None:
        with self._lock:
            self._minutes.clear()
            self._hours.clear()
            self._pending_hour = None
