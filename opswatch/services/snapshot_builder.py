"""Compose point-in-time health snapshots from recorder, aggregator and process facts."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import os
import time
from typing import Callable, Optional

import psutil

from opswatch.models import (
    DetailedMetrics,
    HealthSnapshot,
    MemoryStats,
    PerformanceReport,
    PerformanceStats,
    ResourceStats,
    ResponseTimeSummary,
)
from opswatch.services.metrics_recorder import MetricsRecorder
from opswatch.services.window_aggregator import WindowAggregator

logger = logging.getLogger(__name__)

MB = 1024 * 1024
DETAILED_BUCKET_LIMIT = 60


@dataclass
class ProcessFacts:
    """Raw process-level readings in bytes/percent."""

    rss_bytes: int = 0
    heap_bytes: int = 0
    cpu_percent: Optional[float] = None
    disk_percent: Optional[float] = None


def percentage(part: float, whole: float) -> float:
    """Percentage rounded to two decimals, 0 when ``whole`` is empty."""
    if not whole:
        return 0
    return round(part / whole * 100, 2)


class PsutilProcessProbe:
    """Reads memory, CPU and disk facts for the current process via psutil."""

    def __init__(self, disk_path: str = "/") -> None:
        self._disk_path = disk_path
        self._process = psutil.Process(os.getpid())
        # First cpu_percent call always returns 0.0; prime it here.
        self._process.cpu_percent(interval=None)

    def __call__(self) -> ProcessFacts:
        facts = ProcessFacts()
        try:
            info = self._process.memory_info()
            facts.rss_bytes = info.rss
            facts.heap_bytes = getattr(info, "data", 0) or info.vms
        except psutil.Error as exc:
            logger.warning("Unable to read process memory: %s", exc)
        try:
            facts.cpu_percent = self._process.cpu_percent(interval=None)
        except psutil.Error as exc:
            logger.debug("Unable to read process CPU usage: %s", exc)
        try:
            facts.disk_percent = psutil.disk_usage(self._disk_path).percent
        except (OSError, psutil.Error) as exc:
            logger.debug("Unable to read disk usage for %s: %s", self._disk_path, exc)
        return facts


class HealthSnapshotBuilder:
    """Builds the snapshot, detailed metrics and performance report views.

    All methods are read-only with respect to the recorder and aggregator.
    """

    def __init__(
        self,
        recorder: MetricsRecorder,
        aggregator: WindowAggregator,
        *,
        capacity_baseline_bytes: int,
        process_probe: Callable[[], ProcessFacts] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._recorder = recorder
        self._aggregator = aggregator
        self._capacity_baseline_bytes = capacity_baseline_bytes
        self._process_probe = process_probe or PsutilProcessProbe()
        self._clock = clock
        self._started_at = clock()

    @property
    def started_at(self) -> float:
        return self._started_at

    def _read_process(self) -> ProcessFacts:
        try:
            return self._process_probe()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Process probe failed: %s", exc)
            return ProcessFacts()

    def snapshot(self) -> HealthSnapshot:
        counters = self._recorder.counters()
        response_time = self._recorder.response_time()
        facts = self._read_process()
        uptime_seconds = max(0.0, self._clock() - self._started_at)

        return HealthSnapshot(
            uptime_minutes=round(uptime_seconds / 60),
            memory=MemoryStats(
                used_mb=round(facts.rss_bytes / MB),
                heap_mb=round(facts.heap_bytes / MB),
                percentage=round(facts.rss_bytes / self._capacity_baseline_bytes * 100),
            ),
            performance=PerformanceStats(
                total_requests=counters.requests,
                requests_per_minute=self._aggregator.requests_per_minute(),
                error_rate_percent=percentage(counters.errors, counters.requests),
                cache_hit_rate_percent=percentage(
                    counters.cache_hits, counters.cache_hits + counters.cache_misses
                ),
                avg_response_time_ms=response_time.average,
            ),
            resources=ResourceStats(
                cpu_percent=facts.cpu_percent,
                disk_percent=facts.disk_percent,
            ),
        )

    def detailed(self) -> DetailedMetrics:
        snapshot = self.snapshot()
        counters = self._recorder.counters()
        response_time = self._recorder.response_time()
        slow_queries = self._recorder.slow_queries()
        return DetailedMetrics(
            **snapshot.model_dump(),
            db_query_count=counters.db_queries,
            slow_query_count=len(slow_queries),
            slow_queries=slow_queries,
            response_time=ResponseTimeSummary(
                min=response_time.min if response_time.min is not None else 0,
                max=response_time.max,
                avg=response_time.average,
            ),
            bucket_history=self._aggregator.minute_buckets()[-DETAILED_BUCKET_LIMIT:],
            hour_history=self._aggregator.hour_buckets(),
            current_bucket=self._aggregator.current_bucket(),
        )

    def report(self) -> PerformanceReport:
        detailed = self.detailed()
        performance = detailed.performance
        memory = detailed.memory
        return PerformanceReport(
            timestamp=datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
            summary={
                "uptime": f"{detailed.uptime_minutes} minutes",
                "total_requests": performance.total_requests,
                "error_rate": f"{performance.error_rate_percent:.2f}%",
                "memory_usage": f"{memory.used_mb}MB ({memory.percentage}%)",
                "avg_response_time": f"{performance.avg_response_time_ms}ms",
            },
            performance={
                "requests_per_minute": performance.requests_per_minute,
                "cache_hit_rate": f"{performance.cache_hit_rate_percent:.2f}%",
                "db_queries": detailed.db_query_count,
                "slow_queries": detailed.slow_query_count,
            },
            system={
                "memory": memory.model_dump(),
                "uptime": detailed.uptime_minutes,
            },
            recommendations=self.performance_recommendations(detailed),
        )

    def performance_recommendations(self, snapshot: HealthSnapshot) -> list[str]:
        counters = self._recorder.counters()
        performance = snapshot.performance
        recommendations: list[str] = []
        if snapshot.memory.percentage > 80:
            recommendations.append("High memory usage detected. Consider restarting the application.")
        if performance.error_rate_percent > 5:
            recommendations.append("High error rate detected. Check application logs.")
        if performance.avg_response_time_ms > 1000:
            recommendations.append("Slow response times detected. Consider performance optimization.")
        cache_lookups = counters.cache_hits + counters.cache_misses
        if cache_lookups and performance.cache_hit_rate_percent < 70:
            recommendations.append("Low cache hit rate. Consider cache optimization.")
        if not recommendations:
            recommendations.append("System performance is optimal.")
        return recommendations
