"""Tests for opswatch.services.snapshot_builder."""

from __future__ import annotations

import pytest

from opswatch.services.snapshot_builder import HealthSnapshotBuilder, ProcessFacts, percentage
from tests.conftest import MB, StaticProcessProbe


@pytest.mark.parametrize(
    ("part", "whole", "expected"),
    [(1, 20, 5.0), (0, 0, 0), (3, 0, 0), (1, 3, 33.33), (2, 2, 100.0)],
)
def test_percentage(part: float, whole: float, expected: float) -> None:
    assert percentage(part, whole) == expected


class TestSnapshot:
    def test_empty_recorder(self, snapshot_builder: HealthSnapshotBuilder) -> None:
        snapshot = snapshot_builder.snapshot()

        performance = snapshot.performance
        assert performance.total_requests == 0
        assert performance.error_rate_percent == 0
        assert performance.cache_hit_rate_percent == 0
        assert performance.avg_response_time_ms == 0
        assert performance.requests_per_minute == 0

    def test_error_rate(self, recorder, snapshot_builder) -> None:
        for _ in range(20):
            recorder.record_request(10)
        recorder.record_error()

        assert snapshot_builder.snapshot().performance.error_rate_percent == 5.0

    def test_cache_hit_rate(self, recorder, snapshot_builder) -> None:
        recorder.record_cache_hit()
        recorder.record_cache_hit()
        recorder.record_cache_hit()
        recorder.record_cache_miss()

        assert snapshot_builder.snapshot().performance.cache_hit_rate_percent == 75.0

    def test_memory_and_uptime(self, snapshot_builder, clock) -> None:
        clock.advance(600)

        snapshot = snapshot_builder.snapshot()
        assert snapshot.uptime_minutes == 10
        assert snapshot.memory.used_mb == 200
        assert snapshot.memory.heap_mb == 50
        assert snapshot.memory.percentage == 10

    def test_probe_failure_yields_zero_memory(self, recorder, aggregator, clock) -> None:
        def broken() -> ProcessFacts:
            raise RuntimeError("no procfs")

        builder = HealthSnapshotBuilder(
            recorder, aggregator, capacity_baseline_bytes=1024 * MB, process_probe=broken, clock=clock
        )

        snapshot = builder.snapshot()
        assert snapshot.memory.used_mb == 0
        assert snapshot.resources.cpu_percent is None


class TestDetailedAndReport:
    def test_detailed_includes_slow_queries_and_buckets(self, recorder, aggregator, snapshot_builder, clock) -> None:
        recorder.record_request(40)
        recorder.record_request(60)
        recorder.record_db_query(20, "SELECT 1")
        recorder.record_db_query(250, "SELECT * FROM big")
        clock.advance(60)
        aggregator.rotate()
        recorder.record_request(5)

        detailed = snapshot_builder.detailed()

        assert detailed.db_query_count == 2
        assert detailed.slow_query_count == 1
        assert detailed.slow_queries[0].query == "SELECT * FROM big"
        assert detailed.response_time.min == 5
        assert detailed.response_time.max == 60
        assert len(detailed.bucket_history) == 1
        assert detailed.current_bucket.requests == 1

    def test_detailed_min_zero_without_samples(self, snapshot_builder) -> None:
        assert snapshot_builder.detailed().response_time.min == 0

    def test_report_summary_strings(self, recorder, snapshot_builder) -> None:
        for _ in range(4):
            recorder.record_request(100)
        recorder.record_error()

        report = snapshot_builder.report()

        assert report.summary["error_rate"] == "25.00%"
        assert report.summary["avg_response_time"] == "100ms"
        assert report.summary["memory_usage"] == "200MB (10%)"
        assert "High error rate detected. Check application logs." in report.recommendations

    def test_optimal_recommendation(self, snapshot_builder) -> None:
        assert snapshot_builder.report().recommendations == ["System performance is optimal."]

    def test_low_cache_and_memory_recommendations(self, recorder, aggregator, clock) -> None:
        probe = StaticProcessProbe(ProcessFacts(rss_bytes=900 * MB))
        builder = HealthSnapshotBuilder(
            recorder, aggregator, capacity_baseline_bytes=1000 * MB, process_probe=probe, clock=clock
        )
        recorder.record_cache_miss()

        recommendations = builder.report().recommendations
        assert "High memory usage detected. Consider restarting the application." in recommendations
        assert "Low cache hit rate. Consider cache optimization." in recommendations
