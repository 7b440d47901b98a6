"""Tests for opswatch.services.window_aggregator."""

from __future__ import annotations

from opswatch.services.metrics_recorder import MetricsRecorder
from opswatch.services.window_aggregator import WindowAggregator


def _tick(recorder: MetricsRecorder, aggregator: WindowAggregator, clock, *, requests: int = 0) -> None:
    for _ in range(requests):
        recorder.record_request(10)
    clock.advance(60)
    aggregator.rotate()


class TestRotation:
    def test_rotate_appends_minute_bucket(self, recorder, aggregator, clock) -> None:
        _tick(recorder, aggregator, clock, requests=3)

        buckets = aggregator.minute_buckets()
        assert len(buckets) == 1
        assert buckets[0].requests == 3
        assert buckets[0].end_time == clock.now

    def test_seventy_ticks_keep_sixty_buckets(self, recorder, aggregator, clock) -> None:
        start = clock.now
        for _ in range(70):
            _tick(recorder, aggregator, clock, requests=1)

        assert len(aggregator.minute_buckets()) == 60

        clock.now = start + 4200
        pruned = aggregator.cleanup()
        buckets = aggregator.minute_buckets()
        # The oldest 10 were already evicted by the bounded deque during rotation.
        assert pruned["minute_buckets"] == 0
        assert len(buckets) == 60
        assert all(b.end_time > clock.now - 3600 for b in buckets)

    def test_cleanup_drops_expired_buckets(self, recorder, aggregator, clock) -> None:
        for _ in range(5):
            _tick(recorder, aggregator, clock)

        clock.advance(3600)
        pruned = aggregator.cleanup()

        assert pruned["minute_buckets"] == 5
        assert aggregator.minute_buckets() == []

    def test_cleanup_trims_slow_queries(self, clock) -> None:
        recorder = MetricsRecorder(slow_query_capacity=3, clock=clock)
        aggregator = WindowAggregator(recorder, clock=clock)
        for index in range(3):
            recorder.record_db_query(500, f"q{index}")

        assert aggregator.cleanup()["slow_queries"] == 0
        assert len(recorder.slow_queries()) == 3

    def test_hour_rollup_after_sixty_minutes(self, recorder, aggregator, clock) -> None:
        for _ in range(59):
            _tick(recorder, aggregator, clock, requests=2)
        assert aggregator.hour_buckets() == []

        _tick(recorder, aggregator, clock, requests=2)

        hours = aggregator.hour_buckets()
        assert len(hours) == 1
        assert hours[0].requests == 120
        assert hours[0].duration_ms == 3_600_000


class TestRequestsPerMinute:
    def test_zero_without_buckets(self, aggregator) -> None:
        assert aggregator.requests_per_minute() == 0

    def test_mean_of_last_ten_buckets(self, recorder, aggregator, clock) -> None:
        for _ in range(5):
            _tick(recorder, aggregator, clock, requests=100)
        for _ in range(10):
            _tick(recorder, aggregator, clock, requests=4)

        assert aggregator.requests_per_minute() == 4

    def test_partial_window(self, recorder, aggregator, clock) -> None:
        _tick(recorder, aggregator, clock, requests=3)
        _tick(recorder, aggregator, clock, requests=4)

        assert aggregator.requests_per_minute() == 4


def test_current_bucket_reflects_running_interval(recorder, aggregator) -> None:
    recorder.record_request(1)
    recorder.record_error()

    current = aggregator.current_bucket()
    assert (current.requests, current.errors) == (1, 1)


def test_reset_clears_history(recorder, aggregator, clock) -> None:
    for _ in range(61):
        _tick(recorder, aggregator, clock)

    aggregator.reset()

    assert aggregator.minute_buckets() == []
    assert aggregator.hour_buckets() == []
