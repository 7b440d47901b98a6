"""
Pytest configuration and fixtures for opswatch tests.
"""

from __future__ import annotations

from typing import List

import pytest

from opswatch.core.config import MonitorConfig, Settings
from opswatch.services.alert_dispatcher import AlertDispatcher
from opswatch.services.metrics_recorder import MetricsRecorder
from opswatch.services.registry import ServiceRegistry
from opswatch.services.snapshot_builder import HealthSnapshotBuilder, ProcessFacts
from opswatch.services.window_aggregator import WindowAggregator

MB = 1024 * 1024


# ============================================================================
# Test doubles
# ============================================================================


class FakeClock:
    """Manually advanced clock returning Unix seconds."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingChannel:
    """Notification channel that remembers every message."""

    def __init__(self, *, result: bool = True, error: Exception | None = None) -> None:
        self.messages: List[str] = []
        self.result = result
        self.error = error

    async def send_to_operator(self, message: str) -> bool:
        self.messages.append(message)
        if self.error is not None:
            raise self.error
        return self.result


class StaticProcessProbe:
    """Process probe returning fixed readings."""

    def __init__(self, facts: ProcessFacts | None = None) -> None:
        self.facts = facts or ProcessFacts(rss_bytes=200 * MB, heap_bytes=50 * MB)

    def __call__(self) -> ProcessFacts:
        return self.facts


# ============================================================================
# Component fixtures
# ============================================================================


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(start=1_700_000_000.0)


@pytest.fixture()
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture()
def process_probe() -> StaticProcessProbe:
    return StaticProcessProbe()


@pytest.fixture()
def recorder(clock: FakeClock) -> MetricsRecorder:
    return MetricsRecorder(clock=clock)


@pytest.fixture()
def aggregator(recorder: MetricsRecorder, clock: FakeClock) -> WindowAggregator:
    return WindowAggregator(recorder, clock=clock)


@pytest.fixture()
def snapshot_builder(
    recorder: MetricsRecorder,
    aggregator: WindowAggregator,
    process_probe: StaticProcessProbe,
    clock: FakeClock,
) -> HealthSnapshotBuilder:
    return HealthSnapshotBuilder(
        recorder,
        aggregator,
        capacity_baseline_bytes=2 * 1024 * MB,
        process_probe=process_probe,
        clock=clock,
    )


@pytest.fixture()
def dispatcher(channel: RecordingChannel, clock: FakeClock) -> AlertDispatcher:
    return AlertDispatcher(channel, cooldown_seconds=300, clock=clock)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        log_level="WARNING",
        admin_token="secret-token",
        monitor=MonitorConfig(),
    )


@pytest.fixture()
def registry(
    settings: Settings,
    channel: RecordingChannel,
    process_probe: StaticProcessProbe,
    clock: FakeClock,
) -> ServiceRegistry:
    return ServiceRegistry(
        settings,
        channel=channel,
        process_probe=process_probe,
        release_hint=None,
        clock=clock,
    )
