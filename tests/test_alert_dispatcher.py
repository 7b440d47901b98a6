"""Tests for opswatch.services.alert_dispatcher."""

from __future__ import annotations

import pytest

from opswatch.models import AlertCandidate, HealthSnapshot, MemoryStats, Severity
from opswatch.services.alert_dispatcher import AlertDispatcher, format_alert
from tests.conftest import RecordingChannel


def memory_alert(severity: Severity = Severity.CRITICAL) -> AlertCandidate:
    return AlertCandidate(
        title="Critical Memory Usage",
        message="Memory usage is critically high",
        severity=severity,
        key="memory_usage",
    )


class TestFormatting:
    def test_critical_calls_for_action(self) -> None:
        text = format_alert(memory_alert(), 0)

        assert text.startswith("[CRITICAL] Critical Memory Usage")
        assert "Details: Memory usage is critically high" in text
        assert "Time: 1970-01-01T00:00:00+00:00" in text
        assert "Severity: CRITICAL" in text
        assert text.endswith("IMMEDIATE ACTION REQUIRED!")

    def test_warning_asks_for_review(self) -> None:
        text = format_alert(memory_alert(Severity.WARNING), 0)

        assert text.startswith("[WARNING]")
        assert text.endswith("Please review when convenient.")


class TestCooldown:
    @pytest.mark.asyncio
    async def test_repeat_within_cooldown_is_suppressed(self, dispatcher, channel, clock) -> None:
        assert await dispatcher.dispatch(memory_alert()) is True
        clock.advance(60)
        assert await dispatcher.dispatch(memory_alert()) is False

        assert len(channel.messages) == 1

    @pytest.mark.asyncio
    async def test_repeat_after_cooldown_is_delivered(self, dispatcher, channel, clock) -> None:
        await dispatcher.dispatch(memory_alert())
        first = dispatcher.alert_history()[0].timestamp
        clock.advance(301)

        assert await dispatcher.dispatch(memory_alert()) is True
        assert len(channel.messages) == 2
        assert dispatcher.alert_history()[0].timestamp == first + 301
        assert dispatcher.history_size() == 1

    @pytest.mark.asyncio
    async def test_keys_cool_down_independently(self, dispatcher, channel) -> None:
        await dispatcher.dispatch(memory_alert())
        await dispatcher.send_alert("Slow", "slow", Severity.WARNING, "response_time")

        assert len(channel.messages) == 2

    @pytest.mark.asyncio
    async def test_keyless_alert_bypasses_cooldown(self, dispatcher, channel) -> None:
        await dispatcher.send_alert("Hello", "one")
        await dispatcher.send_alert("Hello", "two")

        assert len(channel.messages) == 2
        assert dispatcher.history_size() == 0

    @pytest.mark.asyncio
    async def test_zero_cooldown_never_suppresses(self, dispatcher, channel) -> None:
        dispatcher.set_cooldown(0)
        await dispatcher.dispatch(memory_alert())
        await dispatcher.dispatch(memory_alert())

        assert len(channel.messages) == 2

    def test_negative_cooldown_rejected(self, dispatcher) -> None:
        with pytest.raises(ValueError):
            dispatcher.set_cooldown(-1)


class TestDeliveryFailures:
    @pytest.mark.asyncio
    async def test_channel_exception_still_records_history(self, clock) -> None:
        channel = RecordingChannel(error=RuntimeError("network down"))
        dispatcher = AlertDispatcher(channel, clock=clock)

        assert await dispatcher.dispatch(memory_alert()) is True
        assert dispatcher.history_size() == 1
        assert dispatcher.is_in_cooldown("memory_usage")

    @pytest.mark.asyncio
    async def test_channel_rejection_still_records_history(self, clock) -> None:
        dispatcher = AlertDispatcher(RecordingChannel(result=False), clock=clock)

        await dispatcher.dispatch(memory_alert())
        assert dispatcher.is_in_cooldown("memory_usage")


class TestConvenienceAlerts:
    @pytest.mark.asyncio
    async def test_emergency_alert(self, dispatcher, channel) -> None:
        await dispatcher.emergency_alert("database gone")

        record = dispatcher.alert_history()[0]
        assert record.key == "emergency"
        assert record.severity is Severity.EMERGENCY
        assert channel.messages[0].startswith("[EMERGENCY] EMERGENCY ALERT")

    @pytest.mark.asyncio
    async def test_test_alert_uses_fixed_key(self, dispatcher, channel) -> None:
        await dispatcher.test_alert(Severity.WARNING)
        await dispatcher.test_alert(Severity.WARNING)

        assert len(channel.messages) == 1
        assert "severity: WARNING" in channel.messages[0]

    @pytest.mark.asyncio
    async def test_shutdown_alert(self, dispatcher, channel) -> None:
        await dispatcher.shutdown_alert("deploy")

        record = dispatcher.alert_history()[0]
        assert record.key == "system_shutdown"
        assert record.severity is Severity.EMERGENCY
        assert "Reason: deploy" in channel.messages[0]

    @pytest.mark.asyncio
    async def test_all_alerts_sends_one_per_severity(self, dispatcher, channel) -> None:
        results = await dispatcher.test_all_alerts(delay=0)

        assert results == [True, True, True, True]
        assert [message.split("]")[0] for message in channel.messages] == [
            "[INFO",
            "[WARNING",
            "[CRITICAL",
            "[EMERGENCY",
        ]
        assert dispatcher.history_size() == 4


class TestStatistics:
    @pytest.mark.asyncio
    async def test_empty_stats_are_healthy(self, dispatcher) -> None:
        stats = dispatcher.alert_stats()

        assert stats.total == 0
        assert stats.is_healthy is True
        assert stats.most_recent is None
        assert stats.severity_counts == {"info": 0, "warning": 0, "critical": 0, "emergency": 0}

    @pytest.mark.asyncio
    async def test_counts_and_health(self, dispatcher, clock) -> None:
        await dispatcher.send_alert("a", "a", Severity.WARNING, "a")
        clock.advance(10)
        await dispatcher.send_alert("b", "b", Severity.CRITICAL, "b")

        stats = dispatcher.alert_stats()
        assert stats.total == 2
        assert stats.last_24h == 2
        assert stats.severity_counts["warning"] == 1
        assert stats.severity_counts["critical"] == 1
        assert stats.most_recent.key == "b"
        assert stats.is_healthy is False

    @pytest.mark.asyncio
    async def test_old_critical_does_not_affect_health(self, dispatcher, clock) -> None:
        await dispatcher.send_alert("b", "b", Severity.CRITICAL, "b")
        clock.advance(25 * 3600)

        stats = dispatcher.alert_stats()
        assert stats.total == 1
        assert stats.last_24h == 0
        assert stats.is_healthy is True

    @pytest.mark.asyncio
    async def test_history_sorted_newest_first(self, dispatcher, clock) -> None:
        await dispatcher.send_alert("a", "a", key="a")
        clock.advance(5)
        await dispatcher.send_alert("b", "b", key="b")

        history = dispatcher.alert_history()
        assert [entry.key for entry in history] == ["b", "a"]
        assert history[1].age_seconds == 5

    @pytest.mark.asyncio
    async def test_cleanup_old_alerts(self, dispatcher, clock) -> None:
        await dispatcher.send_alert("a", "a", key="a")
        clock.advance(8 * 24 * 3600)
        await dispatcher.send_alert("b", "b", key="b")

        assert dispatcher.cleanup_old_alerts() == 1
        assert [entry.key for entry in dispatcher.alert_history()] == ["b"]


class TestRecommendations:
    def test_normal_operation(self, dispatcher) -> None:
        recommendations = dispatcher.recommendations(HealthSnapshot(), dispatcher.alert_stats())

        assert [r.action for r in recommendations] == ["continue_monitoring"]

    @pytest.mark.parametrize(("percentage", "priority"), [(80, "high"), (65, "medium")])
    def test_memory_pressure(self, dispatcher, percentage, priority) -> None:
        snapshot = HealthSnapshot(memory=MemoryStats(percentage=percentage))

        recommendations = dispatcher.recommendations(snapshot, dispatcher.alert_stats())
        assert recommendations[0].type == "memory"
        assert recommendations[0].priority == priority

    @pytest.mark.asyncio
    async def test_critical_and_frequency(self, dispatcher) -> None:
        for index in range(11):
            await dispatcher.send_alert("x", "x", Severity.CRITICAL, f"k{index}")

        recommendations = dispatcher.recommendations(HealthSnapshot(), dispatcher.alert_stats())
        assert [r.type for r in recommendations] == ["critical_alerts", "alert_frequency"]
