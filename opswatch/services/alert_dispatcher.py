"""Deduplicate, format and deliver alert candidates to the operator."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
import time
from typing import Callable, Dict, List, Optional

from opswatch.models import (
    AlertCandidate,
    AlertHistoryEntry,
    AlertRecord,
    AlertStats,
    HealthSnapshot,
    Recommendation,
    Severity,
)
from opswatch.services.notification import NotificationChannel

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60
ALERT_FREQUENCY_LIMIT = 10


def format_alert(candidate: AlertCandidate, timestamp: float) -> str:
    """Render the operator-facing text for an alert."""
    severity = candidate.severity
    issued_at = datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
    if severity.requires_immediate_action:
        call_out = "IMMEDIATE ACTION REQUIRED!"
    else:
        call_out = "Please review when convenient."
    return (
        f"[{severity.label}] {candidate.title}\n\n"
        f"Details: {candidate.message}\n"
        f"Time: {issued_at}\n"
        f"Severity: {severity.label}\n\n"
        f"{call_out}"
    )


class AlertDispatcher:
    """Sends alerts through a notification channel with per-key cooldown.

    History keeps one record per key, always the latest delivery attempt.
    The cooldown decision looks only at ``now - last timestamp`` for the key;
    a failed send still opens a new cooldown window.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        *,
        cooldown_seconds: float = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._channel = channel
        self._cooldown = cooldown_seconds
        self._clock = clock
        self._history: Dict[str, AlertRecord] = {}

    @property
    def cooldown(self) -> float:
        return self._cooldown

    def set_cooldown(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("Cooldown must not be negative")
        self._cooldown = seconds
        logger.info("Alert cooldown set to %ss", seconds)

    def is_in_cooldown(self, key: str, now: float | None = None) -> bool:
        record = self._history.get(key)
        if record is None:
            return False
        now = self._clock() if now is None else now
        return (now - record.timestamp) < self._cooldown

    async def dispatch(self, candidate: AlertCandidate) -> bool:
        """Deliver ``candidate`` unless its key is cooling down.

        Returns True when a send was attempted, False when suppressed.
        """

        now = self._clock()
        if candidate.key and self.is_in_cooldown(candidate.key, now):
            logger.debug("Suppressed alert %s (cooldown)", candidate.key)
            return False

        if candidate.key:
            # Recorded before the send; a second dispatch of this key during the send is suppressed.
            self._history[candidate.key] = AlertRecord(
                key=candidate.key,
                timestamp=now,
                title=candidate.title,
                message=candidate.message,
                severity=candidate.severity,
            )

        message = format_alert(candidate, now)
        logger.warning(
            "ALERT [%s]: %s - %s", candidate.severity.label, candidate.title, candidate.message
        )
        try:
            delivered = await self._channel.send_to_operator(message)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to send alert %r: %s", candidate.title, exc, exc_info=exc)
            return True
        if delivered is False:
            logger.error("Notification channel rejected alert %r", candidate.title)
        return True

    async def send_alert(
        self,
        title: str,
        message: str,
        severity: Severity = Severity.INFO,
        key: Optional[str] = None,
    ) -> bool:
        return await self.dispatch(
            AlertCandidate(title=title, message=message, severity=severity, key=key)
        )

    async def emergency_alert(self, message: str) -> bool:
        return await self.send_alert("EMERGENCY ALERT", message, Severity.EMERGENCY, "emergency")

    async def shutdown_alert(self, reason: str) -> bool:
        return await self.send_alert(
            "System Shutdown Initiated",
            f"System shutdown initiated. Reason: {reason}",
            Severity.EMERGENCY,
            "system_shutdown",
        )

    async def test_alert(self, severity: Severity = Severity.INFO, key: str = "test_alert") -> bool:
        return await self.send_alert(
            "Test Alert",
            f"This is a test alert with severity: {severity.label}",
            severity,
            key,
        )

    async def test_all_alerts(self, delay: float = 1.0) -> list[bool]:
        """Send one test alert per severity, each on its own key, ``delay`` seconds apart."""

        results: list[bool] = []
        for index, severity in enumerate(Severity):
            if index and delay > 0:
                await asyncio.sleep(delay)
            results.append(await self.test_alert(severity, key=f"test_alert_{severity.label.lower()}"))
        return results

    def alert_history(self) -> List[AlertHistoryEntry]:
        now = self._clock()
        entries = [
            AlertHistoryEntry(**record.model_dump(), age_seconds=max(0.0, now - record.timestamp))
            for record in self._history.values()
        ]
        entries.sort(key=lambda entry: entry.timestamp, reverse=True)
        return entries

    def alert_stats(self) -> AlertStats:
        history = self.alert_history()
        now = self._clock()
        recent = [entry for entry in history if now - entry.timestamp < DAY_SECONDS]
        stats = AlertStats(
            total=len(history),
            last_24h=len(recent),
            most_recent=history[0] if history else None,
        )
        for entry in recent:
            stats.severity_counts[entry.severity.label.lower()] += 1
        stats.is_healthy = not any(entry.severity.requires_immediate_action for entry in recent)
        return stats

    def recommendations(self, snapshot: HealthSnapshot, stats: AlertStats) -> List[Recommendation]:
        recommendations: List[Recommendation] = []
        memory_percentage = snapshot.memory.percentage
        if memory_percentage > 75:
            recommendations.append(
                Recommendation(
                    type="memory",
                    priority="high",
                    message="Consider restarting the application to free memory",
                    action="restart_application",
                )
            )
        elif memory_percentage > 60:
            recommendations.append(
                Recommendation(
                    type="memory",
                    priority="medium",
                    message="Monitor memory usage closely",
                    action="monitor_memory",
                )
            )

        critical_count = stats.severity_counts.get("critical", 0) + stats.severity_counts.get("emergency", 0)
        if critical_count > 0:
            recommendations.append(
                Recommendation(
                    type="critical_alerts",
                    priority="high",
                    message="Critical alerts detected - immediate attention required",
                    action="investigate_critical",
                )
            )

        if stats.last_24h > ALERT_FREQUENCY_LIMIT:
            recommendations.append(
                Recommendation(
                    type="alert_frequency",
                    priority="medium",
                    message="High alert frequency indicates system instability",
                    action="system_optimization",
                )
            )

        if not recommendations:
            recommendations.append(
                Recommendation(
                    type="system_health",
                    priority="low",
                    message="System is operating normally",
                    action="continue_monitoring",
                )
            )
        return recommendations

    def cleanup_old_alerts(self, max_age: float = 7 * DAY_SECONDS) -> int:
        cutoff = self._clock() - max_age
        stale = [key for key, record in self._history.items() if record.timestamp < cutoff]
        for key in stale:
            del self._history[key]
        if stale:
            logger.info("Cleaned up %s old alerts", len(stale))
        return len(stale)

    def history_size(self) -> int:
        return len(self._history)

    def clear(self) -> None:
        self._history.clear()
