"""Health-check cycle and system health reporting."""
from __future__ import annotations

from datetime import datetime, timezone
import logging
import time
from typing import Callable, List, Optional

from opswatch.core.config import MonitorConfig
from opswatch.models import (
    AlertCandidate,
    MonitoringStatus,
    Severity,
    SystemHealth,
)
from opswatch.services.alert_dispatcher import AlertDispatcher
from opswatch.services.scheduler import Scheduler
from opswatch.services.snapshot_builder import HealthSnapshotBuilder
from opswatch.services.threshold_evaluator import ThresholdEvaluator

logger = logging.getLogger(__name__)

HEALTH_CHECK_KEY = "health_check"


class MonitoringService:
    """Glues snapshot, evaluation and dispatch into one health-check cycle."""

    def __init__(
        self,
        config: MonitorConfig,
        snapshot_builder: HealthSnapshotBuilder,
        evaluator: ThresholdEvaluator,
        dispatcher: AlertDispatcher,
        *,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._snapshot_builder = snapshot_builder
        self._evaluator = evaluator
        self._dispatcher = dispatcher
        self._scheduler = scheduler
        self._clock = clock

    async def run_health_check(self) -> List[AlertCandidate]:
        """Evaluate the current snapshot and dispatch the resulting alerts.

        Never raises: an unexpected failure is reported as a single WARNING
        "Health Check Failed" alert instead.
        """

        try:
            snapshot = self._snapshot_builder.snapshot()
            candidates = await self._evaluator.evaluate(snapshot)
            for candidate in candidates:
                await self._dispatcher.dispatch(candidate)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Health check error")
            failure = AlertCandidate(
                title="Health Check Failed",
                message=f"System health check encountered an error: {exc}",
                severity=Severity.WARNING,
                key=HEALTH_CHECK_KEY,
            )
            try:
                await self._dispatcher.dispatch(failure)
            except Exception:  # noqa: BLE001
                logger.exception("Unable to report health check failure")
            return [failure]
        if candidates:
            logger.info("Health check produced %s alert candidates", len(candidates))
        return candidates

    def system_health(self) -> SystemHealth:
        stats = self._dispatcher.alert_stats()
        snapshot = self._snapshot_builder.snapshot()
        return SystemHealth(
            status="healthy" if stats.is_healthy else "unhealthy",
            timestamp=datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
            alerts=stats,
            system=snapshot,
            recommendations=self._dispatcher.recommendations(snapshot, stats),
        )

    def update_threshold(self, metric: str, level: str, value: float) -> dict:
        updated = self._evaluator.thresholds.update(metric, level, value)
        logger.info("Updated %s %s threshold to %s", metric, level, value)
        return updated.model_dump()

    def set_cooldown(self, seconds: float) -> None:
        self._dispatcher.set_cooldown(seconds)
        self._config.cooldown_duration_ms = round(seconds * 1000)

    def monitoring_status(self) -> MonitoringStatus:
        jobs = self._scheduler.jobs if self._scheduler else []
        return MonitoringStatus(
            active=bool(self._scheduler and self._scheduler.running),
            cooldown_seconds=self._dispatcher.cooldown,
            thresholds=self._evaluator.thresholds.model_dump(),
            alert_history_size=self._dispatcher.history_size(),
            jobs=[job.status() for job in jobs],
        )
