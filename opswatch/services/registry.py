"""Service registry that wires the monitoring engine together."""
import asyncio
import gc
import logging
import time
from typing import Callable, Optional

from opswatch.core.config import Settings
from opswatch.core.logging import request_context
from opswatch.core.tasks import LifecycleManager
from opswatch.services.alert_dispatcher import AlertDispatcher
from opswatch.services.metrics_recorder import MetricsRecorder
from opswatch.services.monitoring_service import MonitoringService
from opswatch.services.notification import (
    LoggingNotificationChannel,
    NotificationChannel,
    WebhookNotificationChannel,
)
from opswatch.services.probes import DatabasePing, DependencyStatusProbe
from opswatch.services.scheduler import Scheduler
from opswatch.services.snapshot_builder import (
    HealthSnapshotBuilder,
    ProcessFacts,
    PsutilProcessProbe,
)
from opswatch.services.threshold_evaluator import ReleaseHint, ThresholdEvaluator
from opswatch.services.window_aggregator import WindowAggregator

logger = logging.getLogger(__name__)


class ServiceRegistry:
    """Container object for dependency injection.

    Built once at application start and handed to every collaborator that
    needs the recorder, dispatcher or monitoring service.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        channel: Optional[NotificationChannel] = None,
        database_ping: Optional[DatabasePing] = None,
        dependency_status: Optional[DependencyStatusProbe] = None,
        process_probe: Optional[Callable[[], ProcessFacts]] = None,
        release_hint: Optional[ReleaseHint] = gc.collect,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        monitor = settings.monitor
        self.monitor_config = monitor
        self.channel = channel or self._build_channel(settings)
        self.recorder = MetricsRecorder(
            slow_query_threshold_ms=monitor.slow_query_threshold_ms,
            slow_query_capacity=monitor.slow_query_capacity,
            clock=clock,
        )
        self.aggregator = WindowAggregator(
            self.recorder,
            rotation_interval=monitor.rotation_interval,
            minute_retention=monitor.minute_retention,
            hour_retention=monitor.hour_retention,
            clock=clock,
        )
        self.snapshot_builder = HealthSnapshotBuilder(
            self.recorder,
            self.aggregator,
            capacity_baseline_bytes=monitor.capacity_baseline_bytes,
            process_probe=process_probe or PsutilProcessProbe(disk_path=monitor.disk_path),
            clock=clock,
        )
        self.evaluator = ThresholdEvaluator(
            monitor.thresholds,
            database_ping=database_ping,
            dependency_status=dependency_status,
            database_timeout=monitor.database_probe_timeout,
            dependency_timeout=monitor.dependency_probe_timeout,
            release_hint=release_hint,
            clock=clock,
        )
        self.dispatcher = AlertDispatcher(
            self.channel,
            cooldown_seconds=monitor.cooldown_duration_ms / 1000,
            clock=clock,
        )
        self.scheduler = Scheduler()
        self.monitoring_service = MonitoringService(
            monitor,
            self.snapshot_builder,
            self.evaluator,
            self.dispatcher,
            scheduler=self.scheduler,
            clock=clock,
        )
        self._register_jobs()
        self._startup_lock = asyncio.Lock()
        self._shutdown_lock = asyncio.Lock()
        self._lifecycle = LifecycleManager(name="service-registry", logger=logger)

    @staticmethod
    def _build_channel(settings: Settings) -> NotificationChannel:
        if settings.webhook_url:
            return WebhookNotificationChannel(settings.webhook_url, timeout=settings.webhook_timeout)
        return LoggingNotificationChannel()

    def _register_jobs(self) -> None:
        monitor = self.monitor_config
        self.scheduler.add_job(
            "health-check", monitor.health_check_interval, self.monitoring_service.run_health_check
        )
        self.scheduler.add_job("rotation", monitor.rotation_interval, self.aggregator.rotate)
        self.scheduler.add_job("cleanup", monitor.cleanup_interval, self.run_cleanup)

    def run_cleanup(self) -> None:
        self.aggregator.cleanup()
        self.dispatcher.cleanup_old_alerts(self.monitor_config.alert_retention)

    async def _close_channel(self) -> None:
        close = getattr(self.channel, "close", None)
        if close is not None:
            await close()

    async def startup(self) -> None:
        async with self._startup_lock:
            with request_context("bg:registry"):
                logger.info("Starting monitoring services")
                await self._lifecycle.start([self.scheduler.start])
                logger.info("Monitoring services started")

    async def _stop_services(self, reason: str) -> None:
        await self.scheduler.stop()
        await self.dispatcher.shutdown_alert(reason)
        self.dispatcher.clear()
        await self._close_channel()

    async def shutdown(self, reason: str = "application shutdown") -> None:
        async with self._shutdown_lock:
            with request_context("bg:registry"):
                logger.info("Stopping monitoring services")
                await self._lifecycle.stop([lambda: self._stop_services(reason)])
                logger.info("Monitoring services stopped")
