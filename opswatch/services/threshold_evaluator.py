"""Compare snapshots and dependency probes against configured thresholds."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
import gc
import logging
import math
import time
from typing import Callable, Optional

from opswatch.core.config import ThresholdConfig, ThresholdLevel
from opswatch.core.exceptions import ProbeError
from opswatch.models import AlertCandidate, DependencyStatus, HealthSnapshot, Severity
from opswatch.services.probes import DatabasePing, DependencyStatusProbe

logger = logging.getLogger(__name__)

ReleaseHint = Callable[[], object]


@dataclass(frozen=True)
class MetricRule:
    """How to phrase the alerts for one thresholded metric."""

    key: str
    threshold: str
    critical_title: str
    critical_text: str
    warning_title: str
    warning_text: str


MEMORY_RULE = MetricRule(
    key="memory_usage",
    threshold="memory",
    critical_title="Critical Memory Usage",
    critical_text="Memory usage is critically high: {value}MB ({extra}% of capacity). System may become unstable.",
    warning_title="High Memory Usage",
    warning_text="Memory usage is high: {value}MB ({extra}% of capacity). Consider monitoring closely.",
)
CPU_RULE = MetricRule(
    key="cpu_usage",
    threshold="cpu",
    critical_title="Critical CPU Usage",
    critical_text="Process CPU usage is critically high: {value}%.",
    warning_title="High CPU Usage",
    warning_text="Process CPU usage is elevated: {value}%.",
)
RESPONSE_TIME_RULE = MetricRule(
    key="response_time",
    threshold="response_time",
    critical_title="Critical Response Time",
    critical_text="Average response time is critically slow: {value}ms. Users may experience timeouts.",
    warning_title="Slow Response Time",
    warning_text="Average response time is slow: {value}ms. Performance optimization recommended.",
)
ERROR_RATE_RULE = MetricRule(
    key="error_rate",
    threshold="error_rate",
    critical_title="Critical Error Rate",
    critical_text="Error rate is critically high: {value}%. System stability is compromised.",
    warning_title="High Error Rate",
    warning_text="Error rate is elevated: {value}%. Investigation recommended.",
)
DISK_RULE = MetricRule(
    key="disk_space",
    threshold="disk_space",
    critical_title="Critical Disk Usage",
    critical_text="Disk usage is critically high: {value}%.",
    warning_title="High Disk Usage",
    warning_text="Disk usage is high: {value}%.",
)
DATABASE_LATENCY_RULE = MetricRule(
    key="database_health",
    threshold="database_latency",
    critical_title="Database Unresponsive",
    critical_text="Database ping took {value}ms. Database is close to unusable.",
    warning_title="Database Performance Issue",
    warning_text="Database ping took {value}ms to complete. Database may be overloaded.",
)
DEPENDENCY_LATENCY_RULE = MetricRule(
    key="dependency_health",
    threshold="dependency_latency",
    critical_title="Dependency RPC Unresponsive",
    critical_text="Dependency RPC response took {value}ms. Calls are likely timing out.",
    warning_title="Dependency RPC Slow",
    warning_text="Dependency RPC response took {value}ms. Network connectivity issues detected.",
)
DEPENDENCY_STALENESS_RULE = MetricRule(
    key="dependency_sync",
    threshold="dependency_staleness",
    critical_title="Dependency Sync Lost",
    critical_text="Latest dependency event is from {extra} ({value}s ago). Dependency appears stalled.",
    warning_title="Dependency Sync Issue",
    warning_text="Latest dependency event is from {extra} ({value}s ago). Dependency may be lagging.",
)

DATABASE_CONNECTION_KEY = "database_connection"
DEPENDENCY_CONNECTION_KEY = "dependency_connection"
DEPENDENCY_INIT_KEY = "dependency_init"


# Raised while turning a probe result into numbers (NaN, None, out-of-range epoch).
UNREADABLE_ERRORS = (TypeError, ValueError, OverflowError, OSError)


def _finite_reading(value: object, what: str) -> float:
    if value is None or isinstance(value, bool):
        raise TypeError(f"{what} is missing")
    number = float(value)  # type: ignore[arg-type]
    if not math.isfinite(number):
        raise ValueError(f"{what} is not a finite number: {value!r}")
    return number


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


class ThresholdEvaluator:
    """Turns a snapshot plus probe readings into alert candidates.

    Each metric yields at most one candidate per pass: the critical level is
    checked first and, when it matches, the warning level is not consulted.
    Probe failures map straight to a CRITICAL on the probe's own key.
    """

    def __init__(
        self,
        thresholds: ThresholdConfig,
        *,
        database_ping: Optional[DatabasePing] = None,
        dependency_status: Optional[DependencyStatusProbe] = None,
        database_timeout: float = 5,
        dependency_timeout: float = 10,
        release_hint: Optional[ReleaseHint] = gc.collect,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.thresholds = thresholds
        self._database_ping = database_ping
        self._dependency_status = dependency_status
        self._database_timeout = database_timeout
        self._dependency_timeout = dependency_timeout
        self._release_hint = release_hint
        self._clock = clock

    def set_probes(
        self,
        *,
        database_ping: Optional[DatabasePing] = None,
        dependency_status: Optional[DependencyStatusProbe] = None,
    ) -> None:
        if database_ping is not None:
            self._database_ping = database_ping
        if dependency_status is not None:
            self._dependency_status = dependency_status

    async def evaluate(self, snapshot: HealthSnapshot) -> list[AlertCandidate]:
        """Run every check; a check that blows up only loses its own candidates."""

        candidates: list[AlertCandidate] = []
        try:
            candidates.extend(self.evaluate_snapshot(snapshot))
        except Exception:  # noqa: BLE001
            logger.exception("Snapshot threshold checks failed")
        for name, check in (("database", self.check_database), ("dependency", self.check_dependency)):
            try:
                candidates.extend(await check())
            except Exception:  # noqa: BLE001
                logger.exception("%s check failed", name.capitalize())
        return candidates

    def evaluate_snapshot(self, snapshot: HealthSnapshot) -> list[AlertCandidate]:
        """Threshold checks that need nothing beyond the snapshot."""

        candidates: list[AlertCandidate] = []
        memory = snapshot.memory
        memory_alert = self._check(MEMORY_RULE, memory.used_mb, extra=memory.percentage)
        if memory_alert:
            candidates.append(memory_alert)
            if memory_alert.severity == Severity.CRITICAL:
                self._request_memory_release()

        performance = snapshot.performance
        for rule, value in (
            (RESPONSE_TIME_RULE, performance.avg_response_time_ms),
            (ERROR_RATE_RULE, performance.error_rate_percent),
            (CPU_RULE, snapshot.resources.cpu_percent),
            (DISK_RULE, snapshot.resources.disk_percent),
        ):
            candidate = self._check(rule, value)
            if candidate:
                candidates.append(candidate)
        return candidates

    async def check_database(self) -> list[AlertCandidate]:
        if self._database_ping is None:
            return []
        try:
            latency = await self._run_probe("database", self._database_ping, self._database_timeout)
            latency_ms = round(_finite_reading(latency, "latency"))
        except ProbeError as exc:
            return [self._database_failure(f"Unable to connect to database: {exc.detail}")]
        except UNREADABLE_ERRORS as exc:
            return [self._database_failure(f"Database ping returned an unreadable latency: {exc}")]
        candidate = self._check(DATABASE_LATENCY_RULE, latency_ms)
        return [candidate] if candidate else []

    async def check_dependency(self) -> list[AlertCandidate]:
        if self._dependency_status is None:
            return []
        age: Optional[int] = None
        seen_at = ""
        try:
            status = await self._run_probe(
                "dependency", self._dependency_status, self._dependency_timeout
            )
            if not isinstance(status, DependencyStatus):
                status = DependencyStatus.model_validate(status)
            if not status.initialized:
                return [
                    AlertCandidate(
                        title="Dependency Not Initialized",
                        message="Dependency service is not initialized. Calls relying on it may fail.",
                        severity=Severity.CRITICAL,
                        key=DEPENDENCY_INIT_KEY,
                    )
                ]
            latency_ms = round(_finite_reading(status.rpc_latency_ms, "RPC latency"))
            if status.last_event_timestamp is not None:
                last_event = _finite_reading(status.last_event_timestamp, "event timestamp")
                seen_at = datetime.fromtimestamp(last_event, tz=timezone.utc).isoformat()
                age = max(0, round(self._clock() - last_event))
        except ProbeError as exc:
            return [self._dependency_failure(f"Unable to reach dependency: {exc.detail}")]
        except UNREADABLE_ERRORS as exc:
            return [self._dependency_failure(f"Dependency returned an unreadable status: {exc}")]

        candidates: list[AlertCandidate] = []
        latency_alert = self._check(DEPENDENCY_LATENCY_RULE, latency_ms)
        if latency_alert:
            candidates.append(latency_alert)
        staleness_alert = self._check(DEPENDENCY_STALENESS_RULE, age, extra=seen_at)
        if staleness_alert:
            candidates.append(staleness_alert)
        return candidates

    @staticmethod
    def _database_failure(message: str) -> AlertCandidate:
        return AlertCandidate(
            title="Database Connection Failed",
            message=message,
            severity=Severity.CRITICAL,
            key=DATABASE_CONNECTION_KEY,
        )

    @staticmethod
    def _dependency_failure(message: str) -> AlertCandidate:
        return AlertCandidate(
            title="Dependency Connection Failed",
            message=message,
            severity=Severity.CRITICAL,
            key=DEPENDENCY_CONNECTION_KEY,
        )

    async def _run_probe(self, name: str, probe, timeout: float):
        try:
            return await asyncio.wait_for(probe(), timeout=timeout)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError as exc:
            raise ProbeError(name, f"{name} probe timed out after {timeout}s") from exc
        except ProbeError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise ProbeError(name, str(exc) or exc.__class__.__name__) from exc

    def _check(self, rule: MetricRule, value: Optional[float], *, extra: object = "") -> AlertCandidate | None:
        if value is None:
            return None
        level: ThresholdLevel = self.thresholds.level_for(rule.threshold)
        shown = _format_number(value)
        if value >= level.critical:
            return AlertCandidate(
                title=rule.critical_title,
                message=rule.critical_text.format(value=shown, extra=extra),
                severity=Severity.CRITICAL,
                key=rule.key,
            )
        if value >= level.warning:
            return AlertCandidate(
                title=rule.warning_title,
                message=rule.warning_text.format(value=shown, extra=extra),
                severity=Severity.WARNING,
                key=rule.key,
            )
        return None

    def _request_memory_release(self) -> None:
        if self._release_hint is None:
            return
        try:
            self._release_hint()
            logger.info("Requested memory release due to critical memory usage")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Memory release hint failed: %s", exc)
