"""Domain models for recorded metrics, snapshots and alerts."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer


class Severity(int, Enum):
    """Ordered alert severity: INFO < WARNING < CRITICAL < EMERGENCY."""

    INFO = 0
    WARNING = 1
    CRITICAL = 2
    EMERGENCY = 3

    @property
    def label(self) -> str:
        return self.name

    @property
    def requires_immediate_action(self) -> bool:
        return self >= Severity.CRITICAL

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError as exc:
                raise ValueError(f"Unknown severity '{value}'") from exc
        return cls(value)


SeverityField = Annotated[
    Severity,
    BeforeValidator(Severity.parse),
    PlainSerializer(lambda severity: severity.label.lower(), return_type=str),
]


@dataclass(slots=True)
class CounterSet:
    """Monotonic counters owned by the metrics recorder."""

    requests: int = 0
    errors: int = 0
    db_queries: int = 0
    cache_hits: int = 0
    cache_misses: int = 0


@dataclass(slots=True)
class ResponseTimeStats:
    total: float = 0
    count: int = 0
    min: Optional[float] = None
    max: float = 0

    def observe(self, value: float) -> None:
        self.total += value
        self.count += 1
        self.min = value if self.min is None else min(self.min, value)
        self.max = max(self.max, value)

    @property
    def average(self) -> int:
        if self.count == 0:
            return 0
        return round(self.total / self.count)


@dataclass
class IntervalBucket:
    """Requests and errors counted during one rotation interval."""

    start_time: float
    requests: int = 0
    errors: int = 0
    duration_ms: int = 0

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration_ms / 1000


@dataclass
class SlowQueryRecord:
    query: str
    elapsed_ms: float
    timestamp: float


class DependencyStatus(BaseModel):
    """Facts reported by an external dependency probe."""

    initialized: bool
    rpc_latency_ms: float = 0
    last_event_timestamp: Optional[float] = Field(
        default=None,
        description="Unix timestamp (seconds) of the newest event seen by the dependency",
    )


class MemoryStats(BaseModel):
    used_mb: int = 0
    heap_mb: int = 0
    percentage: int = 0


class PerformanceStats(BaseModel):
    total_requests: int = 0
    requests_per_minute: int = 0
    error_rate_percent: float = 0
    cache_hit_rate_percent: float = 0
    avg_response_time_ms: int = 0


class ResourceStats(BaseModel):
    """Host resource facts; None when the platform cannot report them."""

    cpu_percent: Optional[float] = None
    disk_percent: Optional[float] = None


class HealthSnapshot(BaseModel):
    """Point-in-time view of aggregated metrics and process facts."""

    uptime_minutes: int = 0
    memory: MemoryStats = Field(default_factory=MemoryStats)
    performance: PerformanceStats = Field(default_factory=PerformanceStats)
    resources: ResourceStats = Field(default_factory=ResourceStats)


class ResponseTimeSummary(BaseModel):
    min: float = 0
    max: float = 0
    avg: int = 0


class DetailedMetrics(HealthSnapshot):
    """Snapshot plus diagnostic history; never used for alert decisions."""

    db_query_count: int = 0
    slow_query_count: int = 0
    slow_queries: List[SlowQueryRecord] = Field(default_factory=list)
    response_time: ResponseTimeSummary = Field(default_factory=ResponseTimeSummary)
    bucket_history: List[IntervalBucket] = Field(default_factory=list)
    hour_history: List[IntervalBucket] = Field(default_factory=list)
    current_bucket: Optional[IntervalBucket] = None


class PerformanceReport(BaseModel):
    timestamp: str
    summary: Dict[str, Any] = Field(default_factory=dict)
    performance: Dict[str, Any] = Field(default_factory=dict)
    system: Dict[str, Any] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)


class AlertCandidate(BaseModel):
    """An alert proposed by the evaluator, not yet deduplicated."""

    title: str
    message: str
    severity: SeverityField = Severity.INFO
    key: Optional[str] = Field(
        default=None,
        description="Deduplication key; keyless alerts bypass cooldown",
    )


class AlertRecord(BaseModel):
    """Latest delivered occurrence of a keyed alert."""

    key: str
    timestamp: float
    title: str
    message: str
    severity: SeverityField


class AlertHistoryEntry(AlertRecord):
    age_seconds: float = 0


class AlertStats(BaseModel):
    total: int = 0
    last_24h: int = 0
    severity_counts: Dict[str, int] = Field(
        default_factory=lambda: {severity.label.lower(): 0 for severity in Severity}
    )
    most_recent: Optional[AlertHistoryEntry] = None
    is_healthy: bool = True


class Recommendation(BaseModel):
    type: str
    priority: str
    message: str
    action: str


class SystemHealth(BaseModel):
    status: str
    timestamp: str
    alerts: AlertStats
    system: HealthSnapshot
    recommendations: List[Recommendation] = Field(default_factory=list)


class MonitoringStatus(BaseModel):
    active: bool
    cooldown_seconds: float
    thresholds: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    alert_history_size: int = 0
    jobs: List[Dict[str, Any]] = Field(default_factory=list)
