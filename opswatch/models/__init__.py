"""Domain models exposed by the opswatch package."""
from .domain import (
    AlertCandidate,
    AlertHistoryEntry,
    AlertRecord,
    AlertStats,
    CounterSet,
    DependencyStatus,
    DetailedMetrics,
    HealthSnapshot,
    IntervalBucket,
    MemoryStats,
    MonitoringStatus,
    PerformanceReport,
    PerformanceStats,
    Recommendation,
    ResourceStats,
    ResponseTimeStats,
    ResponseTimeSummary,
    Severity,
    SlowQueryRecord,
    SystemHealth,
)

__all__ = [
    "AlertCandidate",
    "AlertHistoryEntry",
    "AlertRecord",
    "AlertStats",
    "CounterSet",
    "DependencyStatus",
    "DetailedMetrics",
    "HealthSnapshot",
    "IntervalBucket",
    "MemoryStats",
    "MonitoringStatus",
    "PerformanceReport",
    "PerformanceStats",
    "Recommendation",
    "ResourceStats",
    "ResponseTimeStats",
    "ResponseTimeSummary",
    "Severity",
    "SlowQueryRecord",
    "SystemHealth",
]
