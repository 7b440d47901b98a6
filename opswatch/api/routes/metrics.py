"""Metrics endpoints for operational visibility."""
from fastapi import APIRouter, Depends

from opswatch.api.dependencies import get_snapshot_builder
from opswatch.models import DetailedMetrics, HealthSnapshot, PerformanceReport
from opswatch.services.snapshot_builder import HealthSnapshotBuilder

router = APIRouter(prefix="/metrics")


@router.get("", response_model=HealthSnapshot, summary="Current metrics snapshot")
async def read_metrics(
    builder: HealthSnapshotBuilder = Depends(get_snapshot_builder),
) -> HealthSnapshot:
    return builder.snapshot()


@router.get("/detailed", response_model=DetailedMetrics, summary="Snapshot plus bucket history")
async def read_detailed_metrics(
    builder: HealthSnapshotBuilder = Depends(get_snapshot_builder),
) -> DetailedMetrics:
    return builder.detailed()


@router.get("/report", response_model=PerformanceReport, summary="Human-oriented performance report")
async def read_report(
    builder: HealthSnapshotBuilder = Depends(get_snapshot_builder),
) -> PerformanceReport:
    return builder.report()
