"""Alert history, statistics and administration endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from opswatch.api.admin_auth import audit, enforce_admin
from opswatch.api.dependencies import get_alert_dispatcher, get_monitoring_service
from opswatch.core.config import ThresholdConfig
from opswatch.core.exceptions import BadRequestError, NotFoundError
from opswatch.models import AlertHistoryEntry, AlertStats, MonitoringStatus
from opswatch.schemas import (
    CooldownUpdateRequest,
    DispatchResult,
    ManualAlertRequest,
    ThresholdUpdateRequest,
)
from opswatch.services.alert_dispatcher import AlertDispatcher
from opswatch.services.monitoring_service import MonitoringService

router = APIRouter(prefix="/alerts")


@router.get("", response_model=list[AlertHistoryEntry], summary="Latest alert per key")
async def read_alert_history(
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
) -> list[AlertHistoryEntry]:
    return dispatcher.alert_history()


@router.get("/stats", response_model=AlertStats, summary="Alert counts over the last 24 hours")
async def read_alert_stats(
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
) -> AlertStats:
    return dispatcher.alert_stats()


@router.get("/status", response_model=MonitoringStatus, summary="Scheduler and threshold state")
async def read_monitoring_status(
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> MonitoringStatus:
    return monitoring.monitoring_status()


@router.put("/thresholds/{metric}", summary="Update a metric threshold")
async def update_threshold(
    metric: str,
    payload: ThresholdUpdateRequest,
    request: Request,
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> dict:
    ip = enforce_admin(request)
    if metric not in ThresholdConfig.metric_names():
        raise NotFoundError(f"Unknown threshold metric '{metric}'")
    try:
        updated = monitoring.update_threshold(metric, payload.level, payload.value)
    except ValueError as exc:
        raise BadRequestError(str(exc)) from exc
    audit("threshold_update", ip=ip, metric=metric, level=payload.level, value=payload.value)
    return {"metric": metric, **updated}


@router.put("/cooldown", summary="Update the global alert cooldown")
async def update_cooldown(
    payload: CooldownUpdateRequest,
    request: Request,
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> dict:
    ip = enforce_admin(request)
    monitoring.set_cooldown(payload.cooldown_ms / 1000)
    audit("cooldown_update", ip=ip, cooldown_ms=payload.cooldown_ms)
    return {"cooldown_ms": payload.cooldown_ms}


@router.post("/test", response_model=DispatchResult, summary="Send a test alert")
async def send_test_alert(
    payload: ManualAlertRequest,
    request: Request,
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
) -> DispatchResult:
    ip = enforce_admin(request)
    sent = await dispatcher.test_alert(payload.severity)
    audit("test_alert", ip=ip, severity=payload.severity.label)
    return DispatchResult(
        sent=sent,
        message="Test alert dispatched" if sent else "Test alert suppressed by cooldown",
    )
