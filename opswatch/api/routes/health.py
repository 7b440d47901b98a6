"""Health check endpoint."""
from fastapi import APIRouter, Depends

from opswatch.api.dependencies import get_monitoring_service
from opswatch.models import SystemHealth
from opswatch.services.monitoring_service import MonitoringService

router = APIRouter()


@router.get("/health", response_model=SystemHealth, summary="Overall system health")
async def health_check(
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> SystemHealth:
    return monitoring.system_health()
