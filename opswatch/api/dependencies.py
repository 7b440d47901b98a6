"""FastAPI dependency providers."""
from fastapi import Depends, Request

from opswatch.services.alert_dispatcher import AlertDispatcher
from opswatch.services.monitoring_service import MonitoringService
from opswatch.services.registry import ServiceRegistry
from opswatch.services.snapshot_builder import HealthSnapshotBuilder


def get_service_registry(request: Request) -> ServiceRegistry:
    """Return the service registry stored on the FastAPI application state."""

    registry = getattr(request.app.state, "services", None)
    if not isinstance(registry, ServiceRegistry):
        raise RuntimeError("Service registry not initialised")
    return registry


def get_snapshot_builder(
    registry: ServiceRegistry = Depends(get_service_registry),
) -> HealthSnapshotBuilder:
    return registry.snapshot_builder


def get_alert_dispatcher(
    registry: ServiceRegistry = Depends(get_service_registry),
) -> AlertDispatcher:
    return registry.dispatcher


def get_monitoring_service(
    registry: ServiceRegistry = Depends(get_service_registry),
) -> MonitoringService:
    return registry.monitoring_service
