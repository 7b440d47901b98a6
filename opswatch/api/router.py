"""Root API router that aggregates all endpoint modules."""
from fastapi import APIRouter

from opswatch.api.routes import alerts, health, metrics

api_router = APIRouter(prefix="/api")
api_router.include_router(health.router, tags=["health"])
api_router.include_router(metrics.router, tags=["metrics"])
api_router.include_router(alerts.router, tags=["alerts"])
