"""FastAPI application factory."""
from __future__ import annotations

from contextlib import asynccontextmanager
import time
from uuid import uuid4

from fastapi import FastAPI
from starlette.datastructures import MutableHeaders
from starlette.requests import Request

from opswatch.api.error_handlers import register_exception_handlers
from opswatch.api.router import api_router
from opswatch.core.config import Settings, get_settings
from opswatch.core.logging import clear_request_id, configure_logging, set_request_id
from opswatch.services.registry import ServiceRegistry


class RequestMetricsMiddleware:
    """Tags each request with an id and records its latency."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive=receive)
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        set_request_id(request_id)
        start = time.perf_counter()

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers["X-Request-ID"] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            clear_request_id()
            registry = getattr(scope["app"].state, "services", None) if "app" in scope else None
            if registry is not None:
                registry.recorder.record_request((time.perf_counter() - start) * 1000)


def create_app(
    settings: Settings | None = None,
    *,
    registry: ServiceRegistry | None = None,
) -> FastAPI:
    """Build the API application around an explicit service registry."""

    if registry is not None:
        settings = registry.settings
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage startup and shutdown of background services."""

        await app.state.services.startup()
        try:
            yield
        finally:
            await app.state.services.shutdown()

    app = FastAPI(
        title="opswatch",
        description="In-process metrics, health snapshots and operator alerts",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = registry or ServiceRegistry(settings)

    app.add_middleware(RequestMetricsMiddleware)
    app.include_router(api_router)
    register_exception_handlers(app)
    return app
