"""Exception hierarchy shared by the monitoring engine and the API layer."""
from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base exception for application specific errors."""

    status_code = 500
    error_code = "app_error"
    default_detail = "An unexpected error occurred."

    def __init__(self, detail: str | None = None, *, extra: dict[str, Any] | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail
        self.extra = extra or {}


class ProbeError(AppError):
    """Raised when a dependency probe cannot produce a reading."""

    error_code = "probe_failed"
    default_detail = "Dependency probe failed."

    def __init__(self, probe_name: str, detail: str | None = None, *, extra: dict[str, Any] | None = None) -> None:
        self.probe_name = probe_name
        message = detail or f"{probe_name} probe failed"
        payload = {"probe": probe_name}
        if extra:
            payload.update(extra)
        super().__init__(message, extra=payload)


class DomainError(AppError):
    """Normalized domain error surfaced to API handlers."""


class BadRequestError(DomainError):
    status_code = 400
    error_code = "bad_request"
    default_detail = "Invalid request."


class UnauthorizedError(DomainError):
    status_code = 401
    error_code = "unauthorized"
    default_detail = "Unauthorized."


class NotFoundError(DomainError):
    status_code = 404
    error_code = "not_found"
    default_detail = "Resource not found."


class ServiceUnavailableError(DomainError):
    status_code = 503
    error_code = "service_unavailable"
    default_detail = "Service unavailable."
