"""Admin token check for endpoints that change monitoring behaviour."""
from __future__ import annotations

import hmac
import logging

from fastapi import Request

from opswatch.core.exceptions import ServiceUnavailableError, UnauthorizedError

logger = logging.getLogger("opswatch.admin_audit")


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _provided_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return request.headers.get("x-admin-token", "").strip()


def enforce_admin(request: Request) -> str:
    """Validate the admin token and return the caller IP for auditing."""

    registry = request.app.state.services
    admin_token = registry.settings.admin_token or ""
    if not admin_token:
        raise ServiceUnavailableError("Admin token not configured")

    provided = _provided_token(request)
    if not provided:
        raise UnauthorizedError("Missing admin token")
    if not hmac.compare_digest(provided, admin_token):
        raise UnauthorizedError("Invalid admin token")
    return _client_ip(request)


def audit(action: str, *, ip: str, **meta: object) -> None:
    payload = {"action": action, "ip": ip, **meta}
    logger.info("admin_action %s", payload)
