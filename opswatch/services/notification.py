"""Notification channels that deliver formatted alerts to an operator."""
from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationChannel(Protocol):
    """Single-method transport contract used by the alert dispatcher."""

    async def send_to_operator(self, message: str) -> bool:
        ...


class LoggingNotificationChannel:
    """Writes alerts to the application log; used when no transport is configured."""

    def __init__(self, logger_name: str = "opswatch.alerts") -> None:
        self._logger = logging.getLogger(logger_name)

    async def send_to_operator(self, message: str) -> bool:
        self._logger.warning("Operator notification:\n%s", message)
        return True


class WebhookNotificationChannel:
    """POSTs ``{"text": message}`` to an operator webhook (chat bot, relay...)."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def send_to_operator(self, message: str) -> bool:
        try:
            response = await self._get_client().post(self._url, json={"text": message})
        except httpx.HTTPError as exc:
            logger.warning("Webhook delivery to %s failed: %s", self._url, exc)
            return False
        if response.is_success:
            return True
        logger.warning(
            "Webhook %s rejected notification with status %s", self._url, response.status_code
        )
        return False

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
