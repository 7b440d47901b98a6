"""Logging setup and request-id context for the opswatch service."""
from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

from opswatch.core.config import Settings

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "[%(filename)s:%(lineno)d] - request_id=%(request_id)s - %(message)s"
)

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_factory_installed = False


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


def clear_request_id() -> None:
    _request_id.set(None)


@contextmanager
def request_context(request_id: str) -> Iterator[None]:
    token = _request_id.set(request_id)
    try:
        yield
    finally:
        _request_id.reset(token)


def job_context(job_name: str):
    """Context used by background jobs so their records read ``bg:<job>``."""
    return request_context(f"bg:{job_name}")


def _install_record_factory() -> None:
    global _factory_installed
    if _factory_installed:
        return
    old_factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs) -> logging.LogRecord:
        record = old_factory(*args, **kwargs)
        record.request_id = get_request_id() or "system"
        return record

    logging.setLogRecordFactory(record_factory)
    _factory_installed = True


def configure_logging(
    settings: Settings, *,
    logger_name: str = "opswatch",
) -> logging.Logger:
    """Configure the root logger and return the application logger.

    Args:
        settings: Application settings containing log-level information.
        logger_name: Name of the logger to retrieve.

    Returns:
        Configured logger instance.
    """

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    _install_record_factory()
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)

    #logging.getLogger("opswatch.services.metrics_recorder").setLevel(logging.DEBUG)
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    logger.debug("Logging configured with level %s", logging.getLevelName(log_level))
    return logger
