"""Dependency probe contracts supplied by the host application."""
from __future__ import annotations

import time
from typing import Awaitable, Callable

from opswatch.models import DependencyStatus

# Returns the ping latency in milliseconds; raises on failure.
DatabasePing = Callable[[], Awaitable[float]]
# Returns the dependency's liveness facts; raises on failure.
DependencyStatusProbe = Callable[[], Awaitable[DependencyStatus]]


def timed_ping(ping: Callable[[], Awaitable[object]]) -> DatabasePing:
    """Wrap a plain ping coroutine (e.g. ``SELECT 1``) into a latency probe."""

    async def _probe() -> float:
        start = time.perf_counter()
        await ping()
        return (time.perf_counter() - start) * 1000

    return _probe
