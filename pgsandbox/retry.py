"""Bounded connect retry used while a fresh server is still booting."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .connector import Connection, Connector
from .errors import ConnectionTimeout
from .models import ConnectionParams

LOG = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 100
DEFAULT_INTERVAL = 0.1


async def connect_with_retry(
    connector: Connector,
    params: ConnectionParams,
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    interval: float = DEFAULT_INTERVAL,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> Connection:
    """Connect, sleeping ``interval`` seconds between at most ``attempts`` tries.

    A container reports "running" before PostgreSQL accepts connections, so
    early failures are expected. Raises ``ConnectionTimeout`` carrying the last
    connect error once the budget is spent.
    """

    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            connection = await connector.connect(params)
        except Exception as exc:
            last_error = exc
            LOG.debug("Connect attempt %d/%d failed: %s", attempt, attempts, exc)
        else:
            LOG.debug("Connected after %d attempt(s)", attempt)
            return connection
        if attempt < attempts:
            await sleep(interval)
    raise ConnectionTimeout(attempts, last_error) from last_error


__all__ = ["DEFAULT_ATTEMPTS", "DEFAULT_INTERVAL", "connect_with_retry"]
