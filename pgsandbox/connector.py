"""Database collaborator: open connections and run statement batches."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import asyncpg

from .errors import DatabaseProtocolError
from .models import ConnectionParams

LOG = logging.getLogger(__name__)


@runtime_checkable
class Connection(Protocol):
    """Subset of a database connection the provisioners rely on."""

    async def execute(self, sql: str) -> Any:
        """Run one or more statements outside of an explicit transaction."""

    async def close(self) -> None:
        """Close the connection."""


class Connector(Protocol):
    """Protocol implemented by database connectors."""

    async def connect(self, params: ConnectionParams) -> Connection: ...


class AsyncpgConnector:
    """Opens PostgreSQL connections via asyncpg.

    ``Connection.execute`` without arguments uses the simple query protocol,
    so a batch is sent as-is. A multi-statement batch is implicitly wrapped in
    one transaction by the server, which is why ``CREATE DATABASE`` and
    ``DROP DATABASE`` are always sent on their own.
    """

    async def connect(self, params: ConnectionParams) -> asyncpg.Connection:
        LOG.debug("Connecting to %s", params.to_dsn())
        try:
            return await asyncpg.connect(**params.connect_kwargs())
        except Exception as exc:
            raise DatabaseProtocolError(
                f"Failed to connect to {params.to_dsn()}: {exc}"
            ) from exc


async def execute_batch(connection: Connection, sql: str) -> Any:
    """Run ``sql`` and normalize collaborator failures."""

    try:
        return await connection.execute(sql)
    except Exception as exc:
        raise DatabaseProtocolError(f"Statement failed: {exc}") from exc


__all__ = ["AsyncpgConnector", "Connection", "Connector", "execute_batch"]
