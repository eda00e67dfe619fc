"""Isolated database + login role sandboxes inside an existing server.

Methodology follows http://wiki.postgresql.org/wiki/Shared_Database_Hosting:
a restricted role owns a fresh database that ``public`` cannot reach.
"""

from __future__ import annotations

import logging
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import partial
from typing import AsyncIterator, Awaitable, Callable, Sequence, TypeVar

from .config import DatabaseSettings, load_config
from .connector import AsyncpgConnector, Connection, Connector, execute_batch
from .errors import DatabaseProtocolError
from .models import ConnectionParams, SandboxIdentity
from .naming import quote_ident, quote_literal
from .teardown import Teardown, run_task

LOG = logging.getLogger(__name__)

T = TypeVar("T")

DatabaseTask = Callable[[ConnectionParams], Awaitable[T] | T]


@dataclass(frozen=True, slots=True)
class Sandbox:
    """A provisioned sandbox and the params that reach it."""

    identity: SandboxIdentity
    params: ConnectionParams


def create_role_sql(identity: SandboxIdentity) -> str:
    return (
        f"CREATE ROLE {quote_ident(identity.role)} "
        "NOSUPERUSER NOCREATEDB NOCREATEROLE NOINHERIT "
        f"LOGIN ENCRYPTED PASSWORD {quote_literal(identity.password)};"
    )


def create_database_sql(identity: SandboxIdentity) -> str:
    return f"CREATE DATABASE {quote_ident(identity.database)} WITH OWNER = {quote_ident(identity.role)};"


def revoke_public_sql(identity: SandboxIdentity) -> str:
    return f"REVOKE ALL ON DATABASE {quote_ident(identity.database)} FROM public;"


def drop_database_sql(identity: SandboxIdentity, *, force: bool = False) -> str:
    suffix = " WITH (FORCE)" if force else ""
    return f"DROP DATABASE {quote_ident(identity.database)}{suffix};"


def drop_role_sql(identity: SandboxIdentity) -> str:
    return f"DROP ROLE {quote_ident(identity.role)};"


@asynccontextmanager
async def ephemeral_database(
    server_params: ConnectionParams,
    *,
    connector: Connector | None = None,
    settings: DatabaseSettings | None = None,
    rng: random.Random | None = None,
) -> AsyncIterator[Sandbox]:
    """Create a sandbox database and role; drop both on exit.

    ``server_params`` must carry administrative credentials. The connection
    opened with them stays open for the sandbox lifetime and is the only one
    used for teardown: ``DROP DATABASE`` first, then ``DROP ROLE``.
    """

    settings = settings or load_config().database
    connector = connector or AsyncpgConnector()
    identity = SandboxIdentity.generate(
        rng,
        prefix=settings.name_prefix,
        name_length=settings.name_length,
        password_length=settings.password_length,
    )

    LOG.debug("Creating sandbox database %s owned by role %s", identity.database, identity.role)
    admin = await _connect(connector, server_params)

    async with Teardown(f"sandbox {identity.database}") as teardown:
        teardown.push("close administrative connection", admin.close)

        # CREATE DATABASE cannot run inside a transaction block and a
        # multi-statement batch is implicitly wrapped in one, so every DDL
        # statement goes out on its own.
        await execute_batch(admin, create_role_sql(identity))
        teardown.push("drop role", partial(execute_batch, admin, drop_role_sql(identity)))

        await execute_batch(admin, create_database_sql(identity))
        teardown.push(
            "drop database",
            partial(execute_batch, admin, drop_database_sql(identity, force=settings.force_drop)),
        )
        await execute_batch(admin, revoke_public_sql(identity))

        if settings.extensions:
            await _install_extensions(
                connector, server_params.with_database(identity.database), settings.extensions
            )
        LOG.debug("Finished setting up sandbox %s", identity.database)

        yield Sandbox(identity=identity, params=server_params.for_sandbox(identity))


async def run_with_ephemeral_database(
    server_params: ConnectionParams,
    task: DatabaseTask[T],
    *,
    connector: Connector | None = None,
    settings: DatabaseSettings | None = None,
    rng: random.Random | None = None,
) -> T:
    """Run ``task(sandbox_params)`` inside a fresh sandbox and return its result."""

    async with ephemeral_database(
        server_params, connector=connector, settings=settings, rng=rng
    ) as sandbox:
        return await run_task(task, sandbox.params)


async def _connect(connector: Connector, params: ConnectionParams) -> Connection:
    try:
        return await connector.connect(params)
    except DatabaseProtocolError:
        raise
    except Exception as exc:
        raise DatabaseProtocolError(f"Failed to connect to {params.to_dsn()}: {exc}") from exc


async def _install_extensions(
    connector: Connector, params: ConnectionParams, extensions: Sequence[str]
) -> None:
    async with Teardown(f"extension setup in {params.database}") as teardown:
        connection = await _connect(connector, params)
        teardown.push("close extension connection", connection.close)
        for name in extensions:
            LOG.debug("Installing extension %s in %s", name, params.database)
            await execute_batch(connection, f"CREATE EXTENSION IF NOT EXISTS {quote_ident(name)};")


__all__ = [
    "DatabaseTask",
    "Sandbox",
    "create_database_sql",
    "create_role_sql",
    "drop_database_sql",
    "drop_role_sql",
    "ephemeral_database",
    "revoke_public_sql",
    "run_with_ephemeral_database",
]
