"""Smoke check that provisions a sandbox, uses it and verifies teardown."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import asyncpg

from .config import SandboxConfig, load_config
from .database import run_with_ephemeral_database
from .errors import SandboxError
from .models import SSL_MODES, ConnectionParams
from .server import run_with_ephemeral_server

LOG = logging.getLogger(__name__)


async def exercise_sandbox(params: ConnectionParams) -> int:
    """Create a table, insert a row and read it back using sandbox credentials."""

    conn = await asyncpg.connect(**params.connect_kwargs())
    try:
        await conn.execute("CREATE TABLE smoke (id integer PRIMARY KEY, note text)")
        await conn.execute("INSERT INTO smoke VALUES (1, 'hello')")
        return int(await conn.fetchval("SELECT count(*) FROM smoke"))
    finally:
        await conn.close()


async def database_exists(params: ConnectionParams, name: str) -> bool:
    conn = await asyncpg.connect(**params.connect_kwargs())
    try:
        found = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", name)
    finally:
        await conn.close()
    return found is not None


async def check_server(params: ConnectionParams, config: SandboxConfig) -> str:
    """Run the sandbox round trip against ``params``; return the sandbox name."""

    seen: list[str] = []

    async def _task(sandbox_params: ConnectionParams) -> int:
        seen.append(sandbox_params.database)
        return await exercise_sandbox(sandbox_params)

    rows = await run_with_ephemeral_database(params, _task, settings=config.database)
    name = seen[0]
    if rows != 1:
        raise RuntimeError(f"Sandbox {name} returned {rows} row(s), expected 1")
    if await database_exists(params, name):
        raise RuntimeError(f"Sandbox database {name} still exists after teardown")
    LOG.debug("Sandbox %s verified absent after teardown", name)
    return name


async def run(args: argparse.Namespace, config: SandboxConfig) -> str:
    if args.host:
        params = ConnectionParams(
            host=args.host,
            port=args.port,
            user=args.user,
            password=args.password,
            database=args.database,
            connect_timeout=config.server.connect_timeout,
            ssl=args.ssl,
        )
        return await check_server(params, config)
    return await run_with_ephemeral_server(
        lambda params, _connection: check_server(params, config),
        settings=config.server,
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pgsandbox", description=__doc__)
    parser.add_argument("--host", help="Use an existing server instead of starting a container")
    parser.add_argument("--port", type=int, default=5432, help="Port of the existing server")
    parser.add_argument("--user", default="postgres", help="Administrative user")
    parser.add_argument("--password", default=None, help="Administrative password")
    parser.add_argument("--database", default="postgres", help="Database to connect to")
    parser.add_argument("--ssl", choices=SSL_MODES, default=None, help="TLS mode for the existing server")
    parser.add_argument("--image", default=None, help="Docker image for the throwaway server")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log lifecycle steps")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config()
    if args.image:
        config = config.model_copy(
            update={"server": config.server.model_copy(update={"image": args.image})}
        )
    try:
        name = asyncio.run(run(args, config))
    except SandboxError as exc:
        print(f"Provisioning failed: {exc}", file=sys.stderr)
        for failure in exc.cleanup_failures:
            print(f"  also: {failure}", file=sys.stderr)
        return 1
    except (RuntimeError, OSError, asyncpg.PostgresError) as exc:
        print(f"Smoke check failed: {exc}", file=sys.stderr)
        return 1
    print(f"Sandbox {name} was created, used and removed.")
    return 0


__all__ = ["check_server", "database_exists", "exercise_sandbox", "main", "parse_args", "run"]
