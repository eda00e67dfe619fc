"""Throwaway PostgreSQL servers running in a Docker container."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import partial
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from .config import ServerSettings, load_config
from .connector import AsyncpgConnector, Connection, Connector
from .errors import ContainerCreationFailed, ContainerStartFailed, PortDiscoveryFailed
from .models import ConnectionParams, ContainerHandle
from .retry import connect_with_retry
from .runtime import ContainerRuntime, DockerRuntime, published_ports
from .teardown import Teardown, run_task

LOG = logging.getLogger(__name__)

T = TypeVar("T")

ServerTask = Callable[[ConnectionParams, Connection], Awaitable[T] | T]


@dataclass(frozen=True, slots=True)
class RunningServer:
    """A server that accepted an administrative connection."""

    params: ConnectionParams
    connection: Connection
    container: ContainerHandle


@asynccontextmanager
async def ephemeral_server(
    *,
    runtime: ContainerRuntime | None = None,
    connector: Connector | None = None,
    settings: ServerSettings | None = None,
) -> AsyncIterator[RunningServer]:
    """Start a disposable server and remove its container on exit.

    Release order is the reverse of acquisition: the admin connection is
    closed, the container is stopped, then force-removed with its volumes.
    Removal is attempted even when stopping failed.
    """

    settings = settings or load_config().server
    runtime = runtime or DockerRuntime()
    connector = connector or AsyncpgConnector()

    LOG.debug("Creating container from %s", settings.image)
    try:
        container_id = await asyncio.to_thread(
            runtime.create_container,
            settings.image,
            environment=settings.container_environment(),
            publish_all_ports=True,
        )
    except Exception as exc:
        raise ContainerCreationFailed(f"Failed to create container from '{settings.image}': {exc}") from exc
    handle = ContainerHandle(container_id)

    async with Teardown(f"container {handle.short_id}") as teardown:
        teardown.push(
            "remove container",
            partial(asyncio.to_thread, runtime.remove_container, handle.id, force=True, volumes=True),
        )
        try:
            await asyncio.to_thread(runtime.start_container, handle.id)
        except Exception as exc:
            raise ContainerStartFailed(f"Failed to start container {handle.short_id}: {exc}") from exc
        teardown.push(
            "stop container",
            partial(asyncio.to_thread, runtime.stop_container, handle.id, settings.stop_timeout),
        )

        handle = await _discover_ports(runtime, handle)
        port = handle.host_port(settings.internal_port)
        if port is None:
            raise PortDiscoveryFailed(
                f"Container {handle.short_id} publishes no host port for {settings.internal_port}"
            )
        params = settings.admin_params(port)
        LOG.debug("Container %s listening on %s:%d", handle.short_id, params.host, port)

        connection = await connect_with_retry(
            connector,
            params,
            attempts=settings.connect_attempts,
            interval=settings.connect_interval,
        )
        teardown.push("close admin connection", connection.close)
        yield RunningServer(params=params, connection=connection, container=handle)


async def run_with_ephemeral_server(
    task: ServerTask[T],
    *,
    runtime: ContainerRuntime | None = None,
    connector: Connector | None = None,
    settings: ServerSettings | None = None,
) -> T:
    """Run ``task(params, connection)`` against a disposable server.

    Returns the task's own result. A task exception propagates unchanged
    after cleanup; cleanup failures are attached to it as notes.
    """

    async with ephemeral_server(runtime=runtime, connector=connector, settings=settings) as server:
        return await run_task(task, server.params, server.connection)


async def _discover_ports(runtime: ContainerRuntime, handle: ContainerHandle) -> ContainerHandle:
    try:
        summaries = await asyncio.to_thread(runtime.list_containers, handle.id)
    except Exception as exc:
        raise PortDiscoveryFailed(f"Failed to inspect container {handle.short_id}: {exc}") from exc
    if not summaries:
        raise PortDiscoveryFailed(f"Container {handle.short_id} is not listed as running")
    return handle.with_ports(published_ports(summaries[0]))


__all__ = ["RunningServer", "ServerTask", "ephemeral_server", "run_with_ephemeral_server"]
