"""Container runtime collaborator backed by the Docker SDK."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

import docker
from docker.errors import DockerException

from .errors import ContainerRuntimeError

PortEntry = Mapping[str, Any]
ContainerSummary = Mapping[str, Any]


class ContainerRuntime(Protocol):
    """The five container operations the server provisioner needs."""

    def create_container(
        self,
        image: str,
        *,
        environment: Mapping[str, str],
        publish_all_ports: bool,
    ) -> str: ...

    def start_container(self, container_id: str) -> None: ...

    def list_containers(self, container_id: str) -> list[ContainerSummary]: ...

    def stop_container(self, container_id: str, timeout: int) -> None: ...

    def remove_container(self, container_id: str, *, force: bool, volumes: bool) -> None: ...


class DockerRuntime:
    """Talks to the local Docker daemon through ``docker.APIClient``."""

    def __init__(self, client: docker.APIClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> docker.APIClient:
        if self._client is None:
            try:
                self._client = docker.APIClient(**docker.utils.kwargs_from_env())
            except DockerException as exc:
                raise ContainerRuntimeError(f"Docker is not reachable: {exc}") from exc
        return self._client

    def create_container(
        self,
        image: str,
        *,
        environment: Mapping[str, str],
        publish_all_ports: bool,
    ) -> str:
        client = self.client
        try:
            host_config = client.create_host_config(publish_all_ports=publish_all_ports)
            created = client.create_container(
                image,
                environment=dict(environment),
                host_config=host_config,
            )
        except DockerException as exc:
            raise ContainerRuntimeError(str(exc)) from exc
        return str(created["Id"])

    def start_container(self, container_id: str) -> None:
        self._call("start", self.client.start, container_id)

    def list_containers(self, container_id: str) -> list[ContainerSummary]:
        return list(self._call("list", self.client.containers, filters={"id": container_id}))

    def stop_container(self, container_id: str, timeout: int) -> None:
        self._call("stop", self.client.stop, container_id, timeout=timeout)

    def remove_container(self, container_id: str, *, force: bool, volumes: bool) -> None:
        self._call("remove", self.client.remove_container, container_id, v=volumes, force=force)

    @staticmethod
    def _call(action: str, func: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except DockerException as exc:
            raise ContainerRuntimeError(f"Docker {action} failed: {exc}") from exc


def published_ports(summary: ContainerSummary) -> dict[int, int]:
    """Map private to public ports from a ``docker ps`` style summary."""

    ports: dict[int, int] = {}
    entries: list[PortEntry] = summary.get("Ports") or []
    for entry in entries:
        private = entry.get("PrivatePort")
        public = entry.get("PublicPort")
        if private is None or public is None:
            continue
        # IPv4 and IPv6 bindings are listed separately; keep the first.
        ports.setdefault(int(private), int(public))
    return ports


__all__ = ["ContainerRuntime", "ContainerSummary", "DockerRuntime", "published_ports"]
