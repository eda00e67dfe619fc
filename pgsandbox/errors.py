"""Error taxonomy raised while provisioning ephemeral servers and sandboxes."""

from __future__ import annotations


class SandboxError(RuntimeError):
    """Base class for provisioning failures.

    Cleanup failures that happen after this error was raised are attached to
    ``cleanup_failures`` instead of replacing it.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.cleanup_failures: list[CleanupFailed] = []


class ContainerCreationFailed(SandboxError):
    """Raised when the container runtime refuses to create the container."""


class ContainerStartFailed(SandboxError):
    """Raised when a created container cannot be started."""


class PortDiscoveryFailed(SandboxError):
    """Raised when the running container exposes no host port for the server."""


class ConnectionTimeout(SandboxError):
    """Raised when the connect retry budget is exhausted."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        super().__init__(f"Server did not accept connections after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class DatabaseProtocolError(SandboxError):
    """Raised when the database collaborator fails (connect or DDL)."""


class CleanupFailed(SandboxError):
    """Raised or attached when a teardown step fails."""

    def __init__(self, step: str, error: BaseException) -> None:
        super().__init__(f"Cleanup step '{step}' failed: {error}")
        self.step = step
        self.error = error


class ContainerRuntimeError(RuntimeError):
    """Raised by container runtimes when a Docker call fails."""


def attach_cleanup_failure(primary: BaseException, failure: CleanupFailed) -> None:
    """Record ``failure`` on ``primary`` without changing what gets raised."""

    failures = getattr(primary, "cleanup_failures", None)
    if failures is None:
        failures = []
        try:
            primary.cleanup_failures = failures  # type: ignore[attr-defined]
        except AttributeError:  # pragma: no cover - exceptions with __slots__
            failures = None
    if failures is not None:
        failures.append(failure)
    primary.add_note(str(failure))


__all__ = [
    "CleanupFailed",
    "ConnectionTimeout",
    "ContainerCreationFailed",
    "ContainerRuntimeError",
    "ContainerStartFailed",
    "DatabaseProtocolError",
    "PortDiscoveryFailed",
    "SandboxError",
    "attach_cleanup_failure",
]
