"""Disposable PostgreSQL servers and sandboxes for automated tests."""

from __future__ import annotations

from .database import Sandbox, ephemeral_database, run_with_ephemeral_database
from .errors import (
    CleanupFailed,
    ConnectionTimeout,
    ContainerCreationFailed,
    ContainerStartFailed,
    DatabaseProtocolError,
    PortDiscoveryFailed,
    SandboxError,
)
from .models import ConnectionParams, ContainerHandle, SandboxIdentity
from .server import RunningServer, ephemeral_server, run_with_ephemeral_server

__version__ = "0.1.0"

__all__ = [
    "CleanupFailed",
    "ConnectionParams",
    "ConnectionTimeout",
    "ContainerCreationFailed",
    "ContainerHandle",
    "ContainerStartFailed",
    "DatabaseProtocolError",
    "PortDiscoveryFailed",
    "RunningServer",
    "Sandbox",
    "SandboxError",
    "SandboxIdentity",
    "__version__",
    "ephemeral_database",
    "ephemeral_server",
    "run_with_ephemeral_database",
    "run_with_ephemeral_server",
]
