"""Settings loading helpers."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal, TypeVar

import tomllib

from pydantic import BaseModel, Field, ValidationError, field_validator

from .models import MIN_NAME_LENGTH, MIN_PASSWORD_LENGTH, ConnectionParams
from .naming import ALPHABET, is_safe_name

LOG = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

CONFIG_ENV_VAR = "PGSANDBOX_CONFIG"
CONFIG_FILE = Path.home() / ".config" / "pgsandbox" / "config.toml"


class ServerSettings(BaseModel):
    """How the throwaway server container is launched and reached."""

    image: str = "postgres:16-alpine"
    internal_port: int = 5432
    host: str = "localhost"
    admin_user: str = "postgres"
    admin_password: str = "postgres"
    admin_database: str = "postgres"
    connect_timeout: float = 5.0
    ssl: Literal["disable", "allow", "prefer", "require", "verify-ca", "verify-full"] | None = None
    connect_attempts: int = Field(default=100, ge=1)
    connect_interval: float = Field(default=0.1, ge=0)
    stop_timeout: int = Field(default=5, ge=0)
    environment: dict[str, str] = Field(default_factory=dict)

    def container_environment(self) -> dict[str, str]:
        """Environment passed to the image; the admin password always wins."""

        env = dict(self.environment)
        env["POSTGRES_USER"] = self.admin_user
        env["POSTGRES_PASSWORD"] = self.admin_password
        env["POSTGRES_DB"] = self.admin_database
        return env

    def admin_params(self, port: int) -> ConnectionParams:
        return ConnectionParams(
            host=self.host,
            port=port,
            user=self.admin_user,
            password=self.admin_password,
            database=self.admin_database,
            connect_timeout=self.connect_timeout,
            ssl=self.ssl,
        )


class DatabaseSettings(BaseModel):
    """How sandbox databases are named and prepared."""

    name_prefix: str = "sandbox"
    name_length: int = Field(default=MIN_NAME_LENGTH, ge=MIN_NAME_LENGTH)
    password_length: int = Field(default=MIN_PASSWORD_LENGTH, ge=MIN_PASSWORD_LENGTH)
    # DROP DATABASE ... WITH (FORCE) needs PostgreSQL 13 or newer.
    force_drop: bool = False
    extensions: list[str] = Field(default_factory=list)

    @field_validator("name_prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if value and not is_safe_name(value):
            raise ValueError(f"name_prefix may only contain characters from {ALPHABET!r}")
        return value


class SandboxConfig(BaseModel):
    """Shape of the configuration file."""

    server: ServerSettings = Field(default_factory=ServerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)


def config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return CONFIG_FILE


def load_config() -> SandboxConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    path = config_path()
    try:
        data = _read_config_file(path)
    except FileNotFoundError:
        return SandboxConfig()
    except (tomllib.TOMLDecodeError, OSError) as exc:
        LOG.warning("Ignoring unreadable config %s: %s", path, exc)
        return SandboxConfig()

    server = _section(ServerSettings, data.get("server"), path)
    database = _section(DatabaseSettings, data.get("database"), path)
    return SandboxConfig(server=server, database=database)


def _section(model: type[ModelT], raw: object, path: Path) -> ModelT:
    if not isinstance(raw, dict):
        return model()
    try:
        return model(**raw)
    except ValidationError as exc:
        LOG.warning("Ignoring invalid [%s] settings in %s: %s", model.__name__, path, exc)
        return model()


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    return raw if isinstance(raw, dict) else {}


__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILE",
    "DatabaseSettings",
    "SandboxConfig",
    "ServerSettings",
    "config_path",
    "load_config",
]
