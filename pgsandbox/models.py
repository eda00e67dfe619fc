"""Value types shared by the server and database provisioners."""

from __future__ import annotations

import random
import ssl as ssl_module
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping
from urllib.parse import quote, urlencode

from .naming import ALPHABET, random_string

MIN_NAME_LENGTH = 20
MIN_PASSWORD_LENGTH = 32

# Values accepted by asyncpg's ``ssl=`` argument: a libpq sslmode name,
# a bool, or a ready SSLContext.
SslMode = str | bool | ssl_module.SSLContext

SSL_MODES = ("disable", "allow", "prefer", "require", "verify-ca", "verify-full")


@dataclass(frozen=True, slots=True)
class ConnectionParams:
    """Everything needed to open a connection to one PostgreSQL database."""

    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str | None = None
    database: str = "postgres"
    connect_timeout: float = 5.0
    options: Mapping[str, str] = field(default_factory=dict)
    ssl: SslMode | None = None

    def __post_init__(self) -> None:
        # Copy so later mutation of the caller's dict cannot leak in.
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))
        if "sslmode" in self.options:
            raise ValueError("sslmode is a client setting; pass it as ssl= instead of an option")
        if isinstance(self.ssl, str) and self.ssl not in SSL_MODES:
            raise ValueError(f"unknown ssl mode {self.ssl!r}")

    def __hash__(self) -> int:
        return hash(
            (
                self.host,
                self.port,
                self.user,
                self.password,
                self.database,
                self.connect_timeout,
                tuple(self.options.items()),
                self.ssl,
            )
        )

    def with_credentials(self, user: str, password: str | None) -> ConnectionParams:
        return replace(self, user=user, password=password)

    def with_database(self, database: str) -> ConnectionParams:
        return replace(self, database=database)

    def for_sandbox(self, identity: SandboxIdentity) -> ConnectionParams:
        """Point a copy of these params at the sandbox database and role.

        Host, port, timeout, options and TLS mode carry over unchanged.
        """

        return replace(
            self,
            user=identity.role,
            password=identity.password,
            database=identity.database,
        )

    def connect_kwargs(self) -> dict[str, object]:
        """Keyword arguments accepted by ``asyncpg.connect``."""

        kwargs: dict[str, object] = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "database": self.database,
            "timeout": self.connect_timeout,
        }
        if self.password is not None:
            kwargs["password"] = self.password
        if self.options:
            kwargs["server_settings"] = dict(self.options)
        if self.ssl is not None:
            kwargs["ssl"] = self.ssl
        return kwargs

    def to_dsn(self, *, reveal_password: bool = False) -> str:
        credentials = quote(self.user, safe="")
        if self.password is not None:
            secret = quote(self.password, safe="") if reveal_password else "***"
            credentials = f"{credentials}:{secret}"
        dsn = f"postgresql://{credentials}@{self.host}:{self.port}/{quote(self.database, safe='')}"
        query = list(self.options.items())
        if isinstance(self.ssl, str):
            query.append(("sslmode", self.ssl))
        elif self.ssl is True:
            query.append(("sslmode", "require"))
        elif self.ssl is False:
            query.append(("sslmode", "disable"))
        if query:
            dsn = f"{dsn}?{urlencode(query)}"
        return dsn

    def __repr__(self) -> str:
        masked = None if self.password is None else "***"
        return (
            f"ConnectionParams(host={self.host!r}, port={self.port!r}, user={self.user!r}, "
            f"password={masked!r}, database={self.database!r}, "
            f"connect_timeout={self.connect_timeout!r}, options={dict(self.options)!r}, ssl={self.ssl!r})"
        )


@dataclass(frozen=True, slots=True)
class ContainerHandle:
    """A created container and, once running, its published ports."""

    id: str
    ports: Mapping[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "ports", MappingProxyType(dict(self.ports)))

    def __hash__(self) -> int:
        return hash((self.id, tuple(self.ports.items())))

    def with_ports(self, ports: Mapping[int, int]) -> ContainerHandle:
        return replace(self, ports=ports)

    def host_port(self, internal_port: int) -> int | None:
        return self.ports.get(internal_port)

    @property
    def short_id(self) -> str:
        return self.id[:12]


@dataclass(frozen=True, slots=True)
class SandboxIdentity:
    """Generated database name, role name and password for one sandbox."""

    database: str
    role: str
    password: str = field(repr=False)

    @classmethod
    def generate(
        cls,
        rng: random.Random | None = None,
        *,
        prefix: str = "sandbox",
        name_length: int = MIN_NAME_LENGTH,
        password_length: int = MIN_PASSWORD_LENGTH,
    ) -> SandboxIdentity:
        if name_length < MIN_NAME_LENGTH:
            raise ValueError(f"name_length must be at least {MIN_NAME_LENGTH}")
        if password_length < MIN_PASSWORD_LENGTH:
            raise ValueError(f"password_length must be at least {MIN_PASSWORD_LENGTH}")
        if any(char not in ALPHABET for char in prefix):
            raise ValueError("prefix may only contain [a-z0-9]")
        name = prefix + random_string(name_length, rng)
        return cls(database=name, role=name, password=random_string(password_length, rng))


__all__ = [
    "ConnectionParams",
    "ContainerHandle",
    "MIN_NAME_LENGTH",
    "MIN_PASSWORD_LENGTH",
    "SSL_MODES",
    "SandboxIdentity",
    "SslMode",
]
