"""Connection domain models."""

from __future__ import annotations

import getpass
import os
from dataclasses import dataclass, replace
from datetime import datetime
from enum import IntEnum
from typing import Any, Mapping

DEFAULT_PORT = 5432
DEFAULT_DATABASE = "postgres"
DEFAULT_SSLMODE = "prefer"
SSL_MODES = ("disable", "allow", "prefer", "require", "verify-ca", "verify-full")


def default_user() -> str:
    """Best-effort local user name, used when connecting to discovered servers."""
    user = os.environ.get("USER") or os.environ.get("USERNAME")
    if user:
        return user
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "postgres"


@dataclass
class ConnectionConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = DEFAULT_PORT
    database: str = DEFAULT_DATABASE
    user: str = ""
    password: str | None = None
    sslmode: str = DEFAULT_SSLMODE

    @property
    def name(self) -> str:
        """Display name, also the key query history is grouped under."""
        return f"{self.user}@{self.host}:{self.port}/{self.database}"

    @property
    def credential_key(self) -> str:
        """Key of this connection's password in the secret store."""
        return self.name

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConnectionConfig:
        payload = dict(data)
        try:
            port = int(payload.get("port") or DEFAULT_PORT)
        except (TypeError, ValueError):
            port = DEFAULT_PORT
        return cls(
            host=str(payload.get("host") or "localhost"),
            port=port,
            database=str(payload.get("database") or DEFAULT_DATABASE),
            user=str(payload.get("user") or ""),
            password=payload.get("password"),
            sslmode=str(payload.get("sslmode") or DEFAULT_SSLMODE),
        )

    def with_password(self, password: str | None) -> ConnectionConfig:
        return replace(self, password=password)

    def to_connect_kwargs(self, connect_timeout: int) -> dict[str, Any]:
        """Keyword arguments for ``psycopg2.connect``."""
        kwargs: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "dbname": self.database or DEFAULT_DATABASE,
            "user": self.user or None,
            "sslmode": self.sslmode or DEFAULT_SSLMODE,
            "connect_timeout": connect_timeout,
            "application_name": "pglens",
        }
        if self.password:
            kwargs["password"] = self.password
        return kwargs


class DiscoverySource(IntEnum):
    """Where a server was found; the lowest value wins for a duplicated host:port."""

    PORT_SCAN = 0
    ENVIRONMENT = 1
    PGPASS = 2

    @property
    def label(self) -> str:
        return {
            DiscoverySource.PORT_SCAN: "port scan",
            DiscoverySource.ENVIRONMENT: "environment",
            DiscoverySource.PGPASS: ".pgpass",
        }[self]


@dataclass(frozen=True)
class DiscoveredInstance:
    """A server found by discovery.

    ``database`` and ``user`` are only known for .pgpass entries.
    """

    host: str
    port: int
    response_ms: float = 0.0
    source: DiscoverySource = DiscoverySource.PORT_SCAN
    database: str = ""
    user: str = ""

    @property
    def key(self) -> tuple[str, int]:
        return (self.host, self.port)

    def to_config(self) -> ConnectionConfig:
        return ConnectionConfig(
            host=self.host,
            port=self.port,
            database=self.database or DEFAULT_DATABASE,
            user=self.user or default_user(),
            password=None,
            sslmode=DEFAULT_SSLMODE,
        )


@dataclass
class ConnectionHistoryEntry:
    """A previously used connection. Passwords are never part of the entry."""

    host: str
    port: int
    database: str
    user: str
    sslmode: str = DEFAULT_SSLMODE
    last_used: str = ""  # ISO format
    usage_count: int = 1

    @property
    def key(self) -> tuple[str, int, str, str]:
        return (self.host, self.port, self.database, self.user)

    @property
    def label(self) -> str:
        return f"{self.user}@{self.host}:{self.port}/{self.database}"

    def to_config(self) -> ConnectionConfig:
        return ConnectionConfig(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            password=None,
            sslmode=self.sslmode,
        )

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> ConnectionHistoryEntry:
        return cls(
            host=config.host,
            port=config.port,
            database=config.database,
            user=config.user,
            sslmode=config.sslmode,
            last_used=datetime.now().isoformat(),
            usage_count=1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "sslmode": self.sslmode,
            "last_used": self.last_used,
            "usage_count": self.usage_count,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConnectionHistoryEntry:
        return cls(
            host=str(data["host"]),
            port=int(data["port"]),
            database=str(data["database"]),
            user=str(data["user"]),
            sslmode=str(data.get("sslmode") or DEFAULT_SSLMODE),
            last_used=str(data.get("last_used", "")),
            usage_count=int(data.get("usage_count", 1)),
        )


@dataclass(frozen=True)
class ActiveConnection:
    """Lightweight reference to the pool-owned connection."""

    connection_id: str
    config: ConnectionConfig
    connected_at: str = ""
