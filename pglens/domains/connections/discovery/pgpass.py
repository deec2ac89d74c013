"""Servers listed in the libpq password file.

Lines have the form ``host:port:database:user:password``; ``\\:`` and
``\\\\`` escape a colon and a backslash, ``*`` matches anything. libpq
ignores the file unless only its owner can read it, and so do we.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path

from pglens.domains.connections.domain.config import DEFAULT_PORT, DiscoveredInstance, DiscoverySource
from pglens.shared.core.errors import PgPassError

logger = logging.getLogger(__name__)

PGPASS_FILE_NAME = ".pgpass"
WILDCARD = "*"


@dataclass(frozen=True)
class PgPassEntry:
    host: str
    port: int
    database: str
    user: str
    password: str


def pgpass_path() -> Path:
    """``$PGPASSFILE`` if set, else ``~/.pgpass``."""
    override = os.environ.get("PGPASSFILE")
    if override:
        return Path(override).expanduser()
    return Path.home() / PGPASS_FILE_NAME


def split_fields(line: str) -> list[str]:
    fields: list[str] = []
    current: list[str] = []
    escaped = False
    for char in line:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ":":
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))
    return fields


def parse_line(line: str) -> PgPassEntry | None:
    """Entry for one non-comment line, or None if the line is malformed."""
    fields = split_fields(line)
    if len(fields) != 5:
        return None
    host, port_text, database, user, password = fields
    port = DEFAULT_PORT
    if port_text != WILDCARD:
        try:
            port = int(port_text)
        except ValueError:
            return None
        if not 0 < port < 65536:
            return None
    return PgPassEntry(host=host, port=port, database=database, user=user, password=password)


def read_pgpass(path: Path | None = None) -> list[PgPassEntry]:
    """Entries of the password file; a missing file has none.

    Raises PgPassError when the file is group or world accessible, or
    cannot be read.
    """
    path = path or pgpass_path()
    try:
        mode = path.stat().st_mode
    except FileNotFoundError:
        return []
    except OSError as error:
        raise PgPassError(f"Cannot read {path}: {error}") from error
    if os.name != "nt" and stat.S_IMODE(mode) & 0o077:
        raise PgPassError(f"{path} has insecure permissions {stat.S_IMODE(mode):04o}, must be 0600")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as error:
        raise PgPassError(f"Cannot read {path}: {error}") from error

    entries = []
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        entry = parse_line(line)
        if entry is None:
            logger.debug("Skipping malformed line %d of %s", number, path)
            continue
        entries.append(entry)
    return entries


def pgpass_instances(path: Path | None = None) -> list[DiscoveredInstance]:
    """One instance per distinct host:port, skipping wildcard hosts."""
    try:
        entries = read_pgpass(path)
    except PgPassError as error:
        logger.warning("Ignoring password file: %s", error)
        return []
    instances: dict[tuple[str, int], DiscoveredInstance] = {}
    for entry in entries:
        if entry.host == WILDCARD or (entry.host, entry.port) in instances:
            continue
        instances[(entry.host, entry.port)] = DiscoveredInstance(
            host=entry.host,
            port=entry.port,
            source=DiscoverySource.PGPASS,
            database="" if entry.database == WILDCARD else entry.database,
            user="" if entry.user == WILDCARD else entry.user,
        )
    return list(instances.values())

