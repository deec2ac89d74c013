"""Store for recently used connections."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from pglens.domains.connections.app.credentials import CredentialsService, get_credentials_service
from pglens.domains.connections.domain.config import ConnectionConfig, ConnectionHistoryEntry
from pglens.shared.core.store import CONFIG_DIR, JSONFileStore

logger = logging.getLogger(__name__)


class ConnectionHistoryStore(JSONFileStore):
    """Recently used connections, most recent first.

    Stored as a JSON array in ~/.pglens/connection_history.json. Entries are
    keyed by (host, port, database, user); passwords go to the credentials
    service, never into this file.
    """

    MAX_ENTRIES = 50
    _instance: ConnectionHistoryStore | None = None

    def __init__(self, file_path: Path | None = None, credentials: CredentialsService | None = None) -> None:
        super().__init__(file_path or CONFIG_DIR / "connection_history.json")
        self._credentials = credentials

    @classmethod
    def get_instance(cls) -> ConnectionHistoryStore:
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def credentials(self) -> CredentialsService:
        if self._credentials is None:
            self._credentials = get_credentials_service()
        return self._credentials

    def _load_entries(self) -> list[ConnectionHistoryEntry]:
        data = self._read_json()
        if not isinstance(data, list):
            return []
        entries = []
        for item in data:
            try:
                entries.append(ConnectionHistoryEntry.from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed connection history entry: %r", item)
        return entries

    def recent(self, limit: int | None = None) -> list[ConnectionHistoryEntry]:
        """Entries sorted by last use, newest first."""
        entries = sorted(self._load_entries(), key=lambda e: e.last_used, reverse=True)
        return entries[:limit] if limit is not None else entries

    def add(self, config: ConnectionConfig) -> ConnectionHistoryEntry:
        """Record a successful connection.

        Re-adding a known connection bumps its usage count and last-used
        time. The password, if any, is handed to the credentials service.
        """
        entries = self._load_entries()
        now = datetime.now().isoformat()
        key = (config.host, config.port, config.database, config.user)
        for entry in entries:
            if entry.key == key:
                entry.usage_count += 1
                entry.last_used = now
                entry.sslmode = config.sslmode
                result = entry
                break
        else:
            result = ConnectionHistoryEntry.from_config(config)
            result.last_used = now
            entries.append(result)

        entries.sort(key=lambda e: e.last_used, reverse=True)
        self._write_json([entry.to_dict() for entry in entries[: self.MAX_ENTRIES]])

        if config.password:
            self.credentials.set_password(config.credential_key, config.password)
        return result

    def delete(self, entry: ConnectionHistoryEntry) -> bool:
        entries = self._load_entries()
        remaining = [e for e in entries if e.key != entry.key]
        if len(remaining) == len(entries):
            return False
        self._write_json([e.to_dict() for e in remaining])
        self.credentials.delete_password(entry.to_config().credential_key)
        return True

    def with_saved_password(self, config: ConnectionConfig) -> ConnectionConfig:
        """``config`` with the password stored for it filled in (None if there is none)."""
        return config.with_password(self.credentials.get_password(config.credential_key))
