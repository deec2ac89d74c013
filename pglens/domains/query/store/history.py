"""Query history store."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from pglens.shared.core.store import CONFIG_DIR, JSONFileStore


@dataclass
class QueryHistoryEntry:
    """One executed query."""

    connection_name: str
    database_name: str
    query: str
    duration_ms: float = 0.0
    rows_affected: int = 0
    success: bool = True
    error_message: str | None = None
    executed_at: str = field(default_factory=lambda: datetime.now().isoformat())
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "connection_name": self.connection_name,
            "database_name": self.database_name,
            "query": self.query,
            "executed_at": self.executed_at,
            "duration_ms": self.duration_ms,
            "rows_affected": self.rows_affected,
            "success": self.success,
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueryHistoryEntry:
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            connection_name=data["connection_name"],
            database_name=data.get("database_name", ""),
            query=data["query"],
            executed_at=data.get("executed_at", ""),
            duration_ms=float(data.get("duration_ms", 0.0)),
            rows_affected=int(data.get("rows_affected", 0)),
            success=bool(data.get("success", True)),
            error_message=data.get("error_message"),
        )


class QueryHistoryStore(JSONFileStore):
    """Store for executed queries.

    History is stored as a JSON array in ~/.pglens/query_history.json,
    oldest first, capped at MAX_ENTRIES.
    """

    MAX_ENTRIES = 1000
    _instance: QueryHistoryStore | None = None

    def __init__(self, file_path: Path | None = None) -> None:
        super().__init__(file_path or CONFIG_DIR / "query_history.json")

    @classmethod
    def get_instance(cls) -> QueryHistoryStore:
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def _load_entries(self) -> list[QueryHistoryEntry]:
        data = self._read_json()
        if not isinstance(data, list):
            return []
        entries = []
        for item in data:
            try:
                entries.append(QueryHistoryEntry.from_dict(item))
            except (KeyError, TypeError, ValueError):
                continue
        return entries

    def add(self, entry: QueryHistoryEntry) -> None:
        """Append ``entry``, dropping the oldest entries beyond the cap."""
        entries = self._load_entries()
        entries.append(entry)
        entries = entries[-self.MAX_ENTRIES :]
        self._write_json([e.to_dict() for e in entries])

    def recent(self, limit: int = 50) -> list[QueryHistoryEntry]:
        """Most recent entries first."""
        entries = self._load_entries()
        entries.sort(key=lambda e: e.executed_at, reverse=True)
        return entries[:limit]

    def search(self, text: str, limit: int = 50) -> list[QueryHistoryEntry]:
        """Entries whose query contains ``text`` (case-insensitive), newest first."""
        needle = text.lower()
        return [e for e in self.recent(self.MAX_ENTRIES) if needle in e.query.lower()][:limit]

    def clear(self) -> int:
        count = len(self._load_entries())
        self._write_json([])
        return count
