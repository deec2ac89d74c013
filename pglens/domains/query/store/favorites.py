"""Favorite (saved) queries store."""

from __future__ import annotations

import csv
import json
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from pglens.shared.core.errors import FavoriteError
from pglens.shared.core.store import CONFIG_DIR, JSONFileStore

CSV_HEADER = [
    "Name",
    "Description",
    "Query",
    "Tags",
    "Connection",
    "Database",
    "Created",
    "Updated",
    "Last Used",
    "Usage Count",
]


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class Favorite:
    name: str
    query: str
    description: str = ""
    connection: str = ""
    database: str = ""
    tags: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)
    usage_count: int = 0
    last_used: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "query": self.query,
            "connection": self.connection,
            "database": self.database,
            "tags": list(self.tags),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "usage_count": self.usage_count,
            "last_used": self.last_used,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Favorite:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            query=data["query"],
            description=data.get("description", ""),
            connection=data.get("connection", ""),
            database=data.get("database", ""),
            tags=list(data.get("tags") or []),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            usage_count=int(data.get("usage_count", 0)),
            last_used=data.get("last_used"),
        )


class FavoritesStore(JSONFileStore):
    """Store for favorite queries.

    Favorites are stored as a JSON array in ~/.pglens/favorites.json.
    Names are unique, compared case-insensitively.
    """

    _instance: FavoritesStore | None = None

    def __init__(self, file_path: Path | None = None) -> None:
        super().__init__(file_path or CONFIG_DIR / "favorites.json")

    @classmethod
    def get_instance(cls) -> FavoritesStore:
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_all(self) -> list[Favorite]:
        data = self._read_json()
        if not isinstance(data, list):
            return []
        favorites = []
        for item in data:
            try:
                favorites.append(Favorite.from_dict(item))
            except (KeyError, TypeError, ValueError):
                continue
        return favorites

    def _save(self, favorites: list[Favorite]) -> None:
        self._write_json([f.to_dict() for f in favorites])

    @staticmethod
    def _check(name: str, query: str, favorites: list[Favorite], exclude_id: str | None = None) -> None:
        if not name.strip():
            raise FavoriteError("Favorite name cannot be empty")
        if not query.strip():
            raise FavoriteError("Favorite query cannot be empty")
        lowered = name.strip().lower()
        for favorite in favorites:
            if favorite.id != exclude_id and favorite.name.lower() == lowered:
                raise FavoriteError(f"A favorite named '{name}' already exists (names are case-insensitive)")

    def get(self, favorite_id: str) -> Favorite:
        for favorite in self.load_all():
            if favorite.id == favorite_id:
                return favorite
        raise FavoriteError(f"Favorite with ID '{favorite_id}' was not found")

    def add(
        self,
        name: str,
        query: str,
        description: str = "",
        connection: str = "",
        database: str = "",
        tags: list[str] | None = None,
    ) -> Favorite:
        favorites = self.load_all()
        self._check(name, query, favorites)
        favorite = Favorite(
            name=name.strip(),
            query=query.strip(),
            description=description,
            connection=connection,
            database=database,
            tags=list(tags or []),
        )
        favorites.append(favorite)
        self._save(favorites)
        return favorite

    def update(
        self,
        favorite_id: str,
        name: str,
        query: str,
        description: str = "",
        tags: list[str] | None = None,
    ) -> Favorite:
        favorites = self.load_all()
        self._check(name, query, favorites, exclude_id=favorite_id)
        for favorite in favorites:
            if favorite.id == favorite_id:
                favorite.name = name.strip()
                favorite.query = query.strip()
                favorite.description = description
                favorite.tags = list(tags or [])
                favorite.updated_at = _now()
                self._save(favorites)
                return favorite
        raise FavoriteError(f"Favorite with ID '{favorite_id}' was not found")

    def delete(self, favorite_id: str) -> Favorite:
        favorites = self.load_all()
        for index, favorite in enumerate(favorites):
            if favorite.id == favorite_id:
                del favorites[index]
                self._save(favorites)
                return favorite
        raise FavoriteError(f"Favorite with ID '{favorite_id}' was not found")

    def record_usage(self, favorite_id: str) -> Favorite:
        favorites = self.load_all()
        for favorite in favorites:
            if favorite.id == favorite_id:
                favorite.usage_count += 1
                favorite.last_used = _now()
                self._save(favorites)
                return favorite
        raise FavoriteError(f"Favorite with ID '{favorite_id}' was not found")

    def search(self, text: str) -> list[Favorite]:
        needle = text.lower()
        return [
            f
            for f in self.load_all()
            if needle in f.name.lower()
            or needle in f.description.lower()
            or needle in f.query.lower()
            or any(needle in tag.lower() for tag in f.tags)
        ]

    # -- export ------------------------------------------------------------

    def export_csv(self, path: Path | None = None) -> Path:
        """Write all favorites to a CSV file and return its path."""
        favorites = self._require_favorites()
        target = path or self.file_path.parent / "favorites_export.csv"
        self._ensure_dir()
        with open(target, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADER)
            for fav in favorites:
                writer.writerow(
                    [
                        fav.name,
                        fav.description,
                        fav.query,
                        ", ".join(fav.tags),
                        fav.connection,
                        fav.database,
                        fav.created_at,
                        fav.updated_at,
                        fav.last_used or "",
                        fav.usage_count,
                    ]
                )
        os.chmod(target, 0o600)
        return target

    def export_json(self, path: Path | None = None) -> Path:
        """Write all favorites to a JSON file and return its path."""
        favorites = self._require_favorites()
        target = path or self.file_path.parent / "favorites_export.json"
        self._ensure_dir()
        with open(target, "w", encoding="utf-8") as f:
            json.dump([fav.to_dict() for fav in favorites], f, indent=2)
        os.chmod(target, 0o600)
        return target

    def _require_favorites(self) -> list[Favorite]:
        favorites = self.load_all()
        if not favorites:
            raise FavoriteError("No favorites to export")
        return favorites
