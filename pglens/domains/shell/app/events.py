"""Events consumed by the controller: user input and command results."""

from __future__ import annotations

from dataclasses import dataclass, field

from pglens.domains.connections.app.details import ObjectDetails
from pglens.domains.connections.app.session import StatementResult, TableData
from pglens.domains.connections.domain.catalog import TableStructure
from pglens.domains.connections.domain.config import (
    ConnectionConfig,
    ConnectionHistoryEntry,
    DiscoveredInstance,
)
from pglens.domains.explorer.domain.tree import NodeSpec
from pglens.domains.query.store.favorites import Favorite
from pglens.domains.query.store.history import QueryHistoryEntry
from pglens.domains.results.domain.pagination import PageRequest
from pglens.shared.core.cancellation import CancellationToken

# -- input ------------------------------------------------------------------


@dataclass(frozen=True)
class KeyInput:
    """A key press. ``key`` uses Textual key names ("escape", "ctrl+k", "j")."""

    key: str
    character: str | None = None

    @property
    def printable(self) -> str | None:
        if self.character is not None and len(self.character) == 1 and self.character.isprintable():
            return self.character
        return None


@dataclass(frozen=True)
class MouseInput:
    """Click or wheel over a region ("tree", "data" or "editor")."""

    action: str  # "click", "scroll_up" or "scroll_down"
    region: str
    row: int | None = None


@dataclass(frozen=True)
class WindowResize:
    width: int
    height: int


# -- results ----------------------------------------------------------------


@dataclass(frozen=True)
class DiscoveryComplete:
    instances: list[DiscoveredInstance] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class ConnectionHistoryLoaded:
    entries: list[ConnectionHistoryEntry] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class ConnectResult:
    config: ConnectionConfig
    connection_id: str | None = None
    error: str | None = None
    request_id: int = 0


@dataclass(frozen=True)
class ConnectionHistorySaved:
    error: str | None = None


@dataclass(frozen=True)
class TreeLoaded:
    connection_id: str
    spec: NodeSpec | None = None
    error: str | None = None


@dataclass(frozen=True)
class SubtreeLoaded:
    connection_id: str
    parent_id: str
    children: list[NodeSpec] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    error: str | None = None
    refresh: bool = False


@dataclass(frozen=True)
class StructureLoaded:
    connection_id: str
    schema: str
    table: str
    structure: TableStructure | None = None
    error: str | None = None


@dataclass(frozen=True)
class PageLoaded:
    request: PageRequest
    data: TableData | None = None
    error: str | None = None


@dataclass(frozen=True, eq=False)
class QueryResult:
    token: CancellationToken
    result: StatementResult | None = None
    error: str | None = None
    cancelled: bool = False


@dataclass(frozen=True)
class SearchResult:
    schema: str
    table: str
    needle: str
    generation: int = 0
    data: TableData | None = None
    error: str | None = None


@dataclass(frozen=True)
class ObjectDetailsLoaded:
    node_id: str
    details: ObjectDetails | None = None
    error: str | None = None


@dataclass(frozen=True)
class FavoritesLoaded:
    favorites: list[Favorite] = field(default_factory=list)
    error: str | None = None
    query: str = ""


@dataclass(frozen=True)
class FavoriteMutated:
    action: str
    favorite: Favorite | None = None
    favorites: list[Favorite] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class FavoritesExported:
    path: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class HistoryRecorded:
    error: str | None = None


@dataclass(frozen=True)
class QueryHistoryLoaded:
    entries: list[QueryHistoryEntry] = field(default_factory=list)
    error: str | None = None
    query: str = ""


Event = (
    KeyInput
    | MouseInput
    | WindowResize
    | DiscoveryComplete
    | ConnectionHistoryLoaded
    | ConnectResult
    | ConnectionHistorySaved
    | TreeLoaded
    | SubtreeLoaded
    | StructureLoaded
    | PageLoaded
    | QueryResult
    | SearchResult
    | ObjectDetailsLoaded
    | FavoritesLoaded
    | FavoriteMutated
    | FavoritesExported
    | HistoryRecorded
    | QueryHistoryLoaded
)
