"""Commands: deferred operations the controller asks the executor to run.

Each command carries everything needed to perform it. The executor
answers every command (except Quit, CancelQuery and CancelConnect) with
exactly one result event.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pglens.domains.connections.domain.config import ConnectionConfig, ConnectionHistoryEntry
from pglens.domains.explorer.domain.tree_nodes import NodeData, NodeKind
from pglens.domains.query.store.history import QueryHistoryEntry
from pglens.domains.results.domain.pagination import PageRequest
from pglens.shared.core.cancellation import CancellationToken


@dataclass(frozen=True)
class Discover:
    timeout: float = 5.0
    ports: tuple[int, ...] = ()


@dataclass(frozen=True)
class LoadConnectionHistory:
    limit: int = 20


@dataclass(frozen=True)
class DeleteConnectionHistory:
    """Forget a recent connection and its saved password."""

    entry: ConnectionHistoryEntry


@dataclass(frozen=True)
class Connect:
    config: ConnectionConfig
    timeout: float = 10.0
    use_saved_password: bool = False
    request_id: int = 0


@dataclass(frozen=True)
class CancelConnect:
    """Abandon a connect still in flight; its session is closed when it opens."""

    request_id: int


@dataclass(frozen=True)
class SaveConnectionHistory:
    config: ConnectionConfig


@dataclass(frozen=True)
class LoadTree:
    connection_id: str


@dataclass(frozen=True)
class LoadChildren:
    """Fetch the children of a schema or relation node.

    With ``refresh`` the loaded children are replaced instead of kept.
    """

    connection_id: str
    node_id: str
    kind: NodeKind
    database: str
    schema: str
    table: str | None = None
    refresh: bool = False


@dataclass(frozen=True)
class LoadStructure:
    """Fetch columns, constraints and indexes of a table for the structure tabs."""

    connection_id: str
    schema: str
    table: str


@dataclass(frozen=True)
class LoadPage:
    connection_id: str
    request: PageRequest


@dataclass(frozen=True)
class LoadPageFiltered:
    connection_id: str
    request: PageRequest


@dataclass(frozen=True, eq=False)
class ExecuteQuery:
    connection_id: str
    sql: str
    token: CancellationToken


@dataclass(frozen=True, eq=False)
class CancelQuery:
    token: CancellationToken


@dataclass(frozen=True)
class SearchTable:
    connection_id: str
    schema: str
    table: str
    columns: tuple[str, ...]
    needle: str
    generation: int = 0
    max_results: int = 1000


@dataclass(frozen=True)
class LoadObjectDetails:
    connection_id: str
    node_id: str
    kind: NodeKind
    metadata: NodeData


@dataclass(frozen=True)
class LoadFavorites:
    query: str = ""


@dataclass(frozen=True)
class MutateFavorite:
    """Add, delete or record usage of a favorite."""

    action: str  # "add", "delete" or "use"
    favorite_id: str | None = None
    name: str = ""
    query: str = ""
    connection: str = ""
    database: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ExportFavorites:
    format: str  # "csv" or "json"


@dataclass(frozen=True)
class RecordHistory:
    entry: QueryHistoryEntry


@dataclass(frozen=True)
class LoadQueryHistory:
    limit: int = 20
    query: str = ""


@dataclass(frozen=True)
class Quit:
    pass


Command = (
    Discover
    | LoadConnectionHistory
    | DeleteConnectionHistory
    | Connect
    | CancelConnect
    | SaveConnectionHistory
    | LoadTree
    | LoadChildren
    | LoadStructure
    | LoadPage
    | LoadPageFiltered
    | ExecuteQuery
    | CancelQuery
    | SearchTable
    | LoadObjectDetails
    | LoadFavorites
    | MutateFavorite
    | ExportFavorites
    | RecordHistory
    | LoadQueryHistory
    | Quit
)
