"""The single mutable state aggregate owned by the controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pglens.domains.connections.app.details import ObjectDetails
from pglens.domains.connections.domain.config import ActiveConnection
from pglens.domains.explorer.domain.tree import NavigationTree
from pglens.domains.explorer.domain.tree_filter import TreeFilter
from pglens.domains.query.domain.filter import Filter
from pglens.domains.query.store.favorites import Favorite
from pglens.domains.query.store.history import QueryHistoryEntry
from pglens.domains.results.domain.pagination import PaginationController
from pglens.domains.results.domain.result_tabs import ResultTabs
from pglens.domains.results.domain.structure import StructureView
from pglens.domains.shell.store.settings import AppSettings

from .dialogs import (
    CommandPalette,
    ConnectionDialog,
    ErrorOverlay,
    FavoritesDialog,
    FilterBuilder,
    JSONBViewer,
    SearchInput,
)


class FocusArea(Enum):
    TREE = "tree"
    DATA = "data"
    EDITOR = "editor"


FOCUS_RING = (FocusArea.TREE, FocusArea.DATA, FocusArea.EDITOR)


class ViewMode(Enum):
    NORMAL = "normal"
    HELP = "help"


class DataView(Enum):
    """What the data panel currently shows; keyed off the selected node kind."""

    TABLE = "table"
    RESULTS = "results"
    DETAILS = "details"


@dataclass
class SearchState:
    """Matches of the last search, as (row, column) cells of the held rows."""

    needle: str = ""
    mode: str = "local"
    matches: list[tuple[int, int]] = field(default_factory=list)
    index: int = -1

    @property
    def current(self) -> tuple[int, int] | None:
        if 0 <= self.index < len(self.matches):
            return self.matches[self.index]
        return None

    def step(self, delta: int) -> tuple[int, int] | None:
        if not self.matches:
            return None
        self.index = (self.index + delta) % len(self.matches)
        return self.matches[self.index]


@dataclass
class AppState:
    settings: AppSettings = field(default_factory=AppSettings)
    focus: FocusArea = FocusArea.TREE
    view_mode: ViewMode = ViewMode.NORMAL
    width: int = 80
    height: int = 24

    connection: ActiveConnection | None = None
    tree: NavigationTree = field(default_factory=NavigationTree)
    tree_cursor_id: str | None = None
    selected_node_id: str | None = None
    pending_loads: set[str] = field(default_factory=set)
    connect_requests: int = 0
    pending_connect_id: int | None = None
    tree_filter: TreeFilter = field(default_factory=TreeFilter)

    data_view: DataView = DataView.TABLE
    pagination: PaginationController = field(default_factory=PaginationController)
    structure: StructureView = field(default_factory=StructureView)
    active_filter: Filter | None = None
    result_tabs: ResultTabs = field(default_factory=ResultTabs)
    details_node_id: str | None = None
    object_details: ObjectDetails | None = None
    search: SearchState = field(default_factory=SearchState)

    editor_text: str = ""
    status: str = ""

    error: ErrorOverlay | None = None
    connection_dialog: ConnectionDialog | None = None
    palette: CommandPalette | None = None
    filter_builder: FilterBuilder | None = None
    jsonb_viewer: JSONBViewer | None = None
    favorites_dialog: FavoritesDialog | None = None
    search_input: SearchInput | None = None

    recent_queries: list[QueryHistoryEntry] = field(default_factory=list)
    favorites: list[Favorite] = field(default_factory=list)
    should_quit: bool = False

    @classmethod
    def create(cls, settings: AppSettings | None = None) -> AppState:
        settings = settings or AppSettings()
        return cls(
            settings=settings,
            pagination=PaginationController(page_size=settings.page_size),
            result_tabs=ResultTabs(settings.max_result_tabs),
        )

    @property
    def connection_id(self) -> str | None:
        return self.connection.connection_id if self.connection else None

    @property
    def visible_rows(self) -> int:
        """Rows of the data grid that fit on screen."""
        return max(1, self.height - 10)

    def has_overlay(self) -> bool:
        return any(
            overlay is not None
            for overlay in (
                self.error,
                self.connection_dialog,
                self.palette,
                self.filter_builder,
                self.jsonb_viewer,
                self.favorites_dialog,
                self.search_input,
            )
        )

    def show_error(self, title: str, message: str) -> None:
        self.error = ErrorOverlay(title=title, message=message)

    def show_info(self, title: str, message: str) -> None:
        self.error = ErrorOverlay(title=title, message=message, informational=True)
