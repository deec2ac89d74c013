"""The application state machine.

``Controller.handle`` consumes one event at a time, mutates the single
``AppState`` and returns the commands to run. It performs no I/O: every
database or filesystem operation is described as a command and comes
back later as a result event, which is checked against the current state
before it is applied.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from datetime import datetime

from pglens.domains.connections.app.session import NULL_DISPLAY
from pglens.domains.connections.domain.config import (
    ActiveConnection,
    ConnectionConfig,
    ConnectionHistoryEntry,
    DiscoveredInstance,
)
from pglens.domains.explorer.domain.builder import schema_id
from pglens.domains.explorer.domain.tree import NavigationTree, TreeNode
from pglens.domains.explorer.domain.tree_filter import FilterMode, TreeFilter
from pglens.domains.explorer.domain.tree_nodes import (
    DETAIL_KINDS,
    LAZY_KINDS,
    RELATION_KINDS,
    ColumnNode,
    NodeKind,
    RelationNode,
    SchemaNode,
)
from pglens.domains.query.domain.filter import (
    Filter,
    FilterCondition,
    FilterGroup,
    FilterOperator,
    Logic,
    build_where,
    coerce_value,
    validate,
)
from pglens.domains.query.store.history import QueryHistoryEntry
from pglens.domains.results.domain.pagination import GridCursor, PageRequest
from pglens.domains.results.domain.result_tabs import QueryOutcome, QueryStatus, ResultTab
from pglens.domains.results.domain.structure import StructureView
from pglens.shared.core.errors import FilterValidationError

from .commands import (
    CancelConnect,
    CancelQuery,
    Command,
    Connect,
    DeleteConnectionHistory,
    Discover,
    ExecuteQuery,
    ExportFavorites,
    LoadChildren,
    LoadConnectionHistory,
    LoadFavorites,
    LoadObjectDetails,
    LoadPage,
    LoadPageFiltered,
    LoadQueryHistory,
    LoadStructure,
    LoadTree,
    MutateFavorite,
    Quit,
    RecordHistory,
    SaveConnectionHistory,
    SearchTable,
)
from .dialogs import (
    CommandPalette,
    ConnectionDialog,
    FavoritesDialog,
    FilterBuilder,
    FilterColumn,
    JSONBViewer,
    PaletteItem,
    SearchInput,
    parse_json_cell,
)
from .events import (
    ConnectionHistoryLoaded,
    ConnectionHistorySaved,
    ConnectResult,
    DiscoveryComplete,
    Event,
    FavoriteMutated,
    FavoritesExported,
    FavoritesLoaded,
    HistoryRecorded,
    KeyInput,
    MouseInput,
    ObjectDetailsLoaded,
    PageLoaded,
    QueryHistoryLoaded,
    QueryResult,
    SearchResult,
    StructureLoaded,
    SubtreeLoaded,
    TreeLoaded,
    WindowResize,
)
from .keymap import Keymap, get_keymap
from .state import FOCUS_RING, AppState, DataView, FocusArea, SearchState, ViewMode

logger = logging.getLogger(__name__)

PALETTE_HISTORY_LIMIT = 20

# (value, label, description, action)
PALETTE_COMMANDS = (
    ("connect", "Connect", "Open the connection dialog", "open_connection_dialog"),
    ("refresh", "Refresh", "Reload the schema tree", "refresh_tree"),
    ("editor", "Query editor", "Focus the query editor", "focus_editor"),
    ("favorites", "Favorites", "Show saved queries", "open_favorites"),
    ("export_csv", "Export favorites (CSV)", "Write favorites_export.csv", "export_csv"),
    ("export_json", "Export favorites (JSON)", "Write favorites_export.json", "export_json"),
    ("help", "Help", "Show key bindings", "toggle_help"),
    ("quit", "Quit", "Exit pglens", "quit"),
)

_PALETTE_ACTIONS = {value: action for value, _, _, action in PALETTE_COMMANDS}

_QUIT_KEYS = frozenset({"q", "ctrl+c"})
_DISMISS_KEYS = frozenset({"escape", "enter"})
_UP_KEYS = frozenset({"up", "k"})
_DOWN_KEYS = frozenset({"down", "j"})


class Controller:
    """Owns the AppState; ``handle`` is the only way it changes."""

    def __init__(self, state: AppState | None = None, keymap: Keymap | None = None) -> None:
        self.state = state or AppState.create()
        self.keymap = keymap or get_keymap()
        self._handlers: dict[type, Callable[[Event, list[Command]], None]] = {
            KeyInput: self._on_key,
            MouseInput: self._on_mouse,
            WindowResize: self._on_resize,
            DiscoveryComplete: self._on_discovery_complete,
            ConnectionHistoryLoaded: self._on_connection_history_loaded,
            ConnectResult: self._on_connect_result,
            ConnectionHistorySaved: self._on_connection_history_saved,
            TreeLoaded: self._on_tree_loaded,
            SubtreeLoaded: self._on_subtree_loaded,
            StructureLoaded: self._on_structure_loaded,
            PageLoaded: self._on_page_loaded,
            QueryResult: self._on_query_result,
            SearchResult: self._on_search_result,
            ObjectDetailsLoaded: self._on_object_details_loaded,
            FavoritesLoaded: self._on_favorites_loaded,
            FavoriteMutated: self._on_favorite_mutated,
            FavoritesExported: self._on_favorites_exported,
            HistoryRecorded: self._on_history_recorded,
            QueryHistoryLoaded: self._on_query_history_loaded,
        }

    def start(self, config: ConnectionConfig | None = None) -> list[Command]:
        """Commands to run at startup: connect directly, or open the dialog."""
        out: list[Command] = []
        if config is not None:
            self.state.connection_dialog = ConnectionDialog(discovering=False, connecting=True)
            self._connect(config, out)
        else:
            self._do_open_connection_dialog(out)
        return out

    def handle(self, event: Event) -> tuple[AppState, list[Command]]:
        out: list[Command] = []
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.debug("Ignoring unknown event %r", event)
        else:
            handler(event, out)
        return self.state, out

    # -- keyboard routing ---------------------------------------------------

    def _on_key(self, event: KeyInput, out: list[Command]) -> None:
        s = self.state
        if s.error is not None:
            self._key_error(event, out)
        elif s.connection_dialog is not None:
            self._key_connection_dialog(event, out)
        elif s.palette is not None:
            self._key_palette(event, out)
        elif s.filter_builder is not None:
            self._key_filter_builder(event, out)
        elif s.jsonb_viewer is not None:
            self._key_jsonb_viewer(event, out)
        elif s.favorites_dialog is not None:
            self._key_favorites(event, out)
        elif s.search_input is not None:
            self._key_search(event, out)
        elif s.tree_filter.mode is FilterMode.INPUTTING:
            self._key_tree_filter(event, out)
        elif s.view_mode is ViewMode.HELP:
            self._key_help(event, out)
        elif s.focus is FocusArea.EDITOR:
            self._key_editor(event, out)
        else:
            action = self.keymap.action_for(s.focus.value, event.key) or self.keymap.action_for("global", event.key)
            if action is not None:
                self._run_action(action, out)

    def _run_action(self, action: str, out: list[Command]) -> None:
        method = getattr(self, f"_do_{action}", None)
        if method is None:
            logger.debug("No handler for action %s", action)
            return
        method(out)

    def _key_error(self, event: KeyInput, out: list[Command]) -> None:
        if event.key in _QUIT_KEYS:
            self._do_quit(out)
        elif event.key in _DISMISS_KEYS:
            self.state.error = None

    def _key_help(self, event: KeyInput, out: list[Command]) -> None:
        if event.key in _QUIT_KEYS or event.key in ("escape", "?", "question_mark"):
            self.state.view_mode = ViewMode.NORMAL

    def _key_editor(self, event: KeyInput, out: list[Command]) -> None:
        action = self.keymap.action_for("editor", event.key)
        if action is not None:
            self._run_action(action, out)
            return
        s = self.state
        if event.key == "enter":
            s.editor_text += "\n"
        elif event.key == "backspace":
            s.editor_text = s.editor_text[:-1]
        elif event.printable is not None:
            s.editor_text += event.printable

    def _key_connection_dialog(self, event: KeyInput, out: list[Command]) -> None:
        dialog = self.state.connection_dialog
        key = event.key
        if key == "ctrl+c":
            self._do_quit(out)
            return
        if dialog.connecting:
            if key == "escape":
                self._abandon_connect(out)
                self.state.connection_dialog = None
            return
        if dialog.manual:
            if key == "escape":
                dialog.toggle_manual()
            elif key == "tab":
                dialog.next_field(1)
            elif key == "shift+tab":
                dialog.next_field(-1)
            elif key == "backspace":
                dialog.backspace()
            elif key == "enter":
                try:
                    config = dialog.form_config()
                except ValueError as error:
                    dialog.error = str(error)
                    return
                self._connect(config, out)
            elif event.printable is not None:
                dialog.type(event.printable)
            return

        if key == "escape":
            self.state.connection_dialog = None
        elif key in _UP_KEYS:
            dialog.move(-1)
        elif key in _DOWN_KEYS:
            dialog.move(1)
        elif key in ("tab", "shift+tab"):
            dialog.toggle_section()
        elif key == "m":
            dialog.toggle_manual()
        elif key == "d":
            item = dialog.selected_item()
            if isinstance(item, ConnectionHistoryEntry):
                out.append(DeleteConnectionHistory(item))
        elif key == "enter":
            item = dialog.selected_item()
            if isinstance(item, DiscoveredInstance):
                self._connect(item.to_config(), out)
            elif isinstance(item, ConnectionHistoryEntry):
                self._connect(item.to_config(), out, use_saved_password=True)

    def _key_palette(self, event: KeyInput, out: list[Command]) -> None:
        palette = self.state.palette
        key = event.key
        if key == "escape":
            self.state.palette = None
        elif key == "up":
            palette.move(-1)
        elif key == "down":
            palette.move(1)
        elif key == "backspace":
            palette.backspace()
            self._search_history(out)
        elif key == "enter":
            item = palette.selected_item()
            self.state.palette = None
            if item is not None:
                self._run_palette_item(item, out)
        elif key == "ctrl+c":
            self._do_quit(out)
        elif event.printable is not None:
            palette.type(event.printable)
            self._search_history(out)

    def _key_filter_builder(self, event: KeyInput, out: list[Command]) -> None:
        builder = self.state.filter_builder
        key = event.key
        if key == "escape":
            self.state.filter_builder = None
        elif key == "tab":
            builder.next_field(1)
        elif key == "shift+tab":
            builder.next_field(-1)
        elif key == "up":
            builder.move(-1)
        elif key == "down":
            builder.move(1)
        elif key == "ctrl+a":
            builder.add_condition()
        elif key == "ctrl+o":
            builder.toggle_logic()
        elif key == "ctrl+g":
            builder.group_conditions()
        elif key == "backspace":
            builder.backspace()
        elif key == "enter":
            filter_ = builder.build()
            if filter_ is None:
                return
            self.state.filter_builder = None
            if filter_.root.is_empty():
                self._do_clear_filter(out)
            else:
                self._apply_filter(filter_, out)
        elif event.printable is not None:
            builder.type(event.printable)

    def _key_jsonb_viewer(self, event: KeyInput, out: list[Command]) -> None:
        viewer = self.state.jsonb_viewer
        key = event.key
        if key in ("escape", "q"):
            self.state.jsonb_viewer = None
        elif key in _UP_KEYS:
            viewer.scroll(-1)
        elif key in _DOWN_KEYS:
            viewer.scroll(1)
        elif key in ("pagedown", "ctrl+d"):
            viewer.scroll(self.state.visible_rows)
        elif key in ("pageup", "ctrl+u"):
            viewer.scroll(-self.state.visible_rows)

    def _key_favorites(self, event: KeyInput, out: list[Command]) -> None:
        s = self.state
        dialog = s.favorites_dialog
        key = event.key
        if dialog.searching:
            if key == "escape":
                dialog.searching = False
                dialog.query.clear()
                out.append(LoadFavorites())
            elif key == "enter":
                dialog.searching = False
            elif key == "backspace":
                dialog.query.backspace()
                out.append(LoadFavorites(query=dialog.query.value))
            elif event.printable is not None:
                dialog.query.type(event.printable)
                out.append(LoadFavorites(query=dialog.query.value))
            return
        if dialog.adding:
            if key == "escape":
                dialog.adding = False
                dialog.name.clear()
            elif key == "backspace":
                dialog.name.backspace()
            elif key == "enter":
                name = dialog.name.value.strip()
                if not name:
                    dialog.error = "Favorite name cannot be empty"
                    return
                config = s.connection.config if s.connection else None
                out.append(
                    MutateFavorite(
                        action="add",
                        name=name,
                        query=s.editor_text.strip(),
                        connection=config.name if config else "",
                        database=config.database if config else "",
                    )
                )
            elif event.printable is not None:
                dialog.name.type(event.printable)
                dialog.error = None
            return

        if key == "escape":
            if dialog.query.value:
                dialog.query.clear()
                out.append(LoadFavorites())
            else:
                s.favorites_dialog = None
        elif key in ("/", "slash"):
            dialog.searching = True
            dialog.error = None
        elif key in _UP_KEYS:
            dialog.move(-1)
        elif key in _DOWN_KEYS:
            dialog.move(1)
        elif key == "a":
            if not s.editor_text.strip():
                dialog.error = "Query editor is empty"
            else:
                dialog.adding = True
                dialog.error = None
        elif key == "d":
            favorite = dialog.selected_favorite()
            if favorite is not None:
                out.append(MutateFavorite(action="delete", favorite_id=favorite.id))
        elif key == "enter":
            favorite = dialog.selected_favorite()
            if favorite is None:
                return
            s.favorites_dialog = None
            s.editor_text = favorite.query
            out.append(MutateFavorite(action="use", favorite_id=favorite.id))
            self._execute_sql(favorite.query, out)

    def _key_search(self, event: KeyInput, out: list[Command]) -> None:
        search = self.state.search_input
        key = event.key
        if key == "escape":
            self.state.search_input = None
        elif key == "tab":
            search.toggle_mode()
        elif key == "backspace":
            search.text.backspace()
        elif key == "enter":
            self.state.search_input = None
            self._run_search(search.text.value, search.mode, out)
        elif event.printable is not None:
            search.text.type(event.printable)

    def _key_tree_filter(self, event: KeyInput, out: list[Command]) -> None:
        tree_filter = self.state.tree_filter
        key = event.key
        if key == "escape":
            self._do_clear_tree_filter(out)
            return
        if key == "enter":
            tree_filter.confirm()
            if tree_filter.applied:
                self.state.status = f"{len(self._visible_nodes())} match(es) for {tree_filter.query}"
            return
        if key == "backspace":
            tree_filter.query = tree_filter.query[:-1]
        elif event.printable is not None:
            tree_filter.query += event.printable
        else:
            return
        self._tree_move(0)

    # -- global actions -----------------------------------------------------

    def _do_quit(self, out: list[Command]) -> None:
        pending = self.state.result_tabs.pending()
        if pending is not None:
            self._cancel_query(pending, out)
        self.state.should_quit = True
        out.append(Quit())

    def _do_toggle_help(self, out: list[Command]) -> None:
        s = self.state
        s.view_mode = ViewMode.NORMAL if s.view_mode is ViewMode.HELP else ViewMode.HELP

    def _do_escape(self, out: list[Command]) -> None:
        s = self.state
        pending = s.result_tabs.pending()
        if pending is not None:
            self._cancel_query(pending, out)
        elif s.focus is FocusArea.EDITOR:
            s.focus = FocusArea.DATA

    def _do_focus_next(self, out: list[Command]) -> None:
        self._cycle_focus(1)

    def _do_focus_prev(self, out: list[Command]) -> None:
        self._cycle_focus(-1)

    def _cycle_focus(self, delta: int) -> None:
        index = FOCUS_RING.index(self.state.focus)
        self.state.focus = FOCUS_RING[(index + delta) % len(FOCUS_RING)]

    def _do_focus_editor(self, out: list[Command]) -> None:
        self.state.focus = FocusArea.EDITOR

    def _do_open_connection_dialog(self, out: list[Command]) -> None:
        settings = self.state.settings
        self.state.connection_dialog = ConnectionDialog()
        out.append(Discover(timeout=settings.discovery_timeout, ports=tuple(settings.discovery_ports)))
        out.append(LoadConnectionHistory())

    def _do_open_palette(self, out: list[Command]) -> None:
        self.state.palette = CommandPalette(items=self._palette_items())
        out.append(LoadQueryHistory(limit=PALETTE_HISTORY_LIMIT))

    def _do_open_favorites(self, out: list[Command]) -> None:
        self.state.favorites_dialog = FavoritesDialog(favorites=list(self.state.favorites))
        out.append(LoadFavorites())

    def _do_save_favorite(self, out: list[Command]) -> None:
        if not self.state.editor_text.strip():
            self.state.status = "Query editor is empty"
            return
        self.state.favorites_dialog = FavoritesDialog(favorites=list(self.state.favorites), adding=True)
        out.append(LoadFavorites())

    def _do_export_csv(self, out: list[Command]) -> None:
        out.append(ExportFavorites("csv"))

    def _do_export_json(self, out: list[Command]) -> None:
        out.append(ExportFavorites("json"))

    def _do_refresh_tree(self, out: list[Command]) -> None:
        if self.state.connection_id is None:
            self.state.status = "Not connected"
            return
        out.append(LoadTree(self.state.connection_id))

    def _do_prev_result_tab(self, out: list[Command]) -> None:
        # Structure tabs first; past either end, the query result tabs.
        if not self._shift_structure_tab(-1, out) and self.state.result_tabs.tabs:
            self._show_tab(self.state.result_tabs.prev_tab())

    def _do_next_result_tab(self, out: list[Command]) -> None:
        if not self._shift_structure_tab(1, out) and self.state.result_tabs.tabs:
            self._show_tab(self.state.result_tabs.next_tab())

    def _show_tab(self, tab: ResultTab | None) -> None:
        if tab is None:
            return
        self.state.editor_text = tab.sql
        self.state.data_view = DataView.RESULTS

    def _do_execute_query(self, out: list[Command]) -> None:
        self._execute_sql(self.state.editor_text, out)

    # -- palette ------------------------------------------------------------

    def _palette_items(self, history: list[QueryHistoryEntry] | None = None) -> list[PaletteItem]:
        """Commands, browsable relations and past queries (recent ones unless ``history`` is given)."""
        items = [
            PaletteItem(kind="command", label=label, value=value, description=description)
            for value, label, description, _ in PALETTE_COMMANDS
        ]
        for node in self.state.tree.iter_nodes(RELATION_KINDS):
            meta = node.metadata
            if isinstance(meta, RelationNode):
                items.append(
                    PaletteItem(kind="table", label=f"{meta.schema}.{meta.name}", value=node.id, description=node.kind.value)
                )
        if history is None:
            history = self.state.recent_queries
        for entry in history[:PALETTE_HISTORY_LIMIT]:
            first_line = " ".join(entry.query.split())
            items.append(PaletteItem(kind="history", label=first_line[:60], value=entry.query, description="history"))
        return items

    def _search_history(self, out: list[Command]) -> None:
        out.append(LoadQueryHistory(limit=PALETTE_HISTORY_LIMIT, query=self.state.palette.query.value))

    def _run_palette_item(self, item: PaletteItem, out: list[Command]) -> None:
        if item.kind == "command":
            self._run_action(_PALETTE_ACTIONS[item.value], out)
        elif item.kind == "table":
            self._jump_to_node(item.value, out)
        elif item.kind == "history":
            self.state.editor_text = item.value
            self.state.focus = FocusArea.EDITOR

    def _jump_to_node(self, node_id: str, out: list[Command]) -> None:
        tree = self.state.tree
        node = tree.get(node_id)
        if node is None:
            self.state.status = f"Not found: {node_id}"
            return
        tree.expand_ancestors(node_id)
        self.state.tree_cursor_id = node_id
        self.state.focus = FocusArea.TREE
        self._select_node(node, out)

    # -- tree ---------------------------------------------------------------

    def _cursor_node(self) -> TreeNode | None:
        return self.state.tree.get(self.state.tree_cursor_id)

    def _visible_nodes(self) -> list[TreeNode]:
        return self.state.tree_filter.visible(self.state.tree)

    def _tree_move(self, delta: int) -> None:
        visible = self._visible_nodes()
        if not visible:
            self.state.tree_cursor_id = None
            return
        ids = [node.id for node in visible]
        index = ids.index(self.state.tree_cursor_id) if self.state.tree_cursor_id in ids else 0
        index = max(0, min(index + delta, len(ids) - 1))
        self.state.tree_cursor_id = ids[index]

    def _do_cursor_up(self, out: list[Command]) -> None:
        self._tree_move(-1)

    def _do_cursor_down(self, out: list[Command]) -> None:
        self._tree_move(1)

    def _do_cursor_top(self, out: list[Command]) -> None:
        self._tree_move(-len(self.state.tree))

    def _do_cursor_bottom(self, out: list[Command]) -> None:
        self._tree_move(len(self.state.tree))

    def _do_filter_tree(self, out: list[Command]) -> None:
        if self.state.connection_id is None:
            return
        self.state.tree_filter.start()
        self.state.focus = FocusArea.TREE

    def _do_clear_tree_filter(self, out: list[Command]) -> None:
        s = self.state
        if s.tree_filter.mode is FilterMode.OFF:
            self._do_escape(out)
            return
        s.tree_filter.clear()
        # Keep the node the filter led to visible in the full tree.
        if s.tree_cursor_id is not None:
            s.tree.expand_ancestors(s.tree_cursor_id)
        self._tree_move(0)

    def _do_toggle_node(self, out: list[Command]) -> None:
        node = self._cursor_node()
        if node is not None:
            self._toggle(node, out)

    def _toggle(self, node: TreeNode, out: list[Command]) -> None:
        tree = self.state.tree
        if tree.toggle(node.id) and tree.needs_fetch(node.id) and node.kind in LAZY_KINDS:
            self._load_children(node, out)

    def _do_collapse_node(self, out: list[Command]) -> None:
        node = self._cursor_node()
        if node is None:
            return
        if node.expanded and node.kind is not NodeKind.COLUMN:
            node.expanded = False
            return
        parent = self.state.tree.parent_of(node.id)
        if parent is not None and parent.kind is not NodeKind.ROOT:
            self.state.tree_cursor_id = parent.id

    def _do_refresh_node(self, out: list[Command]) -> None:
        """Reload the schema or relation under the cursor; elsewhere reload the whole tree."""
        s = self.state
        node = self._cursor_node()
        if node is None:
            self._do_refresh_tree(out)
            return
        target = node if node.kind in LAZY_KINDS else None
        if target is None:
            target = next((a for a in s.tree.ancestors(node.id) if a.kind in LAZY_KINDS), None)
        if target is None:
            self._do_refresh_tree(out)
            return
        self._load_children(target, out, refresh=target.loaded)
        if target.id in s.pending_loads:
            s.status = f"Reloading {target.label}..."

    def _do_select_node(self, out: list[Command]) -> None:
        node = self._cursor_node()
        if node is not None:
            self._select_node(node, out)

    def _select_node(self, node: TreeNode, out: list[Command]) -> None:
        """Browse a relation, show an object's definition, or toggle anything else."""
        if node.kind in RELATION_KINDS:
            self._open_relation(node, out)
        elif node.kind in DETAIL_KINDS:
            self._open_details(node, out)
        else:
            self._toggle(node, out)

    def _load_children(self, node: TreeNode, out: list[Command], refresh: bool = False) -> None:
        s = self.state
        if s.connection_id is None or node.id in s.pending_loads:
            return
        meta = node.metadata
        if isinstance(meta, SchemaNode):
            command = LoadChildren(s.connection_id, node.id, node.kind, meta.database, meta.schema, refresh=refresh)
        elif isinstance(meta, RelationNode):
            command = LoadChildren(
                s.connection_id, node.id, node.kind, meta.database, meta.schema, meta.name, refresh=refresh
            )
        else:
            return
        s.pending_loads.add(node.id)
        out.append(command)

    def _open_relation(self, node: TreeNode, out: list[Command]) -> None:
        s = self.state
        meta = node.metadata
        if not isinstance(meta, RelationNode) or s.connection_id is None:
            return
        s.selected_node_id = node.id
        s.active_filter = None
        s.details_node_id = None
        s.object_details = None
        s.data_view = DataView.TABLE
        s.search = SearchState()
        request = s.pagination.open(meta.schema, meta.name)
        s.status = f"Loading {meta.schema}.{meta.name}..."
        out.append(LoadPage(s.connection_id, request))
        s.structure.open(meta.schema, meta.name)
        self._ensure_structure(out)

    def _open_details(self, node: TreeNode, out: list[Command]) -> None:
        s = self.state
        if s.connection_id is None:
            return
        s.selected_node_id = node.id
        s.details_node_id = node.id
        s.object_details = None
        s.data_view = DataView.DETAILS
        out.append(LoadObjectDetails(s.connection_id, node.id, node.kind, node.metadata))

    # -- data panel ---------------------------------------------------------

    def _structure_active(self) -> bool:
        """True when a Columns, Constraints or Indexes tab replaces the row grid."""
        s = self.state
        return s.data_view is DataView.TABLE and s.pagination.has_relation and not s.structure.showing_data

    def _shift_structure_tab(self, delta: int, out: list[Command]) -> bool:
        s = self.state
        if s.data_view is not DataView.TABLE or not s.pagination.has_relation:
            return False
        if not s.structure.shift(delta):
            return False
        self._ensure_structure(out)
        return True

    def _ensure_structure(self, out: list[Command]) -> None:
        s = self.state
        view = s.structure
        if s.connection_id is None or not view.needs_load():
            return
        view.begin_load()
        out.append(LoadStructure(s.connection_id, view.schema, view.table))

    def _grid(self) -> tuple[GridCursor, list[list[str]], list[str]] | None:
        s = self.state
        if self._structure_active():
            return None
        if s.data_view is DataView.TABLE:
            return s.pagination.cursor, s.pagination.rows, s.pagination.columns
        if s.data_view is DataView.RESULTS and s.result_tabs.active is not None:
            tab = s.result_tabs.active
            return tab.cursor, tab.rows, tab.columns
        return None

    def _selected_cell(self) -> tuple[str, str] | None:
        grid = self._grid()
        if grid is None:
            return None
        cursor, rows, columns = grid
        if not rows or not columns:
            return None
        return columns[cursor.col], rows[cursor.row][cursor.col]

    def _move(self, d_row: int, d_col: int, out: list[Command]) -> None:
        if self._structure_active():
            if d_col:
                self._shift_structure_tab(1 if d_col > 0 else -1, out)
            else:
                self.state.structure.move(d_row)
            return
        grid = self._grid()
        if grid is None:
            return
        cursor, rows, columns = grid
        cursor.move(d_row, d_col, len(rows), len(columns))
        if d_row and self.state.data_view is DataView.TABLE:
            self._maybe_load_more(out)

    def _set_cell(self, row: int, col: int | None, out: list[Command]) -> None:
        grid = self._grid()
        if grid is None:
            return
        cursor, rows, columns = grid
        cursor.row = row
        if col is not None:
            cursor.col = col
        cursor.clamp(len(rows), len(columns))
        if self.state.data_view is DataView.TABLE:
            self._maybe_load_more(out)

    def _maybe_load_more(self, out: list[Command]) -> None:
        s = self.state
        if s.connection_id is None:
            return
        request = s.pagination.next_page_request()
        if request is not None:
            out.append(self._page_command(request))

    def _page_command(self, request: PageRequest) -> LoadPage | LoadPageFiltered:
        if request.filtered:
            return LoadPageFiltered(self.state.connection_id, request)
        return LoadPage(self.state.connection_id, request)

    def _do_row_up(self, out: list[Command]) -> None:
        self._move(-1, 0, out)

    def _do_row_down(self, out: list[Command]) -> None:
        self._move(1, 0, out)

    def _do_col_left(self, out: list[Command]) -> None:
        self._move(0, -1, out)

    def _do_col_right(self, out: list[Command]) -> None:
        self._move(0, 1, out)

    def _do_row_top(self, out: list[Command]) -> None:
        if self._structure_active():
            self.state.structure.select(0)
            return
        grid = self._grid()
        if grid is not None:
            self._set_cell(0, None, out)

    def _do_row_bottom(self, out: list[Command]) -> None:
        if self._structure_active():
            self.state.structure.select(len(self.state.structure.rows()) - 1)
            return
        grid = self._grid()
        if grid is not None:
            self._set_cell(len(grid[1]) - 1, None, out)

    def _do_half_page_down(self, out: list[Command]) -> None:
        self._move(max(1, self.state.visible_rows // 2), 0, out)

    def _do_half_page_up(self, out: list[Command]) -> None:
        self._move(-max(1, self.state.visible_rows // 2), 0, out)

    def _do_col_first(self, out: list[Command]) -> None:
        grid = self._grid()
        if grid is not None:
            self._set_cell(grid[0].row, 0, out)

    def _do_col_last(self, out: list[Command]) -> None:
        grid = self._grid()
        if grid is not None:
            self._set_cell(grid[0].row, len(grid[2]) - 1, out)

    def _browsing_table(self) -> bool:
        s = self.state
        return (
            s.data_view is DataView.TABLE
            and s.pagination.has_relation
            and s.structure.showing_data
            and s.connection_id is not None
        )

    def _reload(self, request: PageRequest | None, out: list[Command]) -> None:
        if request is not None:
            out.append(self._page_command(request))

    def _do_sort(self, out: list[Command]) -> None:
        if self._browsing_table():
            self._reload(self.state.pagination.toggle_sort(), out)

    def _do_toggle_nulls_first(self, out: list[Command]) -> None:
        if self._browsing_table():
            self._reload(self.state.pagination.toggle_nulls_first(), out)

    def _do_reverse_sort(self, out: list[Command]) -> None:
        if self._browsing_table():
            self._reload(self.state.pagination.reverse_sort(), out)

    def _do_refresh_data(self, out: list[Command]) -> None:
        if self._structure_active():
            self.state.structure.invalidate()
            self._ensure_structure(out)
        elif self._browsing_table():
            self._reload(self.state.pagination.reload(), out)

    def _do_close_result_tab(self, out: list[Command]) -> None:
        s = self.state
        if s.data_view is not DataView.RESULTS:
            return
        active = s.result_tabs.active
        if active is None:
            return
        running = not active.query.resolved
        s.result_tabs.close_active()
        if running:
            out.append(CancelQuery(active.query.token))
        if s.result_tabs.active is None:
            s.data_view = DataView.TABLE
        else:
            s.editor_text = s.result_tabs.active.sql

    # -- filters ------------------------------------------------------------

    def _relation_columns(self) -> list[FilterColumn] | None:
        """Columns of the browsed relation from its loaded Column nodes, or None if not loaded."""
        s = self.state
        node = s.tree.get(s.selected_node_id)
        if node is None or not isinstance(node.metadata, RelationNode):
            return None
        meta = node.metadata
        if (meta.schema, meta.name) != (s.pagination.schema, s.pagination.table) or not node.loaded:
            return None
        columns = []
        for group in s.tree.children_of(node.id):
            for child in s.tree.children_of(group.id):
                if child.kind is NodeKind.COLUMN and isinstance(child.metadata, ColumnNode):
                    columns.append(FilterColumn(child.metadata.name, child.metadata.data_type))
        return columns

    def _do_open_filter(self, out: list[Command]) -> None:
        s = self.state
        if not self._browsing_table():
            return
        columns = self._relation_columns()
        loading = columns is None
        if columns is None:
            columns = [FilterColumn(name, "") for name in s.pagination.columns]
            node = s.tree.get(s.selected_node_id)
            if node is not None:
                self._load_children(node, out)
        if s.active_filter is not None:
            builder = FilterBuilder.from_filter(copy.deepcopy(s.active_filter), columns)
        else:
            builder = FilterBuilder(schema=s.pagination.schema, table=s.pagination.table, columns=columns)
        builder.loading_columns = loading
        s.filter_builder = builder

    def _do_quick_filter(self, out: list[Command]) -> None:
        s = self.state
        if not self._browsing_table():
            return
        cell = self._selected_cell()
        if cell is None:
            return
        column, value = cell
        declared = ""
        for candidate in self._relation_columns() or []:
            if candidate.name == column:
                declared = candidate.data_type
                break
        try:
            if value == NULL_DISPLAY:
                condition = FilterCondition(column, FilterOperator.IS_NULL, declared_type=declared)
            else:
                condition = FilterCondition(
                    column,
                    FilterOperator.EQUAL,
                    coerce_value(value, declared, FilterOperator.EQUAL),
                    declared_type=declared,
                )
            filter_ = Filter(s.pagination.schema, s.pagination.table, FilterGroup(conditions=[condition], logic=Logic.AND))
            validate(filter_)
        except FilterValidationError as error:
            s.status = str(error)
            return
        self._apply_filter(filter_, out)

    def _apply_filter(self, filter_: Filter, out: list[Command]) -> None:
        s = self.state
        where, args = build_where(filter_)
        s.active_filter = filter_
        s.search = SearchState()
        request = s.pagination.set_filter(where, tuple(args))
        count = filter_.root.condition_count()
        s.status = f"Filter ({count} condition{'' if count == 1 else 's'}): {where[len('WHERE '):]}"
        out.append(LoadPageFiltered(s.connection_id, request))

    def _do_clear_filter(self, out: list[Command]) -> None:
        s = self.state
        if s.active_filter is None and not s.pagination.where:
            return
        s.active_filter = None
        s.status = "Filter cleared"
        if self._browsing_table():
            out.append(LoadPage(s.connection_id, s.pagination.set_filter("", ())))

    # -- search and JSON ----------------------------------------------------

    def _do_open_search(self, out: list[Command]) -> None:
        if self._grid() is not None:
            self.state.search_input = SearchInput()

    def _run_search(self, needle: str, mode: str, out: list[Command]) -> None:
        s = self.state
        if not needle:
            return
        s.search = SearchState(needle=needle, mode=mode)
        if mode == "table" and self._browsing_table():
            p = s.pagination
            generation = p.invalidate()
            out.append(SearchTable(s.connection_id, p.schema, p.table, tuple(p.columns), needle, generation=generation))
            s.status = f"Searching {p.schema}.{p.table} for '{needle}'..."
            return
        s.search.mode = "local"
        self._collect_matches(out)

    def _collect_matches(self, out: list[Command]) -> None:
        s = self.state
        grid = self._grid()
        if grid is None:
            return
        _, rows, _ = grid
        needle = s.search.needle.lower()
        s.search.matches = [
            (row_index, col_index)
            for row_index, row in enumerate(rows)
            for col_index, cell in enumerate(row)
            if needle in cell.lower()
        ]
        if not s.search.matches:
            s.show_info("No Results", f"No matches for '{s.search.needle}'")
            return
        s.search.index = 0
        row, col = s.search.matches[0]
        self._set_cell(row, col, out)
        s.status = f"Match 1 of {len(s.search.matches)}"

    def _step_match(self, delta: int, out: list[Command]) -> None:
        s = self.state
        match = s.search.step(delta)
        if match is None:
            return
        self._set_cell(match[0], match[1], out)
        s.status = f"Match {s.search.index + 1} of {len(s.search.matches)}"

    def _do_next_match(self, out: list[Command]) -> None:
        self._step_match(1, out)

    def _do_prev_match(self, out: list[Command]) -> None:
        self._step_match(-1, out)

    def _do_open_jsonb(self, out: list[Command]) -> None:
        cell = self._selected_cell()
        if cell is None:
            return
        column, text = cell
        value = parse_json_cell(text)
        if value is None:
            self.state.status = "Selected cell is not a JSON object or array"
            return
        self.state.jsonb_viewer = JSONBViewer.from_value(column, value)

    # -- queries ------------------------------------------------------------

    def _execute_sql(self, sql: str, out: list[Command]) -> None:
        s = self.state
        sql = sql.strip()
        if not sql:
            s.status = "Query editor is empty"
            return
        if s.connection_id is None:
            s.show_error("Not Connected", "Connect to a server before running queries.")
            return
        tab, superseded = s.result_tabs.start(sql)
        if superseded is not None:
            out.append(CancelQuery(superseded))
        s.data_view = DataView.RESULTS
        s.search = SearchState()
        s.status = "Running query..."
        out.append(ExecuteQuery(s.connection_id, sql, tab.query.token))

    def _cancel_query(self, tab: ResultTab, out: list[Command]) -> None:
        token = tab.query.token
        if self.state.result_tabs.cancel(token) is not None:
            out.append(CancelQuery(token))
            self.state.status = "Query cancelled"

    # -- connection ---------------------------------------------------------

    def _connect(self, config: ConnectionConfig, out: list[Command], use_saved_password: bool = False) -> None:
        dialog = self.state.connection_dialog
        if dialog is not None:
            dialog.connecting = True
            dialog.error = None
        s = self.state
        s.connect_requests += 1
        s.pending_connect_id = s.connect_requests
        s.status = f"Connecting to {config.host}:{config.port}..."
        out.append(
            Connect(
                config,
                timeout=s.settings.connect_timeout,
                use_saved_password=use_saved_password,
                request_id=s.pending_connect_id,
            )
        )

    def _abandon_connect(self, out: list[Command]) -> None:
        s = self.state
        if s.pending_connect_id is not None:
            out.append(CancelConnect(s.pending_connect_id))
            s.pending_connect_id = None
            s.status = "Connect cancelled"

    # -- mouse and resize ---------------------------------------------------

    def _on_mouse(self, event: MouseInput, out: list[Command]) -> None:
        s = self.state
        if s.has_overlay() or s.view_mode is ViewMode.HELP:
            return
        try:
            region = FocusArea(event.region)
        except ValueError:
            logger.debug("Mouse event over unknown region %s", event.region)
            return
        if event.action == "click":
            s.focus = region
            if event.row is None:
                return
            if region is FocusArea.TREE:
                self._click_tree(event.row, out)
            elif region is FocusArea.DATA:
                if self._structure_active():
                    s.structure.select(event.row)
                else:
                    self._set_cell(event.row, None, out)
            return
        delta = -1 if event.action == "scroll_up" else 1
        if region is FocusArea.TREE:
            self._tree_move(delta)
        elif region is FocusArea.DATA:
            self._move(delta, 0, out)

    def _click_tree(self, row: int, out: list[Command]) -> None:
        visible = self._visible_nodes()
        if not 0 <= row < len(visible):
            return
        node = visible[row]
        if node.id == self.state.tree_cursor_id:
            self._select_node(node, out)
        else:
            self.state.tree_cursor_id = node.id

    def _on_resize(self, event: WindowResize, out: list[Command]) -> None:
        self.state.width = event.width
        self.state.height = event.height

    # -- results: connections -----------------------------------------------

    def _on_discovery_complete(self, event: DiscoveryComplete, out: list[Command]) -> None:
        dialog = self.state.connection_dialog
        if dialog is None:
            logger.debug("Discovery finished after the dialog closed")
            return
        dialog.discovering = False
        dialog.discovered = list(event.instances)
        if event.error:
            logger.info("Discovery failed: %s", event.error)
        if not dialog.discovered and dialog.section == "discovered" and dialog.history:
            dialog.toggle_section()

    def _on_connection_history_loaded(self, event: ConnectionHistoryLoaded, out: list[Command]) -> None:
        dialog = self.state.connection_dialog
        if event.error:
            logger.warning("Could not load connection history: %s", event.error)
            if dialog is not None:
                dialog.error = event.error
            return
        if dialog is not None:
            dialog.set_history(event.entries)

    def _on_connect_result(self, event: ConnectResult, out: list[Command]) -> None:
        s = self.state
        if event.request_id != s.pending_connect_id:
            logger.debug("Discarding result of connect request %d (waiting for %s)", event.request_id, s.pending_connect_id)
            return
        s.pending_connect_id = None
        if event.error or event.connection_id is None:
            if s.connection_dialog is not None:
                s.connection_dialog.connecting = False
                s.connection_dialog.error = event.error
            s.status = "Connection failed"
            s.show_error("Connection Failed", event.error or "Unknown error")
            return

        pending = s.result_tabs.pending()
        if pending is not None:
            self._cancel_query(pending, out)
        s.connection = ActiveConnection(
            connection_id=event.connection_id,
            config=event.config,
            connected_at=datetime.now().isoformat(timespec="seconds"),
        )
        s.connection_dialog = None
        s.tree = NavigationTree()
        s.tree_cursor_id = None
        s.tree_filter = TreeFilter()
        s.selected_node_id = None
        s.pending_loads.clear()
        s.pagination.clear()
        s.structure = StructureView()
        s.active_filter = None
        s.details_node_id = None
        s.object_details = None
        s.data_view = DataView.TABLE
        s.search = SearchState()
        s.focus = FocusArea.TREE
        s.status = f"Connected to {event.config.name}"
        out.append(LoadTree(event.connection_id))
        out.append(SaveConnectionHistory(event.config))

    def _on_connection_history_saved(self, event: ConnectionHistorySaved, out: list[Command]) -> None:
        if event.error:
            logger.warning("Could not save connection history: %s", event.error)

    # -- results: tree ------------------------------------------------------

    def _on_tree_loaded(self, event: TreeLoaded, out: list[Command]) -> None:
        s = self.state
        if event.connection_id != s.connection_id:
            logger.debug("Discarding tree for stale connection %s", event.connection_id)
            return
        if event.error or event.spec is None:
            s.show_error("Failed to Load Schema", event.error or "No catalog returned")
            return
        s.tree = NavigationTree.from_specs([event.spec])
        s.pending_loads.clear()
        s.selected_node_id = None
        database = s.tree.get(event.spec.id)
        if database is not None:
            database.expanded = True
            public = s.tree.get(schema_id(database.label, "public"))
            if public is not None:
                public.expanded = True
                self._load_children(public, out)
        s.tree_cursor_id = None
        self._tree_move(0)

    def _on_subtree_loaded(self, event: SubtreeLoaded, out: list[Command]) -> None:
        s = self.state
        if event.connection_id != s.connection_id:
            logger.debug("Discarding children of %s for stale connection", event.parent_id)
            return
        s.pending_loads.discard(event.parent_id)
        parent = s.tree.get(event.parent_id)
        if parent is None or (parent.loaded and not event.refresh):
            logger.debug("Discarding children of %s (gone or already loaded)", event.parent_id)
            return
        if event.error:
            if not event.refresh:
                parent.expanded = False
            s.show_error("Failed to Load Objects", event.error)
            return
        if event.refresh:
            s.tree.replace_children(parent.id, event.children)
            if s.tree_cursor_id not in s.tree:
                s.tree_cursor_id = parent.id
            if s.selected_node_id is not None and s.selected_node_id not in s.tree:
                s.selected_node_id = None
            s.status = f"Reloaded {parent.label}"
        else:
            s.tree.attach(parent.id, event.children)
        if event.failed:
            s.status = f"Could not list: {', '.join(event.failed)}"

        builder = s.filter_builder
        if builder is not None and builder.loading_columns and parent.id == s.selected_node_id:
            columns = self._relation_columns()
            if columns:
                builder.set_columns(columns)

    def _on_structure_loaded(self, event: StructureLoaded, out: list[Command]) -> None:
        s = self.state
        view = s.structure
        if event.connection_id != s.connection_id or not view.is_current(event.schema, event.table):
            logger.debug("Discarding structure of %s.%s (no longer browsed)", event.schema, event.table)
            return
        if event.error or event.structure is None:
            view.fail(event.error or "No structure returned")
            s.status = f"Could not load structure of {event.schema}.{event.table}"
            return
        view.apply(event.structure)
        if event.structure.failed:
            s.status = f"Could not list: {', '.join(event.structure.failed)}"

    # -- results: data ------------------------------------------------------

    def _on_page_loaded(self, event: PageLoaded, out: list[Command]) -> None:
        s = self.state
        request = event.request
        pagination = s.pagination
        if not pagination.is_current(request.schema, request.table, request.generation):
            logger.debug(
                "Discarding stale page %s.%s gen %d (current %s.%s gen %d)",
                request.schema,
                request.table,
                request.generation,
                pagination.schema,
                pagination.table,
                pagination.generation,
            )
            return
        if event.error or event.data is None:
            pagination.page_failed()
            s.show_error("Query Error", event.error or "No data returned")
            return
        data = event.data
        if pagination.apply_page(data.columns, data.rows, data.total_rows, request.offset):
            s.search = SearchState()
        suffix = " (filtered)" if request.filtered else ""
        s.status = f"{request.schema}.{request.table}: {len(pagination.rows)} of {pagination.total_rows} rows{suffix}"

    def _on_query_result(self, event: QueryResult, out: list[Command]) -> None:
        s = self.state
        if event.error is not None:
            outcome = QueryOutcome(status=QueryStatus.ERRORED, error=event.error)
        elif event.cancelled or event.result is None:
            outcome = QueryOutcome(status=QueryStatus.CANCELLED)
        else:
            result = event.result
            outcome = QueryOutcome(
                status=QueryStatus.COMPLETED,
                columns=list(result.columns),
                rows=list(result.rows),
                rows_affected=result.rows_affected,
                duration_ms=result.duration_ms,
            )
        tab = s.result_tabs.resolve(event.token, outcome)
        if tab is None:
            logger.debug("Discarding result of superseded or cancelled query %d", event.token.id)
            return
        if outcome.status is QueryStatus.CANCELLED:
            s.status = "Query cancelled"
            return

        if outcome.status is QueryStatus.ERRORED:
            s.status = "Query failed"
            s.show_error("Query Error", outcome.error or "")
        else:
            summary = (
                f"{len(outcome.rows)} row(s)" if outcome.columns else f"{outcome.rows_affected} row(s) affected"
            )
            truncated = " (truncated)" if event.result.truncated else ""
            s.status = f"{summary} in {outcome.duration_ms:.0f} ms{truncated}"
        if tab is s.result_tabs.active:
            s.data_view = DataView.RESULTS

        if s.connection is not None:
            out.append(
                RecordHistory(
                    QueryHistoryEntry(
                        connection_name=s.connection.config.name,
                        database_name=s.connection.config.database,
                        query=tab.sql,
                        duration_ms=outcome.duration_ms,
                        rows_affected=outcome.rows_affected,
                        success=outcome.status is QueryStatus.COMPLETED,
                        error_message=outcome.error,
                    )
                )
            )

    def _on_search_result(self, event: SearchResult, out: list[Command]) -> None:
        s = self.state
        pagination = s.pagination
        if not pagination.is_current(event.schema, event.table, event.generation) or event.needle != s.search.needle:
            logger.debug(
                "Discarding search of %s.%s for '%s' gen %d (current gen %d)",
                event.schema,
                event.table,
                event.needle,
                event.generation,
                pagination.generation,
            )
            return
        if event.error or event.data is None:
            s.show_error("Search Failed", event.error or "No data returned")
            return
        if not event.data.rows:
            s.show_info("No Results", f"No rows in {event.schema}.{event.table} match '{event.needle}'")
            return
        pagination.replace_rows(event.data.columns, event.data.rows)
        s.data_view = DataView.TABLE
        self._collect_matches(out)

    def _on_object_details_loaded(self, event: ObjectDetailsLoaded, out: list[Command]) -> None:
        s = self.state
        if event.node_id != s.details_node_id:
            logger.debug("Discarding details of %s", event.node_id)
            return
        if event.error or event.details is None:
            s.show_error("Failed to Load Definition", event.error or "Object not found")
            return
        s.object_details = event.details

    # -- results: stores ----------------------------------------------------

    def _on_favorites_loaded(self, event: FavoritesLoaded, out: list[Command]) -> None:
        dialog = self.state.favorites_dialog
        if event.error:
            logger.warning("Could not load favorites: %s", event.error)
            if dialog is not None:
                dialog.loading = False
                dialog.error = event.error
            return
        if not event.query:
            self.state.favorites = list(event.favorites)
        if dialog is None:
            return
        if event.query != dialog.query.value:
            logger.debug("Discarding favorites matching '%s'", event.query)
            return
        dialog.set_favorites(event.favorites)

    def _on_favorite_mutated(self, event: FavoriteMutated, out: list[Command]) -> None:
        s = self.state
        dialog = s.favorites_dialog
        if event.error:
            if dialog is not None:
                dialog.error = event.error
            else:
                s.show_error("Favorites", event.error)
            return
        s.favorites = list(event.favorites)
        if dialog is not None:
            if dialog.query.value:
                out.append(LoadFavorites(query=dialog.query.value))
            else:
                dialog.set_favorites(event.favorites)
            dialog.error = None
        name = event.favorite.name if event.favorite else ""
        if event.action == "add":
            if dialog is not None:
                dialog.adding = False
                dialog.name.clear()
            s.status = f"Saved favorite '{name}'"
        elif event.action == "delete":
            s.status = f"Deleted favorite '{name}'"

    def _on_favorites_exported(self, event: FavoritesExported, out: list[Command]) -> None:
        if event.error:
            self.state.show_error("Export Failed", event.error)
        else:
            self.state.show_info("Export Complete", f"Favorites exported to {event.path}")

    def _on_history_recorded(self, event: HistoryRecorded, out: list[Command]) -> None:
        if event.error:
            logger.warning("Could not record query history: %s", event.error)

    def _on_query_history_loaded(self, event: QueryHistoryLoaded, out: list[Command]) -> None:
        if event.error:
            logger.warning("Could not load query history: %s", event.error)
            return
        palette = self.state.palette
        if not event.query:
            self.state.recent_queries = list(event.entries)
        if palette is None:
            return
        if event.query != palette.query.value:
            logger.debug("Discarding history matching '%s'", event.query)
            return
        palette.items = self._palette_items(list(event.entries))
        palette.selected = 0
