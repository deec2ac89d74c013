"""Tests for the controller state machine.

The controller performs no I/O, so every test feeds events in and checks
the resulting state and commands.
"""

from __future__ import annotations

from pglens.domains.connections.app.details import ObjectDetails
from pglens.domains.connections.app.session import StatementResult, TableData
from pglens.domains.connections.domain.catalog import ColumnInfo, ConstraintInfo, RelationObjects, TableStructure
from pglens.domains.connections.domain.config import ConnectionConfig, ConnectionHistoryEntry
from pglens.domains.explorer.domain.builder import build_database_spec, build_relation_children
from pglens.domains.explorer.domain.tree_filter import FilterMode
from pglens.domains.query.domain.filter import FilterOperator
from pglens.domains.query.store.favorites import Favorite
from pglens.domains.query.store.history import QueryHistoryEntry
from pglens.domains.results.domain.result_tabs import QueryStatus
from pglens.domains.results.domain.structure import COLUMNS_TAB
from pglens.domains.shell.app.commands import (
    CancelConnect,
    CancelQuery,
    Connect,
    DeleteConnectionHistory,
    Discover,
    ExecuteQuery,
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
from pglens.domains.shell.app.controller import Controller
from pglens.domains.shell.app.dialogs import CommandPalette
from pglens.domains.shell.app.events import (
    ConnectionHistoryLoaded,
    ConnectResult,
    FavoriteMutated,
    FavoritesLoaded,
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
)
from pglens.domains.shell.app.state import AppState, DataView, FocusArea, ViewMode

USERS_COLUMNS = ["id", "name", "age"]


def press(controller: Controller, *keys: str) -> list:
    """Send key presses; single characters are sent as printable input."""
    commands = []
    for key in keys:
        character = key if len(key) == 1 else None
        _, out = controller.handle(KeyInput(key=key, character=character))
        commands.extend(out)
    return commands


def type_text(controller: Controller, text: str) -> list:
    return press(controller, *text)


def of_type(commands: list, kind: type) -> list:
    return [command for command in commands if isinstance(command, kind)]


def _users_rows(count: int, start: int = 0) -> list[list[str]]:
    return [[str(i), f"user {i}", "NULL" if i % 10 == 0 else str(20 + i % 50)] for i in range(start, start + count)]


def open_users(controller: Controller, total: int = 250) -> LoadPage:
    """Select the users table and deliver its first page."""
    controller.state.tree_cursor_id = "table:app.public.users"
    controller.state.focus = FocusArea.TREE
    (command,) = of_type(press(controller, "enter"), LoadPage)
    controller.handle(PageLoaded(command.request, TableData(USERS_COLUMNS, _users_rows(100), total)))
    controller.state.focus = FocusArea.DATA
    return command


class TestStartup:
    def test_without_config_opens_the_connection_dialog(self):
        controller = Controller(AppState.create())

        commands = controller.start()

        assert controller.state.connection_dialog is not None
        assert of_type(commands, Discover)
        assert of_type(commands, LoadConnectionHistory)

    def test_with_config_connects_directly(self):
        controller = Controller(AppState.create())
        config = ConnectionConfig(host="db", user="alice")

        (command,) = controller.start(config)

        assert isinstance(command, Connect)
        assert command.config is config
        assert controller.state.connection_dialog.connecting is True

    def test_discovery_uses_configured_ports(self):
        state = AppState.create()
        state.settings.discovery_ports = [6543]
        (discover,) = of_type(Controller(state).start(), Discover)
        assert discover.ports == (6543,)


class TestConnecting:
    def test_successful_connect_loads_the_tree(self):
        controller = Controller(AppState.create())
        config = ConnectionConfig(host="db", user="alice", database="app")
        (connect,) = controller.start(config)

        _, commands = controller.handle(ConnectResult(config, connection_id="conn-9", request_id=connect.request_id))

        state = controller.state
        assert state.connection_id == "conn-9"
        assert state.connection_dialog is None
        assert [type(c) for c in commands] == [LoadTree, SaveConnectionHistory]

    def test_failed_connect_shows_an_error(self):
        controller = Controller(AppState.create())
        (connect,) = controller.start(ConnectionConfig())

        _, commands = controller.handle(
            ConnectResult(ConnectionConfig(), error="connection refused", request_id=connect.request_id)
        )

        state = controller.state
        assert commands == []
        assert state.connection is None
        assert state.error.title == "Connection Failed"
        assert state.connection_dialog.connecting is False
        assert state.connection_dialog.error == "connection refused"

    def test_d_forgets_a_recent_connection(self):
        controller = Controller(AppState.create())
        controller.start()
        entry = ConnectionHistoryEntry("db", 5432, "app", "alice")
        controller.handle(ConnectionHistoryLoaded(entries=[entry]))

        assert press(controller, "d") == []
        press(controller, "tab")
        (command,) = press(controller, "d")

        assert command == DeleteConnectionHistory(entry)
        controller.handle(ConnectionHistoryLoaded(entries=[]))
        assert controller.state.connection_dialog.history == []
        assert controller.state.connection_dialog.selected_item() is None

    def test_manual_form_validates_port(self):
        controller = Controller(AppState.create())
        controller.start()
        press(controller, "m", "tab")
        dialog = controller.state.connection_dialog
        dialog.form["port"].clear()
        type_text(controller, "abc")

        commands = press(controller, "enter")

        assert commands == []
        assert "Invalid port" in dialog.error

    def test_manual_form_connects(self):
        controller = Controller(AppState.create())
        controller.start()
        press(controller, "m")
        controller.state.connection_dialog.form["host"].clear()
        type_text(controller, "db.internal")

        (command,) = press(controller, "enter")

        assert isinstance(command, Connect)
        assert command.config.host == "db.internal"
        assert command.use_saved_password is False

    def test_result_arriving_after_escape_is_ignored(self):
        controller = Controller(AppState.create())
        config = ConnectionConfig(host="db", user="alice", database="app")
        (connect,) = controller.start(config)

        (cancel,) = press(controller, "escape")
        _, commands = controller.handle(ConnectResult(config, connection_id="conn-1", request_id=connect.request_id))

        assert isinstance(cancel, CancelConnect)
        assert cancel.request_id == connect.request_id
        assert commands == []
        assert controller.state.connection is None
        assert controller.state.connection_dialog is None

    def test_only_the_latest_connect_is_applied(self, connected_state):
        controller = Controller(connected_state)
        first_config = ConnectionConfig(host="slow", user="alice", database="app")
        second_config = ConnectionConfig(host="fast", user="alice", database="app")
        (first,) = controller.start(first_config)
        press(controller, "escape")
        (second,) = controller.start(second_config)

        controller.handle(ConnectResult(first_config, connection_id="conn-slow", request_id=first.request_id))
        assert connected_state.connection_id == "conn-1"
        assert connected_state.connection_dialog.connecting is True

        controller.handle(ConnectResult(second_config, connection_id="conn-fast", request_id=second.request_id))
        assert second.request_id > first.request_id
        assert connected_state.connection_id == "conn-fast"

    def test_stale_failure_does_not_disturb_the_dialog(self):
        controller = Controller(AppState.create())
        (first,) = controller.start(ConnectionConfig(host="slow"))
        press(controller, "escape")
        controller.start(ConnectionConfig(host="fast"))

        controller.handle(ConnectResult(ConnectionConfig(host="slow"), error="timed out", request_id=first.request_id))

        assert controller.state.error is None
        assert controller.state.connection_dialog.connecting is True


class TestKeyRouting:
    def test_error_overlay_takes_precedence(self, connected_state):
        controller = Controller(connected_state)
        connected_state.palette = CommandPalette()
        connected_state.show_error("Boom", "bad")

        press(controller, "escape")

        assert connected_state.error is None
        assert connected_state.palette is not None

    def test_quit_from_error_overlay(self, connected_state):
        controller = Controller(connected_state)
        connected_state.show_error("Boom", "bad")

        commands = press(controller, "q")

        assert connected_state.should_quit is True
        assert of_type(commands, Quit)

    def test_focus_ring_wraps(self, connected_state):
        controller = Controller(connected_state)
        seen = []
        for _ in range(3):
            press(controller, "tab")
            seen.append(connected_state.focus)
        assert seen == [FocusArea.DATA, FocusArea.EDITOR, FocusArea.TREE]

        press(controller, "shift+tab")
        assert connected_state.focus is FocusArea.EDITOR

    def test_help_mode_swallows_quit(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "?")
        assert connected_state.view_mode is ViewMode.HELP

        commands = press(controller, "q")

        assert connected_state.view_mode is ViewMode.NORMAL
        assert connected_state.should_quit is False
        assert commands == []

    def test_editor_receives_typed_text(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "ctrl+p")
        type_text(controller, "SELECT 1")
        press(controller, "enter", "backspace")

        assert connected_state.editor_text == "SELECT 1"
        assert connected_state.focus is FocusArea.EDITOR

    def test_q_in_editor_is_text(self, connected_state):
        controller = Controller(connected_state)
        connected_state.focus = FocusArea.EDITOR
        press(controller, "q")
        assert connected_state.editor_text == "q"
        assert connected_state.should_quit is False

    def test_mouse_is_ignored_under_an_overlay(self, connected_state):
        controller = Controller(connected_state)
        connected_state.show_info("Note", "hello")

        controller.handle(MouseInput("click", "editor", 0))

        assert connected_state.focus is FocusArea.TREE

    def test_click_focuses_and_moves_the_tree_cursor(self, connected_state):
        controller = Controller(connected_state)
        connected_state.focus = FocusArea.EDITOR

        controller.handle(MouseInput("click", "tree", 0))

        assert connected_state.focus is FocusArea.TREE
        assert connected_state.tree_cursor_id == "db:app"


class TestTree:
    def test_tree_loaded_expands_public_and_loads_it(self, connected_state):
        controller = Controller(connected_state)
        spec = build_database_spec("app", ["audit", "public"])

        _, commands = controller.handle(TreeLoaded("conn-1", spec))

        tree = connected_state.tree
        assert tree.node("db:app").expanded is True
        assert tree.node("schema:app.public").expanded is True
        assert tree.node("schema:app.audit").expanded is False
        (load,) = commands
        assert isinstance(load, LoadChildren)
        assert (load.node_id, load.schema, load.table) == ("schema:app.public", "public", None)
        assert connected_state.tree_cursor_id == "db:app"

    def test_tree_for_another_connection_is_discarded(self, connected_state):
        controller = Controller(connected_state)
        before = connected_state.tree

        controller.handle(TreeLoaded("conn-old", build_database_spec("other", ["public"])))

        assert connected_state.tree is before

    def test_expanding_a_schema_loads_it_once(self, connected_state):
        controller = Controller(connected_state)
        controller.handle(TreeLoaded("conn-1", build_database_spec("app", ["audit", "public"])))
        connected_state.tree_cursor_id = "schema:app.audit"

        first = press(controller, "l")
        press(controller, "h")
        second = press(controller, "l")

        assert len(of_type(first, LoadChildren)) == 1
        assert of_type(second, LoadChildren) == []

    def test_subtree_for_a_loaded_parent_is_discarded(self, connected_state):
        controller = Controller(connected_state)
        before = [n.id for n in connected_state.tree.children_of("schema:app.public")]

        controller.handle(SubtreeLoaded("conn-1", "schema:app.public", children=[]))

        assert [n.id for n in connected_state.tree.children_of("schema:app.public")] == before

    def test_subtree_for_a_stale_connection_is_discarded(self, connected_state):
        controller = Controller(connected_state)
        controller.handle(TreeLoaded("conn-1", build_database_spec("app", ["public"])))

        controller.handle(SubtreeLoaded("conn-old", "schema:app.public", children=[]))

        assert connected_state.tree.node("schema:app.public").loaded is False

    def test_subtree_error_collapses_the_parent(self, connected_state):
        controller = Controller(connected_state)
        controller.handle(TreeLoaded("conn-1", build_database_spec("app", ["public"])))

        controller.handle(SubtreeLoaded("conn-1", "schema:app.public", error="permission denied"))

        assert connected_state.tree.node("schema:app.public").expanded is False
        assert connected_state.error.title == "Failed to Load Objects"
        assert "schema:app.public" not in connected_state.pending_loads

    def test_reload_from_a_column_targets_its_table(self, connected_state):
        controller = Controller(connected_state)
        connected_state.tree.node("table:app.public.users").expanded = True
        connected_state.tree.node("columns:app.public.users").expanded = True
        connected_state.tree_cursor_id = "column:app.public.users.age"

        (command,) = press(controller, "R")

        assert isinstance(command, LoadChildren)
        assert (command.node_id, command.table, command.refresh) == ("table:app.public.users", "users", True)
        assert "table:app.public.users" in connected_state.pending_loads

    def test_reloaded_children_replace_the_old_ones(self, connected_state):
        controller = Controller(connected_state)
        tree = connected_state.tree
        tree.node("table:app.public.users").expanded = True
        tree.node("columns:app.public.users").expanded = True
        connected_state.tree_cursor_id = "column:app.public.users.age"
        press(controller, "R")
        children = build_relation_children(
            "app",
            "public",
            "users",
            RelationObjects(columns=[ColumnInfo("id", "integer", nullable=False), ColumnInfo("email", "text")]),
        )

        controller.handle(SubtreeLoaded("conn-1", "table:app.public.users", children=children, refresh=True))

        assert [n.id for n in tree.children_of("columns:app.public.users")] == [
            "column:app.public.users.id",
            "column:app.public.users.email",
        ]
        assert tree.node("columns:app.public.users").expanded is True
        assert connected_state.tree_cursor_id == "table:app.public.users"
        assert "table:app.public.users" not in connected_state.pending_loads

    def test_failed_reload_keeps_the_old_children(self, connected_state):
        controller = Controller(connected_state)
        connected_state.tree.node("table:app.public.users").expanded = True
        press(controller, "R")

        controller.handle(SubtreeLoaded("conn-1", "table:app.public.users", error="timeout", refresh=True))

        assert connected_state.tree.get("column:app.public.users.age") is not None
        assert connected_state.tree.node("table:app.public.users").expanded is True
        assert connected_state.error.title == "Failed to Load Objects"

    def test_reload_on_the_database_reloads_the_tree(self, connected_state):
        controller = Controller(connected_state)
        connected_state.tree_cursor_id = "db:app"

        (command,) = press(controller, "R")

        assert isinstance(command, LoadTree)

    def test_selecting_a_table_loads_its_first_page(self, connected_state):
        controller = Controller(connected_state)

        (command,) = press(controller, "enter")

        assert isinstance(command, LoadPage)
        assert (command.request.schema, command.request.table, command.request.offset) == ("public", "users", 0)
        assert connected_state.selected_node_id == "table:app.public.users"
        assert connected_state.data_view is DataView.TABLE

    def test_selecting_a_function_loads_its_definition(self, connected_state):
        controller = Controller(connected_state)
        connected_state.tree_cursor_id = "function:app.public.add_one(integer)"

        (command,) = press(controller, "enter")

        assert isinstance(command, LoadObjectDetails)
        assert connected_state.data_view is DataView.DETAILS

    def test_details_for_an_old_selection_are_discarded(self, connected_state):
        controller = Controller(connected_state)
        connected_state.tree_cursor_id = "function:app.public.add_one(integer)"
        press(controller, "enter")
        connected_state.tree_cursor_id = "table:app.public.users"
        press(controller, "enter")

        details = ObjectDetails(title="Function public.add_one", text="CREATE FUNCTION ...")
        controller.handle(ObjectDetailsLoaded("function:app.public.add_one(integer)", details))

        assert connected_state.object_details is None


class TestTreeFilter:
    def test_typing_filters_the_tree_live(self, connected_state):
        controller = Controller(connected_state)
        connected_state.tree_cursor_id = "db:app"

        press(controller, "/", "t", ":", "u", "s")

        assert connected_state.tree_filter.query == "t:us"
        assert connected_state.tree_cursor_id == "table:app.public.users"
        press(controller, "backspace", "backspace", "backspace", "backspace", "a", "d", "d")
        assert connected_state.tree_cursor_id == "function:app.public.add_one(integer)"

    def test_keys_are_typed_not_run_while_inputting(self, connected_state):
        controller = Controller(connected_state)

        commands = press(controller, "/", "q", "R")

        assert commands == []
        assert connected_state.should_quit is False
        assert connected_state.tree_filter.query == "qR"

    def test_enter_keeps_the_filter_for_navigation(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "/", "u", "s", "e", "r", "s", "enter")

        assert connected_state.tree_filter.mode is FilterMode.ACTIVE
        (command,) = press(controller, "enter")

        assert isinstance(command, LoadPage)
        assert command.request.table == "users"

    def test_escape_clears_and_reveals_the_cursor(self, connected_state):
        controller = Controller(connected_state)
        connected_state.tree.node("schema:app.public").expanded = False
        press(controller, "/", "a", "g", "e", "enter")
        assert connected_state.tree_cursor_id == "column:app.public.users.age"

        press(controller, "escape")

        assert connected_state.tree_filter.mode is FilterMode.OFF
        assert connected_state.tree.node("schema:app.public").expanded is True
        assert connected_state.tree_cursor_id == "column:app.public.users.age"

    def test_enter_on_an_empty_query_turns_the_filter_off(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "/", "enter")
        assert connected_state.tree_filter.mode is FilterMode.OFF

    def test_slash_restarts_an_active_filter(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "/", "u", "enter", "/")

        assert connected_state.tree_filter.mode is FilterMode.INPUTTING
        assert connected_state.tree_filter.query == ""


class TestDataPanel:
    def test_page_loaded_fills_the_grid(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)

        assert connected_state.pagination.columns == USERS_COLUMNS
        assert len(connected_state.pagination.rows) == 100
        assert "100 of 250" in connected_state.status

    def test_moving_near_the_end_loads_more(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        connected_state.pagination.cursor.row = 89

        (command,) = press(controller, "j")

        assert isinstance(command, LoadPage)
        assert command.request.offset == 100

    def test_stale_page_is_discarded(self, connected_state):
        controller = Controller(connected_state)
        first = open_users(controller)
        press(controller, "s")

        controller.handle(PageLoaded(first.request, TableData(USERS_COLUMNS, _users_rows(5, start=500), 250)))

        assert connected_state.pagination.rows[0][0] == "0"

    def test_sort_reloads_from_offset_zero(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)

        (command,) = press(controller, "s")

        assert command.request.offset == 0
        assert command.request.sort.column == "id"

    def test_quick_filter_on_null_cell(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "$")

        (command,) = press(controller, "ctrl+f")

        assert isinstance(command, LoadPageFiltered)
        assert command.request.where == 'WHERE "age" IS NULL'
        assert command.request.args == ()

    def test_quick_filter_coerces_by_column_type(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "j", "$")

        (command,) = press(controller, "ctrl+f")

        assert command.request.where == 'WHERE "age" = $1'
        assert command.request.args == (21,)
        assert connected_state.status == 'Filter (1 condition): "age" = $1'

    def test_clear_filter(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "$", "ctrl+f")

        (command,) = press(controller, "ctrl+x")

        assert isinstance(command, LoadPage)
        assert command.request.where == ""
        assert connected_state.active_filter is None

    def test_open_jsonb(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        connected_state.pagination.rows[0][1] = '{"a": [1, 2]}'
        press(controller, "l")

        press(controller, "J")

        viewer = connected_state.jsonb_viewer
        assert viewer.column == "name"
        assert viewer.lines[0] == "{"

    def test_non_json_cell(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "J")
        assert connected_state.jsonb_viewer is None


class TestStructureTabs:
    def _structure(self, table: str = "users") -> TableStructure:
        return TableStructure(
            schema="public",
            table=table,
            columns=[ColumnInfo("id", "integer", nullable=False, is_primary_key=True), ColumnInfo("name", "text")],
            constraints=[ConstraintInfo("users_pkey", "p", "PRIMARY KEY (id)", columns=("id",))],
        )

    def test_next_tab_loads_the_structure(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)

        (command,) = press(controller, "]")

        assert command == LoadStructure("conn-1", "public", "users")
        assert connected_state.structure.title == "Columns"
        assert connected_state.structure.loading is True

    def test_keys_move_within_and_across_structure_tabs(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "]")
        controller.handle(StructureLoaded("conn-1", "public", "users", structure=self._structure()))

        press(controller, "j")
        assert connected_state.structure.selected_row == 1
        assert connected_state.pagination.cursor.row == 0

        assert press(controller, "l") == []
        assert connected_state.structure.title == "Constraints"
        assert connected_state.structure.rows()[0][1] == "PK"

        press(controller, "h", "h")
        assert connected_state.structure.showing_data

    def test_structure_of_another_table_is_discarded(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "]")

        controller.handle(StructureLoaded("conn-1", "public", "orders", structure=self._structure("orders")))

        assert connected_state.structure.structure is None
        assert connected_state.structure.loading is True

    def test_failed_load_is_shown_and_refresh_retries(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "]")
        controller.handle(StructureLoaded("conn-1", "public", "users", error="permission denied"))

        assert connected_state.structure.error == "permission denied"
        assert "public.users" in connected_state.status
        assert press(controller, "j") == []

        (command,) = press(controller, "ctrl+r")
        assert isinstance(command, LoadStructure)

    def test_opening_a_table_on_a_structure_tab_loads_both(self, connected_state):
        controller = Controller(connected_state)
        connected_state.structure.switch(COLUMNS_TAB)
        connected_state.focus = FocusArea.TREE

        commands = press(controller, "enter")

        assert [type(c) for c in commands] == [LoadPage, LoadStructure]

    def test_brackets_reach_result_tabs_past_the_data_tab(self, connected_state):
        controller = Controller(connected_state)
        connected_state.focus = FocusArea.EDITOR
        connected_state.editor_text = "SELECT 1"
        press(controller, "ctrl+e")
        connected_state.focus = FocusArea.TREE
        open_users(controller)

        press(controller, "[")

        assert connected_state.data_view is DataView.RESULTS
        assert connected_state.structure.showing_data


class TestFilterBuilder:
    def test_columns_come_from_the_tree(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)

        commands = press(controller, "f")

        builder = connected_state.filter_builder
        assert commands == []
        assert builder.loading_columns is False
        assert [(c.name, c.data_type) for c in builder.columns] == [
            ("id", "integer"),
            ("name", "text"),
            ("age", "integer"),
        ]

    def test_apply_compiles_the_filter(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "f", "down", "down", "tab", "down", "down", "tab")
        assert connected_state.filter_builder.operator is FilterOperator.GREATER_THAN
        type_text(controller, "30")

        (command,) = press(controller, "enter")

        assert isinstance(command, LoadPageFiltered)
        assert command.request.where == 'WHERE "age" > $1'
        assert command.request.args == (30,)
        assert connected_state.filter_builder is None
        assert connected_state.active_filter is not None

    def test_invalid_value_issues_no_command(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "f", "tab", "tab")
        type_text(controller, "abc")

        commands = press(controller, "enter")

        assert commands == []
        assert "Not a number" in connected_state.filter_builder.error

    def test_reopening_edits_the_active_filter(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "f", "tab", "tab")
        type_text(controller, "5")
        press(controller, "enter")

        press(controller, "f")

        builder = connected_state.filter_builder
        assert len(builder.root.conditions) == 1
        assert builder.root is not connected_state.active_filter.root


class TestSearch:
    def test_local_search_without_matches_shows_info(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)

        press(controller, "/")
        type_text(controller, "zzz")
        press(controller, "enter")

        assert connected_state.error.title == "No Results"
        assert connected_state.error.informational is True

    def test_local_search_moves_between_matches(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)

        press(controller, "/")
        type_text(controller, "user 1")
        press(controller, "enter")

        search = connected_state.search
        assert search.matches[0] == (1, 1)
        assert connected_state.pagination.cursor.row == 1
        press(controller, "n")
        assert connected_state.pagination.cursor.row == search.matches[1][0]
        press(controller, "N")
        assert connected_state.pagination.cursor.row == 1

    def test_table_search(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "/", "tab")
        type_text(controller, "alice")

        (command,) = press(controller, "enter")

        assert isinstance(command, SearchTable)
        assert command.columns == tuple(USERS_COLUMNS)
        assert command.generation == connected_state.pagination.generation

        controller.handle(
            SearchResult("public", "users", "alice", command.generation, TableData(USERS_COLUMNS, [["7", "alice", "30"]], 1))
        )
        assert connected_state.pagination.rows == [["7", "alice", "30"]]
        assert connected_state.search.matches == [(0, 1)]

    def test_search_result_for_another_needle_is_discarded(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        press(controller, "/", "tab")
        type_text(controller, "alice")
        (command,) = press(controller, "enter")

        controller.handle(
            SearchResult("public", "users", "bob", command.generation, TableData(USERS_COLUMNS, [["1", "bob", "3"]], 1))
        )

        assert len(connected_state.pagination.rows) == 100

    def _search_table(self, controller: Controller, needle: str) -> SearchTable:
        press(controller, "/", "tab")
        type_text(controller, needle)
        (command,) = press(controller, "enter")
        return command

    def test_page_arriving_after_a_table_search_is_discarded(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        (next_page,) = of_type(press(controller, *["j"] * 90), LoadPage)
        assert next_page.request.offset == 100

        search = self._search_table(controller, "alice")
        controller.handle(
            SearchResult("public", "users", "alice", search.generation, TableData(USERS_COLUMNS, [["7", "alice", "30"]], 1))
        )
        controller.handle(PageLoaded(next_page.request, TableData(USERS_COLUMNS, _users_rows(100, start=100), 250)))

        pagination = connected_state.pagination
        assert pagination.rows == [["7", "alice", "30"]]
        assert pagination.total_rows == 1

    def test_search_arriving_after_a_refresh_is_discarded(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        search = self._search_table(controller, "alice")

        (reload,) = of_type(press(controller, "ctrl+r"), LoadPage)
        controller.handle(
            SearchResult("public", "users", "alice", search.generation, TableData(USERS_COLUMNS, [["7", "alice", "30"]], 1))
        )

        assert len(connected_state.pagination.rows) == 100
        assert connected_state.search.matches == []
        assert connected_state.pagination.is_current("public", "users", reload.request.generation)

    def test_search_arriving_after_a_sort_or_filter_is_discarded(self, connected_state):
        controller = Controller(connected_state)
        open_users(controller)
        first = self._search_table(controller, "alice")
        press(controller, "s")
        second = self._search_table(controller, "alice")
        press(controller, "ctrl+f")

        for search in (first, second):
            controller.handle(
                SearchResult(
                    "public", "users", "alice", search.generation, TableData(USERS_COLUMNS, [["7", "alice", "30"]], 1)
                )
            )

        assert connected_state.pagination.rows == _users_rows(100)
        assert connected_state.error is None


class TestQueries:
    def _run(self, controller: Controller, sql: str) -> list:
        controller.state.focus = FocusArea.EDITOR
        controller.state.editor_text = sql
        return press(controller, "ctrl+e")

    def test_execute_requires_a_connection(self):
        controller = Controller(AppState.create())
        commands = self._run(controller, "SELECT 1")

        assert commands == []
        assert controller.state.error.title == "Not Connected"

    def test_execute_opens_a_running_tab(self, connected_state):
        controller = Controller(connected_state)

        (command,) = self._run(controller, "SELECT 1")

        assert isinstance(command, ExecuteQuery)
        assert command.sql == "SELECT 1"
        assert connected_state.data_view is DataView.RESULTS
        assert connected_state.result_tabs.pending().query.token is command.token

    def test_completed_result_is_shown_and_recorded(self, connected_state):
        controller = Controller(connected_state)
        (command,) = self._run(controller, "SELECT 1 AS n")

        result = StatementResult(columns=["n"], rows=[["1"]], rows_affected=1, duration_ms=3.0)
        _, commands = controller.handle(QueryResult(command.token, result=result))

        tab = connected_state.result_tabs.active
        assert tab.query.status is QueryStatus.COMPLETED
        assert tab.rows == [["1"]]
        (record,) = commands
        assert isinstance(record, RecordHistory)
        assert record.entry.success is True
        assert record.entry.connection_name == "alice@localhost:5432/app"

    def test_error_result_keeps_errored_state(self, connected_state):
        controller = Controller(connected_state)
        (command,) = self._run(controller, "SELEC 1")

        _, commands = controller.handle(QueryResult(command.token, error='syntax error at or near "SELEC"'))

        assert connected_state.result_tabs.active.query.status is QueryStatus.ERRORED
        assert connected_state.error.title == "Query Error"
        assert of_type(commands, RecordHistory)[0].entry.success is False

    def test_cancelled_query_discards_its_late_result(self, connected_state):
        controller = Controller(connected_state)
        (command,) = self._run(controller, "SELECT pg_sleep(10)")

        (cancel,) = press(controller, "escape")
        assert isinstance(cancel, CancelQuery)
        assert cancel.token is command.token

        result = StatementResult(columns=["pg_sleep"], rows=[[""]], rows_affected=1, duration_ms=10000.0)
        _, commands = controller.handle(QueryResult(command.token, result=result))

        tab = connected_state.result_tabs.active
        assert tab.query.status is QueryStatus.CANCELLED
        assert tab.rows == []
        assert commands == []

    def test_new_query_supersedes_the_pending_one(self, connected_state):
        controller = Controller(connected_state)
        (first,) = self._run(controller, "SELECT pg_sleep(10)")

        commands = self._run(controller, "SELECT 2")

        cancel, execute = commands
        assert isinstance(cancel, CancelQuery)
        assert cancel.token is first.token
        assert isinstance(execute, ExecuteQuery)

    def test_quit_cancels_the_pending_query(self, connected_state):
        controller = Controller(connected_state)
        (command,) = self._run(controller, "SELECT pg_sleep(10)")
        connected_state.focus = FocusArea.TREE

        commands = press(controller, "q")

        assert [type(c) for c in commands] == [CancelQuery, Quit]
        assert connected_state.should_quit is True

    def test_closing_a_running_tab_cancels_it(self, connected_state):
        controller = Controller(connected_state)
        (command,) = self._run(controller, "SELECT pg_sleep(10)")
        connected_state.focus = FocusArea.DATA

        (cancel,) = press(controller, "x")

        assert cancel.token is command.token
        assert len(connected_state.result_tabs) == 0
        assert connected_state.data_view is DataView.TABLE


class TestPalette:
    def test_opening_loads_recent_queries(self, connected_state):
        controller = Controller(connected_state)
        commands = press(controller, "ctrl+k")

        assert connected_state.palette is not None
        assert of_type(commands, LoadQueryHistory)

    def test_jump_to_table(self, connected_state):
        controller = Controller(connected_state)
        connected_state.tree.node("tables:app.public").expanded = False
        connected_state.tree_cursor_id = "db:app"
        press(controller, "ctrl+k")
        type_text(controller, "users")

        (command,) = press(controller, "enter")

        assert isinstance(command, LoadPage)
        assert connected_state.palette is None
        assert connected_state.tree_cursor_id == "table:app.public.users"
        assert connected_state.tree.node("tables:app.public").expanded is True

    def test_run_command(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "ctrl+k")
        type_text(controller, "favorites")

        commands = press(controller, "enter")

        assert connected_state.favorites_dialog is not None
        assert of_type(commands, LoadFavorites)

    def test_typing_searches_the_whole_history(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "ctrl+k")

        commands = type_text(controller, "ord")

        assert [c.query for c in of_type(commands, LoadQueryHistory)] == ["o", "or", "ord"]

    def test_history_matching_the_query_is_listed(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "ctrl+k")
        type_text(controller, "orders")
        old = QueryHistoryEntry("c", "app", "SELECT id, customer_id, total, created_at, status FROM orders")

        controller.handle(QueryHistoryLoaded(entries=[old], query="orders"))

        item = connected_state.palette.selected_item()
        assert item.kind == "history"
        assert item.value == old.query
        assert connected_state.recent_queries == []

    def test_history_for_an_older_query_is_discarded(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "ctrl+k")
        type_text(controller, "ord")

        controller.handle(QueryHistoryLoaded(entries=[QueryHistoryEntry("c", "app", "SELECT 1")], query="or"))

        assert all(item.kind != "history" for item in connected_state.palette.items)


class TestFavorites:
    def test_slash_searches_favorites(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "ctrl+b", "/")

        commands = type_text(controller, "rep")

        assert [c.query for c in of_type(commands, LoadFavorites)] == ["r", "re", "rep"]
        assert connected_state.favorites_dialog.searching is True

    def test_search_results_replace_the_list(self, connected_state):
        controller = Controller(connected_state)
        everything = [Favorite("Report", "SELECT 1"), Favorite("Users", "SELECT 2")]
        press(controller, "ctrl+b")
        controller.handle(FavoritesLoaded(favorites=everything))
        press(controller, "/")
        type_text(controller, "rep")

        controller.handle(FavoritesLoaded(favorites=everything[:1], query="re"))
        assert len(connected_state.favorites_dialog.favorites) == 2

        controller.handle(FavoritesLoaded(favorites=everything[:1], query="rep"))
        assert [f.name for f in connected_state.favorites_dialog.favorites] == ["Report"]
        assert [f.name for f in connected_state.favorites] == ["Report", "Users"]

    def test_escape_clears_the_search_before_closing(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "ctrl+b", "/")
        type_text(controller, "rep")
        press(controller, "enter")

        (reload,) = press(controller, "escape")

        assert reload == LoadFavorites()
        assert connected_state.favorites_dialog.query.value == ""
        press(controller, "escape")
        assert connected_state.favorites_dialog is None

    def test_mutation_during_a_search_reruns_it(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "ctrl+b", "/")
        type_text(controller, "rep")
        press(controller, "enter")

        _, commands = controller.handle(FavoriteMutated(action="delete", favorite=Favorite("Report", "SELECT 1")))

        assert commands == [LoadFavorites(query="rep")]

    def test_add_requires_editor_text(self, connected_state):
        controller = Controller(connected_state)
        press(controller, "ctrl+b", "a")

        assert connected_state.favorites_dialog.adding is False
        assert connected_state.favorites_dialog.error == "Query editor is empty"

    def test_save_from_editor(self, connected_state):
        controller = Controller(connected_state)
        connected_state.editor_text = "SELECT * FROM users"
        connected_state.focus = FocusArea.EDITOR

        press(controller, "ctrl+s")
        type_text(controller, "All users")
        commands = press(controller, "enter")

        (mutation,) = of_type(commands, MutateFavorite)
        assert mutation.action == "add"
        assert mutation.name == "All users"
        assert mutation.query == "SELECT * FROM users"
        assert mutation.database == "app"
