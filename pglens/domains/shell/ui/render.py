"""Rich renderables projected from AppState.

Nothing here mutates state. Each panel renders only the slice of rows that
fits its height, and reports where that slice starts so mouse rows can be
mapped back to tree nodes or grid rows.
"""

from __future__ import annotations

from dataclasses import dataclass

from rich import box
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from pglens.domains.connections.domain.config import DiscoveredInstance, DiscoverySource
from pglens.domains.explorer.domain.tree_filter import FilterMode
from pglens.domains.explorer.domain.tree_nodes import NodeKind
from pglens.domains.results.domain.result_tabs import QueryStatus
from pglens.domains.results.domain.structure import STRUCTURE_TABS
from pglens.domains.shell.app.dialogs import FORM_FIELDS, BUILDER_FIELDS
from pglens.domains.shell.app.keymap import Keymap
from pglens.domains.shell.app.state import AppState, DataView, FocusArea

MAX_CELL_WIDTH = 40
GRID_HEADER_LINES = 2

_KIND_ICONS = {
    NodeKind.DATABASE: "◆",
    NodeKind.SCHEMA: "▣",
    NodeKind.TABLE: "▤",
    NodeKind.VIEW: "◫",
    NodeKind.MATERIALIZED_VIEW: "◩",
    NodeKind.FUNCTION: "ƒ",
    NodeKind.PROCEDURE: "ƒ",
    NodeKind.SEQUENCE: "#",
    NodeKind.INDEX: "⚡",
    NodeKind.TRIGGER: "⚙",
    NodeKind.EXTENSION: "⊕",
    NodeKind.COLUMN: "·",
}


@dataclass
class Window:
    """Visible slice of a list: ``start`` is the index of the first shown item."""

    start: int = 0
    header_lines: int = 0


def _window(cursor: int, count: int, height: int) -> int:
    if count <= height or cursor < height // 2:
        return 0
    return min(cursor - height // 2, count - height)


def _truncate(text: str, width: int = MAX_CELL_WIDTH) -> str:
    text = text.replace("\n", "⏎")
    return text if len(text) <= width else text[: width - 1] + "…"


# -- tree -------------------------------------------------------------------


def render_tree(state: AppState, height: int) -> tuple[Text, Window]:
    tree_filter = state.tree_filter
    filtering = tree_filter.mode is not FilterMode.OFF
    if filtering:
        height = max(1, height - 1)
    visible = tree_filter.visible(state.tree)
    if not visible:
        if filtering:
            text = Text("No matches.", style="dim")
            text.append("\n" + _filter_line(state, 0))
            return text, Window()
        message = "Not connected. Press c to connect." if state.connection is None else "Loading..."
        return Text(message, style="dim"), Window()
    ids = [node.id for node in visible]
    cursor = ids.index(state.tree_cursor_id) if state.tree_cursor_id in ids else 0
    start = _window(cursor, len(visible), height)
    text = Text(no_wrap=True, overflow="ellipsis")
    for index, node in enumerate(visible[start : start + height], start=start):
        # Filter results are flat; the schema name follows each label instead.
        depth = 0 if tree_filter.applied else state.tree.depth(node.id) - 1
        if node.kind is NodeKind.COLUMN or tree_filter.applied:
            marker = " "
        elif node.expanded:
            marker = "▾"
        elif node.children or not node.loaded:
            marker = "▸"
        else:
            marker = " "
        icon = _KIND_ICONS.get(node.kind, "")
        prefix = f"{'  ' * depth}{marker} {icon + ' ' if icon else ''}"
        style = ""
        if node.id == state.selected_node_id:
            style = "bold"
        if index == cursor:
            style = "reverse" if state.focus is FocusArea.TREE else "underline"
        if not node.selectable and index != cursor:
            style = "dim"
        line = Text(prefix + node.label, style=style)
        for position in tree_filter.highlights(node):
            line.stylize("bold yellow", len(prefix) + position, len(prefix) + position + 1)
        if tree_filter.applied and node.kind is not NodeKind.SCHEMA:
            schema = state.tree.schema_name(node.id)
            if schema:
                line.append(f"  {schema}", style="dim")
        if node.id in state.pending_loads:
            line.append(" …")
        text.append_text(line)
        text.append("\n")
    if filtering:
        text.append(_filter_line(state, len(visible)))
    text.rstrip()
    return text, Window(start=start)


def _filter_line(state: AppState, count: int) -> str:
    tree_filter = state.tree_filter
    if tree_filter.mode is FilterMode.INPUTTING:
        return f"/{tree_filter.query}█"
    return f"/{tree_filter.query}  ({count}, esc: clear)"


# -- data panel -------------------------------------------------------------


def _grid_table(
    columns: list[str],
    rows: list[list[str]],
    cursor_row: int,
    cursor_col: int,
    height: int,
    focused: bool,
    headers: list[str] | None = None,
) -> tuple[Table, int]:
    body_height = max(1, height - GRID_HEADER_LINES)
    start = _window(cursor_row, len(rows), body_height)
    table = Table(box=box.SIMPLE_HEAD, show_edge=False, pad_edge=False, expand=False)
    for index, column in enumerate(headers or columns):
        style = "bold reverse" if index == cursor_col and focused else "bold"
        table.add_column(Text(column, style=style), no_wrap=True, overflow="ellipsis", max_width=MAX_CELL_WIDTH)
    for row_index, row in enumerate(rows[start : start + body_height], start=start):
        cells = []
        for col_index, value in enumerate(row):
            style = "dim italic" if value == "NULL" else ""
            if row_index == cursor_row and col_index == cursor_col:
                style = "reverse" if focused else "underline"
            cells.append(Text(_truncate(value), style=style))
        table.add_row(*cells, style="on grey15" if row_index == cursor_row else None)
    return table, start


def render_data(state: AppState, height: int) -> tuple[RenderableType, Window]:
    focused = state.focus is FocusArea.DATA
    if state.data_view is DataView.DETAILS:
        return _render_details(state), Window()
    if state.data_view is DataView.RESULTS:
        return _render_results(state, height, focused)

    p = state.pagination
    if not p.has_relation:
        return Text("Select a table or view in the tree.", style="dim"), Window()
    structure = state.structure
    bar = Text(no_wrap=True, overflow="ellipsis")
    for index, title in enumerate(STRUCTURE_TABS):
        bar.append(f" {title} ", style="reverse" if index == structure.tab else "dim")
    if not structure.showing_data:
        return _render_structure(state, height, focused, bar)
    if not p.columns:
        return Group(bar, Text(f"Loading {p.schema}.{p.table}...", style="dim")), Window()
    headers = []
    for column in p.columns:
        if column == p.sort_column:
            arrow = "↑" if p.sort_direction.value == "ASC" else "↓"
            headers.append(f"{column} {arrow}{'∅' if p.nulls_first else ''}")
        else:
            headers.append(column)
    table, start = _grid_table(p.columns, p.rows, p.cursor.row, p.cursor.col, height - 1, focused, headers)
    return Group(bar, table), Window(start=start, header_lines=GRID_HEADER_LINES + 1)


def _render_structure(state: AppState, height: int, focused: bool, bar: Text) -> tuple[RenderableType, Window]:
    view = state.structure
    if view.error:
        return Group(bar, Text(view.error, style="red")), Window()
    if view.structure is None:
        return Group(bar, Text(f"Loading structure of {view.schema}.{view.table}...", style="dim")), Window()
    rows = view.rows()
    if not rows:
        return Group(bar, Text(f"No {view.title.lower()}.", style="dim")), Window()
    # No cell cursor here; -1 keeps every header and cell unhighlighted.
    table, start = _grid_table(view.headers(), rows, view.selected_row, -1, height - 1, focused)
    return Group(bar, table), Window(start=start, header_lines=GRID_HEADER_LINES + 1)


def _render_details(state: AppState) -> RenderableType:
    details = state.object_details
    if details is None:
        return Text("Loading definition...", style="dim")
    return Panel(Syntax(details.text, "sql", word_wrap=True), title=details.title, border_style="dim")


def _render_results(state: AppState, height: int, focused: bool) -> tuple[RenderableType, Window]:
    tabs = state.result_tabs
    active = tabs.active
    bar = Text(no_wrap=True, overflow="ellipsis")
    for tab in tabs.tabs:
        marker = {"running": "⟳ ", "cancelled": "✗ ", "errored": "! "}.get(tab.query.status.value, "")
        bar.append(f" {marker}{tab.title} ", style="reverse" if tab is active else "dim")
    if active is None:
        return Text("No results.", style="dim"), Window()

    status = active.query.status
    if status is QueryStatus.RUNNING:
        body: RenderableType = Text("Running... (esc to cancel)", style="dim")
    elif status is QueryStatus.CANCELLED:
        body = Text("Query cancelled.", style="yellow")
    elif status is QueryStatus.ERRORED:
        body = Text(active.query.outcome.error or "Query failed", style="red")
    elif not active.columns:
        body = Text(f"{active.query.outcome.rows_affected} row(s) affected.", style="green")
    else:
        table, start = _grid_table(
            active.columns, active.rows, active.cursor.row, active.cursor.col, height - 1, focused
        )
        return Group(bar, table), Window(start=start, header_lines=GRID_HEADER_LINES + 1)
    return Group(bar, body), Window()


# -- editor and status ------------------------------------------------------


def render_editor(state: AppState) -> RenderableType:
    if not state.editor_text:
        hint = "Type SQL here, ctrl+e to run" if state.focus is FocusArea.EDITOR else "ctrl+p to write a query"
        return Text(hint, style="dim")
    text = state.editor_text + ("█" if state.focus is FocusArea.EDITOR else "")
    return Syntax(text, "sql", word_wrap=True, background_color="default")


def render_status(state: AppState) -> Text:
    text = Text(no_wrap=True, overflow="ellipsis")
    if state.connection is not None:
        text.append(f" {state.connection.config.name} ", style="bold reverse")
    else:
        text.append(" not connected ", style="reverse")
    if state.active_filter is not None:
        text.append(" filtered ", style="black on yellow")
    if state.status:
        text.append(f" {state.status}")
    return text


# -- overlays ---------------------------------------------------------------


def render_overlay(state: AppState, keymap: Keymap) -> RenderableType | None:
    if state.error is not None:
        error = state.error
        style = "blue" if error.informational else "red"
        body = Text(error.message)
        body.append("\n\nenter/esc: dismiss   q: quit", style="dim")
        return Panel(body, title=error.title, border_style=style)
    if state.connection_dialog is not None:
        return _connection_dialog(state)
    if state.palette is not None:
        return _palette(state)
    if state.filter_builder is not None:
        return _filter_builder(state)
    if state.jsonb_viewer is not None:
        viewer = state.jsonb_viewer
        visible = "\n".join(viewer.lines[viewer.offset : viewer.offset + max(1, state.height - 8)])
        return Panel(Syntax(visible, "json"), title=f"JSON: {viewer.column}", subtitle="esc: close")
    if state.favorites_dialog is not None:
        return _favorites(state)
    if state.search_input is not None:
        search = state.search_input
        return Panel(
            Text(f"/{search.text.value}█"),
            title=f"Search ({search.mode})",
            subtitle="tab: local/table   enter: search",
        )
    return None


def _selectable_lines(labels: list[str], selected: int, active: bool = True) -> Text:
    text = Text()
    for index, label in enumerate(labels):
        style = "reverse" if index == selected and active else ""
        text.append(f" {label}\n", style=style)
    return text


def _connection_dialog(state: AppState) -> RenderableType:
    dialog = state.connection_dialog
    if dialog.connecting:
        return Panel(Text("Connecting..."), title="Connect")
    if dialog.manual:
        text = Text()
        for index, name in enumerate(FORM_FIELDS):
            value = dialog.form[name].value
            if name == "password":
                value = "*" * len(value)
            cursor = "█" if index == dialog.field_index else ""
            style = "bold" if index == dialog.field_index else ""
            text.append(f"{name:>9}: {value}{cursor}\n", style=style)
        if dialog.error:
            text.append(f"\n{dialog.error}", style="red")
        return Panel(text, title="Manual connection", subtitle="tab: next field   enter: connect   esc: back")

    sections = []
    discovered_title = "Discovered" + (" (scanning...)" if dialog.discovering else "")
    discovered = [_discovered_label(i) for i in dialog.discovered] or ["(none)"]
    history = [f"{e.label}  ×{e.usage_count}" for e in dialog.history] or ["(none)"]
    for title, labels, section in (
        (discovered_title, discovered, "discovered"),
        ("Recent", history, "history"),
    ):
        active = dialog.section == section
        sections.append(Text(title, style="bold" if active else "dim"))
        sections.append(_selectable_lines(labels, dialog.selected, active))
    if dialog.error:
        sections.append(Text(dialog.error, style="red"))
    return Panel(Group(*sections), title="Connect", subtitle="tab: section   m: manual   enter: connect   esc: close")


def _discovered_label(instance: DiscoveredInstance) -> str:
    if instance.source is DiscoverySource.PGPASS:
        who = "/".join(part for part in (instance.user, instance.database) if part)
        return f"{instance.host}:{instance.port}  (.pgpass{' ' + who if who else ''})"
    return f"{instance.host}:{instance.port}  ({instance.source.label}, {instance.response_ms:.0f} ms)"


def _palette(state: AppState) -> RenderableType:
    palette = state.palette
    items = palette.filtered()
    labels = [f"[{item.kind}] {item.label}" for item in items[:20]] or ["(no matches)"]
    return Panel(
        Group(Text(f"> {palette.query.value}█", style="bold"), _selectable_lines(labels, palette.selected)),
        title="Command palette",
    )


def _filter_builder(state: AppState) -> RenderableType:
    builder = state.filter_builder
    column = builder.column
    values = {
        "column": f"{column.name} ({column.data_type or '?'})" if column else "(no columns)",
        "operator": builder.operator.value,
        "value": builder.value.value,
    }
    text = Text()
    for index, name in enumerate(BUILDER_FIELDS):
        focused = index == builder.field_index
        text.append(f"{name:>8}: {values[name]}{'█' if focused else ''}\n", style="bold" if focused else "")
    if builder.loading_columns:
        text.append("loading column types...\n", style="dim")
    text.append("\n")
    for line in builder.describe():
        text.append(line + "\n", style="cyan")
    if builder.error:
        text.append(f"\n{builder.error}", style="red")
    return Panel(
        text,
        title=f"Filter {builder.schema}.{builder.table}",
        subtitle="ctrl+a add  ctrl+o and/or  ctrl+g group  enter apply  esc close",
    )


def _favorites(state: AppState) -> RenderableType:
    dialog = state.favorites_dialog
    if dialog.adding:
        body = Text(f"Name: {dialog.name.value}█")
        if dialog.error:
            body.append(f"\n{dialog.error}", style="red")
        return Panel(body, title="Save favorite", subtitle="enter: save   esc: back")
    if dialog.loading and not dialog.favorites:
        return Panel(Text("Loading..."), title="Favorites")
    labels = [f"{f.name}  ({f.usage_count}×)  {_truncate(' '.join(f.query.split()), 50)}" for f in dialog.favorites]
    body = _selectable_lines(labels or ["(no favorites)"], dialog.selected)
    if dialog.searching or dialog.query.value:
        body = Group(Text(f"/ {dialog.query.value}{'█' if dialog.searching else ''}", style="bold"), body)
    if dialog.error:
        body = Group(body, Text(dialog.error, style="red"))
    return Panel(body, title="Favorites", subtitle="enter: run   a: add   d: delete   /: search   esc: close")


def render_help(keymap: Keymap) -> RenderableType:
    table = Table(box=box.SIMPLE_HEAD, show_edge=False)
    table.add_column("Context", style="dim")
    table.add_column("Key", style="bold")
    table.add_column("Action")
    for context in ("global", "tree", "data", "editor"):
        for binding in keymap.bindings(context):
            table.add_row(context, binding.key, binding.description)
    return Panel(table, title="Help", subtitle="q/esc: back")
