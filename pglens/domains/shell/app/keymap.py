"""Key -> action bindings, grouped by the context that receives the key.

Usage:
    from pglens.domains.shell.app.keymap import get_keymap

    keymap = get_keymap()
    keymap.action_for("tree", "j")  # "cursor_down"
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ActionKeyDef:
    """One key binding."""

    key: str  # Textual key name, or the character for printable keys
    action: str
    context: str  # "global", "tree", "data", "editor", "help"
    description: str = ""


DEFAULT_BINDINGS: tuple[ActionKeyDef, ...] = (
    # Global (any focus, no overlay)
    ActionKeyDef("ctrl+k", "open_palette", "global", "Command palette"),
    ActionKeyDef("ctrl+b", "open_favorites", "global", "Favorites"),
    ActionKeyDef("ctrl+p", "focus_editor", "global", "Query editor"),
    ActionKeyDef("ctrl+e", "execute_query", "global", "Run editor query"),
    ActionKeyDef("ctrl+c", "quit", "global", "Quit"),
    ActionKeyDef("q", "quit", "global", "Quit"),
    ActionKeyDef("question_mark", "toggle_help", "global", "Help"),
    ActionKeyDef("?", "toggle_help", "global"),
    ActionKeyDef("escape", "escape", "global", "Cancel query / back"),
    ActionKeyDef("c", "open_connection_dialog", "global", "Connect"),
    ActionKeyDef("[", "prev_result_tab", "global", "Previous result / structure tab"),
    ActionKeyDef("left_square_bracket", "prev_result_tab", "global"),
    ActionKeyDef("]", "next_result_tab", "global", "Next result / structure tab"),
    ActionKeyDef("right_square_bracket", "next_result_tab", "global"),
    ActionKeyDef("tab", "focus_next", "global", "Next panel"),
    ActionKeyDef("shift+tab", "focus_prev", "global", "Previous panel"),
    # Tree
    ActionKeyDef("up", "cursor_up", "tree"),
    ActionKeyDef("k", "cursor_up", "tree"),
    ActionKeyDef("down", "cursor_down", "tree"),
    ActionKeyDef("j", "cursor_down", "tree"),
    ActionKeyDef("g", "cursor_top", "tree"),
    ActionKeyDef("G", "cursor_bottom", "tree"),
    ActionKeyDef("right", "toggle_node", "tree", "Expand / collapse"),
    ActionKeyDef("l", "toggle_node", "tree"),
    ActionKeyDef("space", "toggle_node", "tree"),
    ActionKeyDef(" ", "toggle_node", "tree"),
    ActionKeyDef("left", "collapse_node", "tree", "Collapse / parent"),
    ActionKeyDef("h", "collapse_node", "tree"),
    ActionKeyDef("enter", "select_node", "tree", "Open"),
    ActionKeyDef("R", "refresh_node", "tree", "Reload schema / table"),
    ActionKeyDef("/", "filter_tree", "tree", "Filter tree (t: v: f: s: col: idx: !)"),
    ActionKeyDef("slash", "filter_tree", "tree"),
    ActionKeyDef("escape", "clear_tree_filter", "tree"),
    # Data panel
    ActionKeyDef("up", "row_up", "data"),
    ActionKeyDef("k", "row_up", "data"),
    ActionKeyDef("down", "row_down", "data"),
    ActionKeyDef("j", "row_down", "data"),
    ActionKeyDef("left", "col_left", "data"),
    ActionKeyDef("h", "col_left", "data"),
    ActionKeyDef("right", "col_right", "data"),
    ActionKeyDef("l", "col_right", "data"),
    ActionKeyDef("g", "row_top", "data"),
    ActionKeyDef("G", "row_bottom", "data"),
    ActionKeyDef("ctrl+d", "half_page_down", "data"),
    ActionKeyDef("ctrl+u", "half_page_up", "data"),
    ActionKeyDef("0", "col_first", "data"),
    ActionKeyDef("$", "col_last", "data"),
    ActionKeyDef("dollar_sign", "col_last", "data"),
    ActionKeyDef("s", "sort", "data", "Sort by column"),
    ActionKeyDef("S", "toggle_nulls_first", "data", "Nulls first"),
    ActionKeyDef("r", "reverse_sort", "data", "Reverse sort"),
    ActionKeyDef("f", "open_filter", "data", "Filter builder"),
    ActionKeyDef("ctrl+f", "quick_filter", "data", "Filter by cell"),
    ActionKeyDef("ctrl+x", "clear_filter", "data", "Clear filter"),
    ActionKeyDef("ctrl+r", "refresh_data", "data", "Refresh"),
    ActionKeyDef("/", "open_search", "data", "Search"),
    ActionKeyDef("slash", "open_search", "data"),
    ActionKeyDef("n", "next_match", "data"),
    ActionKeyDef("N", "prev_match", "data"),
    ActionKeyDef("J", "open_jsonb", "data", "View JSON"),
    ActionKeyDef("x", "close_result_tab", "data", "Close result tab"),
    ActionKeyDef("enter", "open_jsonb", "data"),
    # Editor (only non-typing keys)
    ActionKeyDef("ctrl+e", "execute_query", "editor", "Execute"),
    ActionKeyDef("ctrl+s", "save_favorite", "editor", "Save as favorite"),
    ActionKeyDef("escape", "escape", "editor"),
    ActionKeyDef("tab", "focus_next", "editor"),
    ActionKeyDef("shift+tab", "focus_prev", "editor"),
    ActionKeyDef("ctrl+c", "quit", "editor"),
    ActionKeyDef("ctrl+k", "open_palette", "editor"),
    ActionKeyDef("ctrl+b", "open_favorites", "editor"),
)


class Keymap:
    """Lookup over a set of bindings."""

    def __init__(self, bindings: tuple[ActionKeyDef, ...] = DEFAULT_BINDINGS) -> None:
        self._bindings = bindings
        self._index: dict[tuple[str, str], str] = {}
        for binding in bindings:
            self._index.setdefault((binding.context, binding.key), binding.action)

    def action_for(self, context: str, key: str) -> str | None:
        return self._index.get((context, key))

    def bindings(self, context: str) -> list[ActionKeyDef]:
        """Documented bindings of ``context`` (for the help view)."""
        return [b for b in self._bindings if b.context == context and b.description]


_keymap: Keymap | None = None


def get_keymap() -> Keymap:
    global _keymap
    if _keymap is None:
        _keymap = Keymap()
    return _keymap


def set_keymap(keymap: Keymap | None) -> None:
    """Replace the keymap (tests); None restores the default."""
    global _keymap
    _keymap = keymap
