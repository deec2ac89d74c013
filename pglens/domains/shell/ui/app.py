"""Textual application: feeds terminal events to the controller and renders its state."""

from __future__ import annotations

import logging
from collections.abc import Callable

from textual import events
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Static

from pglens.domains.connections.domain.config import ConnectionConfig
from pglens.domains.shell.app.controller import Controller
from pglens.domains.shell.app.events import Event, KeyInput, MouseInput, WindowResize
from pglens.domains.shell.app.executor import CommandExecutor
from pglens.domains.shell.app.state import AppState, FocusArea, ViewMode

from .render import Window, render_data, render_editor, render_help, render_overlay, render_status, render_tree

logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[Callable[[Event], None]], CommandExecutor]


class RegionView(Static):
    """One of the three focusable panels; forwards mouse input for its region."""

    def __init__(self, region: FocusArea, **kwargs) -> None:
        super().__init__(**kwargs)
        self.focus_area = region
        self.row_window = Window()

    def _row_at(self, event: events.MouseEvent) -> int | None:
        offset = event.get_content_offset(self)
        if offset is None:
            return None
        row = offset.y - self.row_window.header_lines
        if row < 0:
            return None
        return self.row_window.start + row

    def on_click(self, event: events.Click) -> None:
        self.app.route_event(MouseInput("click", self.focus_area.value, self._row_at(event)))

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        self.app.route_event(MouseInput("scroll_up", self.focus_area.value))

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        self.app.route_event(MouseInput("scroll_down", self.focus_area.value))


class PglensApp(App):
    """Terminal PostgreSQL browser."""

    TITLE = "pglens"
    ENABLE_COMMAND_PALETTE = False

    CSS = """
    Screen {
        layers: default overlay;
    }

    #content {
        height: 1fr;
    }

    #tree {
        width: 40;
        border: round $panel;
        padding: 0 1;
    }

    #main-panel {
        width: 1fr;
    }

    #data {
        height: 2fr;
        border: round $panel;
        padding: 0 1;
    }

    #editor {
        height: 1fr;
        border: round $panel;
        padding: 0 1;
    }

    #tree.active-pane,
    #data.active-pane,
    #editor.active-pane {
        border: round $primary;
        border-title-color: $primary;
    }

    #status-bar {
        height: 1;
        background: $boost;
    }

    #overlay {
        layer: overlay;
        dock: top;
        margin: 4 8;
        max-height: 80%;
        display: none;
        background: $surface;
    }

    #overlay.visible {
        display: block;
    }
    """

    def __init__(
        self,
        controller: Controller | None = None,
        executor_factory: ExecutorFactory | None = None,
        initial_config: ConnectionConfig | None = None,
    ) -> None:
        super().__init__()
        self.controller = controller or Controller()
        self._executor_factory = executor_factory or (lambda post: CommandExecutor(post))
        self._initial_config = initial_config
        self.executor: CommandExecutor | None = None

    @property
    def state(self) -> AppState:
        return self.controller.state

    def compose(self) -> ComposeResult:
        with Vertical(id="main-container"):
            with Horizontal(id="content"):
                yield RegionView(FocusArea.TREE, id="tree")
                with Vertical(id="main-panel"):
                    yield RegionView(FocusArea.DATA, id="data")
                    yield RegionView(FocusArea.EDITOR, id="editor")
            yield Static("", id="status-bar")
        yield Static("", id="overlay")

    def on_mount(self) -> None:
        self.query_one("#tree", RegionView).border_title = "Explorer"
        self.query_one("#data", RegionView).border_title = "Data"
        self.query_one("#editor", RegionView).border_title = "Query"
        self.executor = self._executor_factory(self._post_from_worker)
        self.executor.submit_all(self.controller.start(self._initial_config))
        self.route_event(WindowResize(self.size.width, self.size.height))

    def on_unmount(self) -> None:
        if self.executor is not None:
            self.executor.shutdown()

    def _post_from_worker(self, event: Event) -> None:
        if not self.is_running:
            logger.debug("Dropping %s after shutdown", type(event).__name__)
            return
        self.call_from_thread(self.route_event, event)

    def route_event(self, event: Event) -> None:
        """Run one event through the controller and start the resulting commands."""
        state, commands = self.controller.handle(event)
        if self.executor is not None:
            self.executor.submit_all(commands)
        if state.should_quit:
            self.exit()
            return
        self.refresh_view()

    # -- input ------------------------------------------------------------

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        character = event.character
        if character is not None and len(character) == 1 and character.isprintable():
            key = character
        else:
            key = event.key
        self.route_event(KeyInput(key=key, character=character))

    def on_resize(self, event: events.Resize) -> None:
        self.route_event(WindowResize(event.size.width, event.size.height))

    # -- rendering --------------------------------------------------------

    def refresh_view(self) -> None:
        state = self.state
        tree_view = self.query_one("#tree", RegionView)
        data_view = self.query_one("#data", RegionView)
        editor_view = self.query_one("#editor", RegionView)

        for view in (tree_view, data_view, editor_view):
            view.set_class(view.focus_area is state.focus, "active-pane")

        tree_text, tree_view.row_window = render_tree(state, max(1, tree_view.content_size.height or state.height))
        tree_view.update(tree_text)

        if state.view_mode is ViewMode.HELP:
            data_view.update(render_help(self.controller.keymap))
            data_view.row_window = Window()
        else:
            data, data_view.row_window = render_data(state, max(1, data_view.content_size.height or state.visible_rows))
            data_view.update(data)

        editor_view.update(render_editor(state))
        self.query_one("#status-bar", Static).update(render_status(state))

        overlay = self.query_one("#overlay", Static)
        renderable = render_overlay(state, self.controller.keymap)
        overlay.set_class(renderable is not None, "visible")
        overlay.update(renderable if renderable is not None else "")
