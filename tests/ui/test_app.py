"""UI tests for the Textual application shell."""

from __future__ import annotations

import pytest
from textual.widgets import Static

from pglens.domains.connections.domain.config import ConnectionConfig
from pglens.domains.shell.app.commands import Discover, LoadConnectionHistory, LoadTree, Quit, SaveConnectionHistory
from pglens.domains.shell.app.controller import Controller
from pglens.domains.shell.app.events import ConnectResult
from pglens.domains.shell.app.state import AppState, FocusArea, ViewMode
from pglens.domains.shell.ui.app import PglensApp


class RecordingExecutor:
    """Collects commands instead of running them."""

    def __init__(self, post) -> None:
        self.post = post
        self.commands = []
        self.shut_down = False

    def submit_all(self, commands) -> None:
        self.commands.extend(commands)

    def shutdown(self) -> None:
        self.shut_down = True


def make_app() -> PglensApp:
    return PglensApp(controller=Controller(AppState.create()), executor_factory=RecordingExecutor)


def command_types(app: PglensApp) -> list[type]:
    return [type(command) for command in app.executor.commands]


class TestStartup:
    @pytest.mark.asyncio
    async def test_connection_dialog_opens_and_discovery_starts(self):
        app = make_app()

        async with app.run_test(size=(100, 35)) as pilot:
            await pilot.pause()

            assert app.state.connection_dialog is not None
            assert Discover in command_types(app)
            assert LoadConnectionHistory in command_types(app)
            assert app.query_one("#overlay", Static).has_class("visible")

    @pytest.mark.asyncio
    async def test_startup_config_connects_directly(self):
        config = ConnectionConfig(host="db", database="app", user="alice")
        app = PglensApp(
            controller=Controller(AppState.create()),
            executor_factory=RecordingExecutor,
            initial_config=config,
        )

        async with app.run_test(size=(100, 35)) as pilot:
            await pilot.pause()

            (connect,) = app.executor.commands
            assert connect.config == config
            assert app.state.connection_dialog.connecting is True


class TestKeyRouting:
    @pytest.mark.asyncio
    async def test_escape_closes_the_connection_dialog(self):
        app = make_app()

        async with app.run_test(size=(100, 35)) as pilot:
            await pilot.press("escape")
            await pilot.pause()

            assert app.state.connection_dialog is None
            assert not app.query_one("#overlay", Static).has_class("visible")

    @pytest.mark.asyncio
    async def test_help_toggles(self):
        app = make_app()

        async with app.run_test(size=(100, 35)) as pilot:
            await pilot.press("escape")
            await pilot.press("question_mark")
            await pilot.pause()
            assert app.state.view_mode is ViewMode.HELP

            await pilot.press("question_mark")
            await pilot.pause()
            assert app.state.view_mode is ViewMode.NORMAL

    @pytest.mark.asyncio
    async def test_q_quits(self):
        app = make_app()

        async with app.run_test(size=(100, 35)) as pilot:
            await pilot.press("escape")
            await pilot.press("q")

            assert app.state.should_quit is True
            assert Quit in command_types(app)


class TestWorkerEvents:
    @pytest.mark.asyncio
    async def test_connect_result_updates_the_view(self):
        config = ConnectionConfig(host="db", database="app", user="alice")
        app = PglensApp(
            controller=Controller(AppState.create()),
            executor_factory=RecordingExecutor,
            initial_config=config,
        )

        async with app.run_test(size=(100, 35)) as pilot:
            await pilot.pause()
            (connect,) = app.executor.commands
            app.route_event(ConnectResult(config, connection_id="conn-1", request_id=connect.request_id))
            await pilot.pause()

            assert app.state.connection_id == "conn-1"
            assert app.state.focus is FocusArea.TREE
            assert app.query_one("#tree").has_class("active-pane")
            assert app.state.status == "Connected to alice@db:5432/app"
            assert LoadTree in command_types(app)
            assert SaveConnectionHistory in command_types(app)
