"""Pytest fixtures for pglens tests."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest

_TEST_CONFIG_DIR = Path(tempfile.mkdtemp(prefix="pglens-test-config-"))
os.environ.setdefault("PGLENS_CONFIG_DIR", str(_TEST_CONFIG_DIR))

# No keyring in CI
_settings_file = _TEST_CONFIG_DIR / "settings.json"
_settings_file.write_text('{"allow_plaintext_credentials": true}')


@pytest.fixture
def memory_credentials():
    """Install an in-memory credentials service for the duration of a test."""
    from pglens.domains.connections.app.credentials import MemoryCredentialsService, set_credentials_service

    service = MemoryCredentialsService()
    set_credentials_service(service)
    yield service
    set_credentials_service(None)


@pytest.fixture
def connected_state():
    """AppState with an active connection and a small loaded tree."""
    from pglens.domains.connections.domain.catalog import ColumnInfo, RelationObjects, SchemaObjects, RoutineInfo
    from pglens.domains.connections.domain.config import ActiveConnection, ConnectionConfig
    from pglens.domains.explorer.domain.builder import (
        build_database_spec,
        build_relation_children,
        build_schema_children,
    )
    from pglens.domains.explorer.domain.tree import NavigationTree
    from pglens.domains.shell.app.state import AppState

    state = AppState.create()
    config = ConnectionConfig(host="localhost", port=5432, database="app", user="alice")
    state.connection = ActiveConnection(connection_id="conn-1", config=config, connected_at="2024-01-01T00:00:00")

    tree = NavigationTree.from_specs([build_database_spec("app", ["public"])])
    tree.attach(
        "schema:app.public",
        build_schema_children(
            "app",
            "public",
            SchemaObjects(tables=["users"], functions=[RoutineInfo("add_one", "integer", 42)]),
        ),
    )
    tree.attach(
        "table:app.public.users",
        build_relation_children(
            "app",
            "public",
            "users",
            RelationObjects(
                columns=[
                    ColumnInfo("id", "integer", nullable=False, is_primary_key=True),
                    ColumnInfo("name", "text"),
                    ColumnInfo("age", "integer"),
                ]
            ),
        ),
    )
    tree.node("db:app").expanded = True
    tree.node("schema:app.public").expanded = True
    tree.node("tables:app.public").expanded = True
    state.tree = tree
    state.tree_cursor_id = "table:app.public.users"
    return state
