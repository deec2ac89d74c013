"""Runs commands off the UI thread and posts one result event per command.

The executor owns the live ``PostgresSession``. Commands only carry the
connection id they were issued for; a command whose id no longer matches
the live session fails with an error event instead of touching another
server.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from pglens.domains.connections.app.catalog import PostgresCatalog
from pglens.domains.connections.app.details import load_object_details
from pglens.domains.connections.app.session import PostgresSession
from pglens.domains.connections.discovery.pgpass import pgpass_instances
from pglens.domains.connections.discovery.scanner import DEFAULT_PORTS, PortScanner, merge_instances
from pglens.domains.connections.domain.config import ConnectionConfig, DiscoveredInstance
from pglens.domains.connections.store.history import ConnectionHistoryStore
from pglens.domains.explorer.domain.builder import (
    build_database_spec,
    build_relation_children,
    build_schema_children,
)
from pglens.domains.explorer.domain.tree_nodes import NodeKind
from pglens.domains.query.store.favorites import FavoritesStore
from pglens.domains.query.store.history import QueryHistoryStore
from pglens.shared.core.errors import (
    ConnectionFailedError,
    DiscoveryTimeout,
    PglensError,
    QueryCancelledError,
    QueryError,
)

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
    ObjectDetailsLoaded,
    PageLoaded,
    QueryHistoryLoaded,
    QueryResult,
    SearchResult,
    StructureLoaded,
    SubtreeLoaded,
    TreeLoaded,
)

logger = logging.getLogger(__name__)

SessionOpener = Callable[[ConnectionConfig, float], PostgresSession]

# Error event for each command type, given the command and the error text.
_FAILURES: dict[type, Callable[[Any, str], Event]] = {
    Discover: lambda c, e: DiscoveryComplete(instances=[], error=e),
    LoadConnectionHistory: lambda c, e: ConnectionHistoryLoaded(entries=[], error=e),
    DeleteConnectionHistory: lambda c, e: ConnectionHistoryLoaded(entries=[], error=e),
    Connect: lambda c, e: ConnectResult(config=c.config, error=e, request_id=c.request_id),
    SaveConnectionHistory: lambda c, e: ConnectionHistorySaved(error=e),
    LoadTree: lambda c, e: TreeLoaded(connection_id=c.connection_id, error=e),
    LoadChildren: lambda c, e: SubtreeLoaded(
        connection_id=c.connection_id, parent_id=c.node_id, error=e, refresh=c.refresh
    ),
    LoadStructure: lambda c, e: StructureLoaded(
        connection_id=c.connection_id, schema=c.schema, table=c.table, error=e
    ),
    LoadPage: lambda c, e: PageLoaded(request=c.request, error=e),
    LoadPageFiltered: lambda c, e: PageLoaded(request=c.request, error=e),
    ExecuteQuery: lambda c, e: QueryResult(token=c.token, error=e),
    SearchTable: lambda c, e: SearchResult(
        schema=c.schema, table=c.table, needle=c.needle, generation=c.generation, error=e
    ),
    LoadObjectDetails: lambda c, e: ObjectDetailsLoaded(node_id=c.node_id, error=e),
    LoadFavorites: lambda c, e: FavoritesLoaded(error=e, query=c.query),
    MutateFavorite: lambda c, e: FavoriteMutated(action=c.action, error=e),
    ExportFavorites: lambda c, e: FavoritesExported(error=e),
    RecordHistory: lambda c, e: HistoryRecorded(error=e),
    LoadQueryHistory: lambda c, e: QueryHistoryLoaded(error=e, query=c.query),
}


def _open_session(config: ConnectionConfig, timeout: float) -> PostgresSession:
    return PostgresSession.open(config, connect_timeout=timeout)


class CommandExecutor:
    """Thread-pool executor for controller commands.

    ``post`` receives every result event; the UI passes a callable that
    hands the event back to its own thread (``App.call_from_thread``).
    """

    def __init__(
        self,
        post: Callable[[Event], None],
        *,
        opener: SessionOpener = _open_session,
        scanner_factory: Callable[[tuple[int, ...]], PortScanner] = PortScanner,
        pgpass_source: Callable[[], list[DiscoveredInstance]] = pgpass_instances,
        connection_history: ConnectionHistoryStore | None = None,
        query_history: QueryHistoryStore | None = None,
        favorites: FavoritesStore | None = None,
        max_workers: int = 8,
    ) -> None:
        self._post = post
        self._opener = opener
        self._scanner_factory = scanner_factory
        self._pgpass_source = pgpass_source
        self._connection_history = connection_history
        self._query_history = query_history
        self._favorites = favorites
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pglens-cmd")
        self._lock = threading.Lock()
        self._session: PostgresSession | None = None
        # Only the latest connect request may install its session.
        self._connect_request: int | None = None
        self._handlers: dict[type, Callable[[Any], Event]] = {
            Discover: self._discover,
            LoadConnectionHistory: self._load_connection_history,
            DeleteConnectionHistory: self._delete_connection_history,
            Connect: self._connect,
            SaveConnectionHistory: self._save_connection_history,
            LoadTree: self._load_tree,
            LoadChildren: self._load_children,
            LoadStructure: self._load_structure,
            LoadPage: self._load_page,
            LoadPageFiltered: self._load_page,
            ExecuteQuery: self._execute_query,
            SearchTable: self._search_table,
            LoadObjectDetails: self._load_object_details,
            LoadFavorites: self._load_favorites,
            MutateFavorite: self._mutate_favorite,
            ExportFavorites: self._export_favorites,
            RecordHistory: self._record_history,
            LoadQueryHistory: self._load_query_history,
        }

    # -- stores (created on first use) ----------------------------------------

    @property
    def connection_history(self) -> ConnectionHistoryStore:
        if self._connection_history is None:
            self._connection_history = ConnectionHistoryStore.get_instance()
        return self._connection_history

    @property
    def query_history(self) -> QueryHistoryStore:
        if self._query_history is None:
            self._query_history = QueryHistoryStore.get_instance()
        return self._query_history

    @property
    def favorites(self) -> FavoritesStore:
        if self._favorites is None:
            self._favorites = FavoritesStore.get_instance()
        return self._favorites

    @property
    def session(self) -> PostgresSession | None:
        with self._lock:
            return self._session

    # -- dispatch -------------------------------------------------------------

    def submit(self, command: Command) -> Future | None:
        """Start ``command``. Returns its future, or None when it posts no result."""
        if isinstance(command, Quit):
            return None
        if isinstance(command, CancelQuery):
            # conn.cancel() talks to the server; keep it off the caller's thread.
            return self._pool.submit(command.token.cancel)
        if isinstance(command, CancelConnect):
            with self._lock:
                if self._connect_request == command.request_id:
                    self._connect_request = None
            return None
        if isinstance(command, Connect):
            with self._lock:
                self._connect_request = command.request_id
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unknown command: {command!r}")
        logger.debug("Submitting %s", type(command).__name__)
        return self._pool.submit(self._run, handler, command)

    def submit_all(self, commands: list[Command]) -> None:
        for command in commands:
            self.submit(command)

    def _run(self, handler: Callable[[Any], Event], command: Command) -> None:
        name = type(command).__name__
        try:
            event = handler(command)
        except PglensError as error:
            logger.debug("%s failed: %s", name, error)
            event = _FAILURES[type(command)](command, str(error))
        except Exception as error:
            logger.exception("%s failed unexpectedly", name)
            event = _FAILURES[type(command)](command, f"{type(error).__name__}: {error}")
        else:
            logger.debug("%s completed", name)
        self._post(event)

    def shutdown(self) -> None:
        """Stop accepting work and close the live session."""
        self._pool.shutdown(wait=False, cancel_futures=True)
        with self._lock:
            session, self._session = self._session, None
        if session is not None:
            session.close()

    def _require_session(self, connection_id: str) -> PostgresSession:
        with self._lock:
            session = self._session
        if session is None or session.connection_id != connection_id:
            raise PglensError("Connection is no longer active")
        return session

    # -- connections ----------------------------------------------------------

    def _discover(self, command: Discover) -> Event:
        """Port scan (including PGHOST/PGPORT) merged with the .pgpass servers."""
        scanner = self._scanner_factory(command.ports or DEFAULT_PORTS)
        error = None
        try:
            scanned = scanner.scan(timeout=command.timeout)
        except DiscoveryTimeout as timeout:
            logger.info("Port scan: %s", timeout)
            scanned, error = [], str(timeout)
        return DiscoveryComplete(instances=merge_instances(scanned, self._pgpass_source()), error=error)

    def _load_connection_history(self, command: LoadConnectionHistory) -> Event:
        return ConnectionHistoryLoaded(entries=self.connection_history.recent(command.limit))

    def _delete_connection_history(self, command: DeleteConnectionHistory) -> Event:
        store = self.connection_history
        if not store.delete(command.entry):
            logger.debug("%s was not in the connection history", command.entry.label)
        return ConnectionHistoryLoaded(entries=store.recent())

    def _connect(self, command: Connect) -> Event:
        config = command.config
        if command.use_saved_password and not config.password:
            config = self.connection_history.with_saved_password(config)
        session = self._open_with_timeout(config, command.timeout)
        with self._lock:
            latest = self._connect_request == command.request_id
            previous = self._session
            if latest:
                self._session = session
                self._connect_request = None
        if not latest:
            logger.info("Closing connection to %s: request was cancelled or superseded", config.name)
            session.close()
            return ConnectResult(
                config=config, error="Connection request was superseded", request_id=command.request_id
            )
        if previous is not None:
            previous.close()
        return ConnectResult(config=config, connection_id=session.connection_id, request_id=command.request_id)

    def _open_with_timeout(self, config: ConnectionConfig, timeout: float) -> PostgresSession:
        opener = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pglens-connect")
        future = opener.submit(self._opener, config, timeout)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.add_done_callback(_close_abandoned_session)
            raise ConnectionFailedError(config.host, config.port, f"timed out after {timeout:g}s") from None
        finally:
            opener.shutdown(wait=False)

    def _save_connection_history(self, command: SaveConnectionHistory) -> Event:
        self.connection_history.add(command.config)
        return ConnectionHistorySaved()

    # -- catalog --------------------------------------------------------------

    def _load_tree(self, command: LoadTree) -> Event:
        session = self._require_session(command.connection_id)
        catalog = PostgresCatalog(session)
        schemas = catalog.list_schemas()
        extensions = catalog.list_extensions()
        spec = build_database_spec(catalog.database, schemas, extensions)
        return TreeLoaded(connection_id=command.connection_id, spec=spec)

    def _load_children(self, command: LoadChildren) -> Event:
        session = self._require_session(command.connection_id)
        catalog = PostgresCatalog(session)
        if command.kind is NodeKind.SCHEMA:
            schema_objects = catalog.schema_objects(command.schema)
            children = build_schema_children(command.database, command.schema, schema_objects)
            failed = schema_objects.failed
        elif command.table is not None:
            relation_objects = catalog.relation_objects(command.schema, command.table)
            children = build_relation_children(command.database, command.schema, command.table, relation_objects)
            failed = relation_objects.failed
        else:
            raise PglensError(f"Cannot load children of {command.kind.value} nodes")
        return SubtreeLoaded(
            connection_id=command.connection_id,
            parent_id=command.node_id,
            children=children,
            failed=list(failed),
            refresh=command.refresh,
        )

    def _load_structure(self, command: LoadStructure) -> Event:
        session = self._require_session(command.connection_id)
        structure = PostgresCatalog(session).table_structure(command.schema, command.table)
        return StructureLoaded(
            connection_id=command.connection_id,
            schema=command.schema,
            table=command.table,
            structure=structure,
        )

    def _load_object_details(self, command: LoadObjectDetails) -> Event:
        session = self._require_session(command.connection_id)
        details = load_object_details(session, command.kind, command.metadata)
        return ObjectDetailsLoaded(node_id=command.node_id, details=details)

    # -- data -----------------------------------------------------------------

    def _load_page(self, command: LoadPage | LoadPageFiltered) -> Event:
        session = self._require_session(command.connection_id)
        request = command.request
        data = session.fetch_page(
            request.schema,
            request.table,
            request.offset,
            request.limit,
            order_by=request.sort.to_sql() if request.sort else "",
            where=request.where,
            args=request.args,
        )
        return PageLoaded(request=request, data=data)

    def _execute_query(self, command: ExecuteQuery) -> Event:
        session = self._require_session(command.connection_id)
        try:
            result = session.execute(command.sql, command.token)
        except QueryCancelledError:
            return QueryResult(token=command.token, cancelled=True)
        except QueryError as error:
            return QueryResult(token=command.token, error=str(error))
        return QueryResult(token=command.token, result=result)

    def _search_table(self, command: SearchTable) -> Event:
        session = self._require_session(command.connection_id)
        data = session.search(command.schema, command.table, command.columns, command.needle, command.max_results)
        return SearchResult(
            schema=command.schema,
            table=command.table,
            needle=command.needle,
            generation=command.generation,
            data=data,
        )

    # -- favorites and history ------------------------------------------------

    def _load_favorites(self, command: LoadFavorites) -> Event:
        if command.query:
            return FavoritesLoaded(favorites=self.favorites.search(command.query), query=command.query)
        return FavoritesLoaded(favorites=self.favorites.load_all())

    def _mutate_favorite(self, command: MutateFavorite) -> Event:
        store = self.favorites
        if command.action == "add":
            favorite = store.add(
                command.name,
                command.query,
                connection=command.connection,
                database=command.database,
                tags=list(command.tags),
            )
        elif command.action == "delete":
            favorite = store.delete(command.favorite_id or "")
        elif command.action == "use":
            favorite = store.record_usage(command.favorite_id or "")
        else:
            raise PglensError(f"Unknown favorites action: {command.action}")
        return FavoriteMutated(action=command.action, favorite=favorite, favorites=store.load_all())

    def _export_favorites(self, command: ExportFavorites) -> Event:
        if command.format == "csv":
            path = self.favorites.export_csv()
        elif command.format == "json":
            path = self.favorites.export_json()
        else:
            raise PglensError(f"Unknown export format: {command.format}")
        return FavoritesExported(path=str(path))

    def _record_history(self, command: RecordHistory) -> Event:
        self.query_history.add(command.entry)
        return HistoryRecorded()

    def _load_query_history(self, command: LoadQueryHistory) -> Event:
        if command.query:
            entries = self.query_history.search(command.query, command.limit)
            return QueryHistoryLoaded(entries=entries, query=command.query)
        return QueryHistoryLoaded(entries=self.query_history.recent(command.limit))


def _close_abandoned_session(future: Future) -> None:
    """Close a session whose connect finished after its deadline."""
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()
