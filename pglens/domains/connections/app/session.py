"""PostgreSQL session backed by a psycopg2 connection pool.

All methods block and are meant to run on executor threads. SQL built by
pglens uses ``$n`` placeholders; they are translated to psycopg2's
``%s`` style just before execution.
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time
from decimal import Decimal
from typing import Any

import psycopg2
import psycopg2.extensions
import psycopg2.pool

from pglens.domains.connections.domain.config import ConnectionConfig
from pglens.shared.core.cancellation import CancellationToken
from pglens.shared.core.errors import ConnectionFailedError, QueryCancelledError, QueryError

logger = logging.getLogger(__name__)

NULL_DISPLAY = "NULL"
MAX_QUERY_ROWS = 10_000

# Quoted identifiers and string literals are matched first so ``$n`` and
# ``%`` inside them are left alone.
_PLACEHOLDER = re.compile(r"\"(?:[^\"]|\"\")*\"|'(?:[^']|'')*'|\$(\d+)|%")


def translate_placeholders(sql: str, args: Sequence[Any]) -> tuple[str, list[Any]]:
    """Rewrite ``$n`` placeholders to ``%s`` and order ``args`` to match.

    Literal ``%`` outside quotes is doubled so psycopg2 does not treat it
    as a format marker. SQL without placeholders is returned unchanged and
    must be executed without arguments. Raises QueryError for an
    out-of-range index.
    """
    ordered: list[Any] = []

    def replace(match: re.Match[str]) -> str:
        text = match.group(0)
        if text == "%":
            return "%%"
        if match.group(1) is None:
            return text.replace("%", "%%")
        index = int(match.group(1))
        if index < 1 or index > len(args):
            raise QueryError(f"Placeholder ${index} has no argument")
        ordered.append(args[index - 1])
        return "%s"

    translated = _PLACEHOLDER.sub(replace, sql)
    if not ordered:
        return sql, []
    return translated, ordered


def quote_identifier(name: str) -> str:
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def qualified_name(schema: str, table: str) -> str:
    return f"{quote_identifier(schema)}.{quote_identifier(table)}"


def format_cell(value: Any) -> str:
    """Render a driver value as display text."""
    if value is None:
        return NULL_DISPLAY
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, (datetime, date, dt_time)):
        return value.isoformat(sep=" ") if isinstance(value, datetime) else value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def escape_like(needle: str) -> str:
    return needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class TableData:
    """One page (or search result) of a relation."""

    columns: list[str]
    rows: list[list[str]]
    total_rows: int
    offset: int = 0


@dataclass
class StatementResult:
    """Outcome of an ad-hoc statement."""

    columns: list[str]
    rows: list[list[str]]
    rows_affected: int
    duration_ms: float
    truncated: bool = False


class PostgresSession:
    """One connected server, shared read-only by every command."""

    def __init__(self, config: ConnectionConfig, pool: Any, connection_id: str = "") -> None:
        self.config = config
        self._pool = pool
        self.connection_id = connection_id or config.name

    @classmethod
    def open(
        cls,
        config: ConnectionConfig,
        connect_timeout: float = 10,
        minconn: int = 1,
        maxconn: int = 4,
    ) -> PostgresSession:
        """Open a pool to ``config``; raises ConnectionFailedError."""
        kwargs = config.to_connect_kwargs(max(1, int(connect_timeout)))
        try:
            pool = psycopg2.pool.ThreadedConnectionPool(minconn, maxconn, **kwargs)
        except psycopg2.Error as error:
            raise ConnectionFailedError(config.host, config.port, str(error).strip()) from error
        logger.info("Connected to %s", config.name)
        return cls(config, pool, connection_id=f"{config.name}@{time.time():.0f}")

    @contextmanager
    def connection(self) -> Iterator[Any]:
        conn = self._pool.getconn()
        conn.autocommit = True
        broken = False
        try:
            yield conn
        except psycopg2.OperationalError:
            broken = True
            raise
        finally:
            self._pool.putconn(conn, close=broken or bool(conn.closed))

    def close(self) -> None:
        try:
            self._pool.closeall()
        except psycopg2.Error:
            logger.debug("Error closing pool for %s", self.config.name, exc_info=True)

    def fetch(self, sql: str, args: Sequence[Any] = ()) -> list[tuple]:
        """Run a catalog query and return raw rows."""
        translated, ordered = translate_placeholders(sql, args)
        with self.connection() as conn:
            with conn.cursor() as cursor:
                try:
                    cursor.execute(translated, ordered or None)
                except psycopg2.Error as error:
                    raise QueryError(_server_message(error)) from error
                return cursor.fetchall()

    def fetch_page(
        self,
        schema: str,
        table: str,
        offset: int,
        limit: int,
        order_by: str = "",
        where: str = "",
        args: Sequence[Any] = (),
    ) -> TableData:
        relation = qualified_name(schema, table)
        where_sql = f" {where}" if where else ""
        count_sql = f"SELECT COUNT(*) FROM {relation}{where_sql}"
        page_sql = f"SELECT * FROM {relation}{where_sql}"
        if order_by:
            page_sql += f" {order_by}"
        page_sql += f" LIMIT {int(limit)} OFFSET {int(offset)}"

        with self.connection() as conn:
            with conn.cursor() as cursor:
                try:
                    count_query, count_args = translate_placeholders(count_sql, args)
                    cursor.execute(count_query, count_args or None)
                    total = int(cursor.fetchone()[0])
                    page_query, page_args = translate_placeholders(page_sql, args)
                    cursor.execute(page_query, page_args or None)
                    columns = [desc[0] for desc in cursor.description or []]
                    rows = [[format_cell(value) for value in row] for row in cursor.fetchall()]
                except psycopg2.Error as error:
                    raise QueryError(_server_message(error)) from error
        return TableData(columns=columns, rows=rows, total_rows=total, offset=offset)

    def search(
        self,
        schema: str,
        table: str,
        columns: Sequence[str],
        needle: str,
        max_results: int = 1000,
    ) -> TableData:
        """Rows where any column, cast to text, contains ``needle``."""
        if not needle or not columns:
            return TableData(columns=list(columns), rows=[], total_rows=0)
        conditions = " OR ".join(f"{quote_identifier(col)}::text ILIKE $1" for col in columns)
        sql = f"SELECT * FROM {qualified_name(schema, table)} WHERE {conditions} LIMIT {int(max_results)}"
        pattern = f"%{escape_like(needle)}%"
        translated, ordered = translate_placeholders(sql, [pattern])
        with self.connection() as conn:
            with conn.cursor() as cursor:
                try:
                    cursor.execute(translated, ordered or None)
                    result_columns = [desc[0] for desc in cursor.description or []]
                    rows = [[format_cell(value) for value in row] for row in cursor.fetchall()]
                except psycopg2.Error as error:
                    raise QueryError(_server_message(error)) from error
        return TableData(columns=result_columns, rows=rows, total_rows=len(rows))

    def execute(self, sql: str, token: CancellationToken | None = None) -> StatementResult:
        """Run ad-hoc SQL. Cancelling ``token`` cancels it server-side."""
        started = time.monotonic()
        with self.connection() as conn:
            if token is not None:
                if token.cancelled:
                    raise QueryCancelledError("Query cancelled")
                token.on_cancel(conn.cancel)
            try:
                with conn.cursor() as cursor:
                    cursor.execute(sql)
                    columns: list[str] = []
                    rows: list[list[str]] = []
                    truncated = False
                    if cursor.description is not None:
                        columns = [desc[0] for desc in cursor.description]
                        fetched = cursor.fetchmany(MAX_QUERY_ROWS + 1)
                        truncated = len(fetched) > MAX_QUERY_ROWS
                        rows = [[format_cell(v) for v in row] for row in fetched[:MAX_QUERY_ROWS]]
                    rows_affected = max(cursor.rowcount, 0)
            except psycopg2.extensions.QueryCanceledError as error:
                if token is not None and token.cancelled:
                    raise QueryCancelledError("Query cancelled") from error
                raise QueryError(_server_message(error)) from error
            except psycopg2.Error as error:
                raise QueryError(_server_message(error)) from error
            finally:
                if token is not None:
                    token.on_cancel(None)
        duration = (time.monotonic() - started) * 1000
        return StatementResult(
            columns=columns,
            rows=rows,
            rows_affected=rows_affected,
            duration_ms=duration,
            truncated=truncated,
        )


def _server_message(error: psycopg2.Error) -> str:
    message = getattr(error, "pgerror", None) or str(error)
    return message.strip()
