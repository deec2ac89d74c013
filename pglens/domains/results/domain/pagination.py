"""Row window for the relation shown in the data panel."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_PAGE_SIZE = 100
LOOKAHEAD_ROWS = 10


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"

    def reversed(self) -> SortDirection:
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


@dataclass(frozen=True)
class SortSpec:
    column: str
    direction: SortDirection = SortDirection.ASC
    nulls_first: bool = False

    def to_sql(self) -> str:
        column = '"' + self.column.replace('"', '""') + '"'
        nulls = "NULLS FIRST" if self.nulls_first else "NULLS LAST"
        return f"ORDER BY {column} {self.direction.value} {nulls}"


@dataclass(frozen=True)
class PageRequest:
    """Everything needed to fetch one page, plus the context to check it against."""

    schema: str
    table: str
    offset: int
    limit: int
    generation: int
    sort: SortSpec | None = None
    where: str = ""
    args: tuple[Any, ...] = ()

    @property
    def filtered(self) -> bool:
        return bool(self.where)


@dataclass
class GridCursor:
    """Selected cell in a grid of ``row_count`` x ``column_count``."""

    row: int = 0
    col: int = 0

    def clamp(self, row_count: int, column_count: int) -> None:
        self.row = max(0, min(self.row, row_count - 1)) if row_count else 0
        self.col = max(0, min(self.col, column_count - 1)) if column_count else 0

    def move(self, d_row: int, d_col: int, row_count: int, column_count: int) -> None:
        self.row += d_row
        self.col += d_col
        self.clamp(row_count, column_count)


@dataclass
class PaginationController:
    """Tracks held rows of the browsed relation and decides when to fetch more.

    Every request carries a ``generation``; a result whose generation or
    relation differs from the current one is stale and must not be applied.
    """

    page_size: int = DEFAULT_PAGE_SIZE
    lookahead: int = LOOKAHEAD_ROWS
    schema: str = ""
    table: str = ""
    columns: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)
    total_rows: int = 0
    offset: int = 0
    sort_column: str | None = None
    sort_direction: SortDirection = SortDirection.ASC
    nulls_first: bool = False
    where: str = ""
    args: tuple[Any, ...] = ()
    generation: int = 0
    loading_more: bool = False
    cursor: GridCursor = field(default_factory=GridCursor)

    @property
    def has_relation(self) -> bool:
        return bool(self.table)

    @property
    def sort(self) -> SortSpec | None:
        if self.sort_column is None:
            return None
        return SortSpec(self.sort_column, self.sort_direction, self.nulls_first)

    @property
    def has_more(self) -> bool:
        return len(self.rows) < self.total_rows

    # -- requests ----------------------------------------------------------

    def open(self, schema: str, table: str, where: str = "", args: tuple[Any, ...] = ()) -> PageRequest:
        """Switch to ``schema.table``; the held rows stay until the first page arrives."""
        if (schema, table) != (self.schema, self.table):
            self.sort_column = None
            self.sort_direction = SortDirection.ASC
            self.nulls_first = False
        self.schema = schema
        self.table = table
        self.where = where
        self.args = tuple(args)
        return self.reload()

    def set_filter(self, where: str, args: tuple[Any, ...] = ()) -> PageRequest:
        self.where = where
        self.args = tuple(args)
        return self.reload()

    def reload(self) -> PageRequest:
        """Request a full reload from offset 0 with the current sort and filter."""
        self.invalidate()
        return self._request(0)

    def invalidate(self) -> int:
        """Make every outstanding request stale. Returns the new generation."""
        self.generation += 1
        self.loading_more = False
        return self.generation

    def next_page_request(self) -> PageRequest | None:
        """Return a request for the rows after the held ones, if one is due."""
        if not self.should_load_more():
            return None
        self.loading_more = True
        return self._request(len(self.rows))

    def should_load_more(self, selected_row: int | None = None) -> bool:
        if not self.has_relation or self.loading_more or not self.has_more:
            return False
        row = self.cursor.row if selected_row is None else selected_row
        return row >= len(self.rows) - self.lookahead

    def _request(self, offset: int) -> PageRequest:
        return PageRequest(
            schema=self.schema,
            table=self.table,
            offset=offset,
            limit=self.page_size,
            generation=self.generation,
            sort=self.sort,
            where=self.where,
            args=self.args,
        )

    # -- results -----------------------------------------------------------

    def is_current(self, schema: str, table: str, generation: int) -> bool:
        return (schema, table, generation) == (self.schema, self.table, self.generation)

    def is_initial(self, columns: list[str], offset: int) -> bool:
        return not self.rows or offset == 0 or list(columns) != self.columns

    def apply_page(self, columns: list[str], rows: list[list[str]], total_rows: int, offset: int) -> bool:
        """Store a fetched page. Returns True when it replaced the held rows."""
        initial = self.is_initial(columns, offset)
        if initial:
            keep_col = self.cursor.col if list(columns) == self.columns else 0
            self.columns = list(columns)
            self.rows = list(rows)
            self.offset = offset
            self.cursor = GridCursor(col=keep_col)
            self.cursor.clamp(len(self.rows), len(self.columns))
        else:
            self.rows.extend(rows)
        self.total_rows = total_rows
        self.loading_more = False
        return initial

    def replace_rows(self, columns: list[str], rows: list[list[str]]) -> None:
        """Show rows fetched outside of paging (search results).

        Pages still in flight belong to the replaced rows and become stale.
        """
        self.invalidate()
        self.columns = list(columns)
        self.rows = list(rows)
        self.total_rows = len(rows)
        self.offset = 0
        self.loading_more = False
        self.cursor = GridCursor()

    def page_failed(self) -> None:
        self.loading_more = False

    def clear(self) -> None:
        self.schema = ""
        self.table = ""
        self.columns = []
        self.rows = []
        self.total_rows = 0
        self.offset = 0
        self.where = ""
        self.args = ()
        self.sort_column = None
        self.loading_more = False
        self.generation += 1
        self.cursor = GridCursor()

    # -- sorting -----------------------------------------------------------

    def toggle_sort(self) -> PageRequest | None:
        """Sort by the selected column; selecting it again flips the direction."""
        if not self.columns:
            return None
        column = self.columns[self.cursor.col]
        if self.sort_column == column:
            self.sort_direction = self.sort_direction.reversed()
        else:
            self.sort_column = column
            self.sort_direction = SortDirection.ASC
        return self.reload()

    def toggle_nulls_first(self) -> PageRequest | None:
        if self.sort_column is None:
            return None
        self.nulls_first = not self.nulls_first
        return self.reload()

    def reverse_sort(self) -> PageRequest | None:
        if self.sort_column is None:
            return None
        self.sort_direction = self.sort_direction.reversed()
        return self.reload()
