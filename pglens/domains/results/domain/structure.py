"""Data / Columns / Constraints / Indexes tabs for the browsed table."""

from __future__ import annotations

from dataclasses import dataclass, field

from pglens.domains.connections.domain.catalog import TableStructure

STRUCTURE_TABS = ("Data", "Columns", "Constraints", "Indexes")
DATA_TAB = 0
COLUMNS_TAB = 1
CONSTRAINTS_TAB = 2
INDEXES_TAB = 3

_HEADERS = {
    COLUMNS_TAB: ["Name", "Type", "Nullable", "Default", "Key"],
    CONSTRAINTS_TAB: ["Name", "Type", "Columns", "References", "Definition"],
    INDEXES_TAB: ["Name", "Unique", "Primary", "Definition"],
}


def _yes(flag: bool) -> str:
    return "yes" if flag else "no"


@dataclass
class StructureView:
    """Which tab is showing, and the structure of the table it describes.

    The tab survives switching tables; the loaded structure and the
    per-tab selection do not.
    """

    schema: str = ""
    table: str = ""
    tab: int = DATA_TAB
    structure: TableStructure | None = None
    loading: bool = False
    error: str | None = None
    selected: list[int] = field(default_factory=lambda: [0] * len(STRUCTURE_TABS))

    @property
    def showing_data(self) -> bool:
        return self.tab == DATA_TAB

    @property
    def title(self) -> str:
        return STRUCTURE_TABS[self.tab]

    def is_current(self, schema: str, table: str) -> bool:
        return (schema, table) == (self.schema, self.table)

    def open(self, schema: str, table: str) -> None:
        """Describe another table; its structure is not known yet."""
        if self.is_current(schema, table):
            return
        self.schema, self.table = schema, table
        self.structure = None
        self.loading = False
        self.error = None
        self.selected = [0] * len(STRUCTURE_TABS)

    def invalidate(self) -> None:
        """Forget the loaded structure so the next visit fetches it again."""
        self.structure = None
        self.loading = False
        self.error = None

    def needs_load(self) -> bool:
        """True when a structure tab is showing and nothing is loaded or loading for it."""
        return (
            not self.showing_data
            and bool(self.table)
            and self.structure is None
            and not self.loading
            and self.error is None
        )

    def begin_load(self) -> None:
        self.loading = True
        self.error = None

    def apply(self, structure: TableStructure) -> None:
        self.structure = structure
        self.loading = False
        self.error = None

    def fail(self, error: str) -> None:
        self.loading = False
        self.error = error

    def switch(self, tab: int) -> bool:
        """Show tab ``tab``; out-of-range tabs are ignored. Returns True if the tab changed."""
        if not 0 <= tab < len(STRUCTURE_TABS) or tab == self.tab:
            return False
        self.tab = tab
        return True

    def shift(self, delta: int) -> bool:
        return self.switch(self.tab + delta)

    def headers(self) -> list[str]:
        return list(_HEADERS.get(self.tab, []))

    def rows(self) -> list[list[str]]:
        """Rows of the current structure tab (empty on the Data tab or before loading)."""
        structure = self.structure
        if structure is None or self.showing_data:
            return []
        if self.tab == COLUMNS_TAB:
            return [
                [c.name, c.data_type, _yes(c.nullable), c.default or "", "PK" if c.is_primary_key else ""]
                for c in structure.columns
            ]
        if self.tab == CONSTRAINTS_TAB:
            rows = []
            for con in structure.constraints:
                references = ""
                if con.foreign_table:
                    references = f"{con.foreign_table}({', '.join(con.foreign_columns)})"
                rows.append([con.name, con.type_label, ", ".join(con.columns), references, con.definition])
            return rows
        return [[i.name, _yes(i.is_unique), _yes(i.is_primary), i.definition] for i in structure.indexes]

    @property
    def selected_row(self) -> int:
        return self.selected[self.tab]

    def move(self, delta: int) -> None:
        self.select(self.selected[self.tab] + delta)

    def select(self, row: int) -> None:
        count = len(self.rows())
        self.selected[self.tab] = max(0, min(row, count - 1)) if count else 0
