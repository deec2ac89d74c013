"""State of the overlays that sit above the main panels."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from pglens.domains.connections.domain.config import (
    DEFAULT_DATABASE,
    DEFAULT_PORT,
    DEFAULT_SSLMODE,
    SSL_MODES,
    ConnectionConfig,
    ConnectionHistoryEntry,
    DiscoveredInstance,
    default_user,
)
from pglens.domains.query.domain.filter import (
    Filter,
    FilterCondition,
    FilterGroup,
    FilterOperator,
    Logic,
    coerce_value,
    operators_for_type,
    validate,
    validate_condition,
)
from pglens.domains.query.store.favorites import Favorite
from pglens.shared.core.errors import FilterValidationError


@dataclass
class TextInput:
    """Single-line text buffer; edits happen at the end."""

    value: str = ""

    def type(self, char: str) -> None:
        self.value += char

    def backspace(self) -> None:
        self.value = self.value[:-1]

    def clear(self) -> None:
        self.value = ""


def _wrap(index: int, delta: int, count: int) -> int:
    if count <= 0:
        return 0
    return (index + delta) % count


def _clamp(index: int, delta: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(index + delta, count - 1))


# -- error ------------------------------------------------------------------


@dataclass
class ErrorOverlay:
    title: str
    message: str
    informational: bool = False


# -- connection dialog ------------------------------------------------------

FORM_FIELDS = ("host", "port", "database", "user", "password", "sslmode")


@dataclass
class ConnectionDialog:
    """Discovered servers, recent connections and a manual form."""

    discovered: list[DiscoveredInstance] = field(default_factory=list)
    history: list[ConnectionHistoryEntry] = field(default_factory=list)
    section: str = "discovered"
    selected: int = 0
    discovering: bool = True
    connecting: bool = False
    manual: bool = False
    field_index: int = 0
    form: dict[str, TextInput] = field(
        default_factory=lambda: {
            "host": TextInput("localhost"),
            "port": TextInput(str(DEFAULT_PORT)),
            "database": TextInput(DEFAULT_DATABASE),
            "user": TextInput(default_user()),
            "password": TextInput(),
            "sslmode": TextInput(DEFAULT_SSLMODE),
        }
    )
    error: str | None = None

    @property
    def items(self) -> list[DiscoveredInstance] | list[ConnectionHistoryEntry]:
        return self.discovered if self.section == "discovered" else self.history

    @property
    def current_field(self) -> str:
        return FORM_FIELDS[self.field_index]

    def move(self, delta: int) -> None:
        self.selected = _clamp(self.selected, delta, len(self.items))

    def set_history(self, entries: list[ConnectionHistoryEntry]) -> None:
        self.history = list(entries)
        if self.section == "history":
            self.selected = min(self.selected, max(0, len(self.history) - 1))

    def toggle_section(self) -> None:
        self.section = "history" if self.section == "discovered" else "discovered"
        self.selected = 0

    def toggle_manual(self) -> None:
        self.manual = not self.manual
        self.error = None

    def next_field(self, delta: int = 1) -> None:
        self.field_index = _wrap(self.field_index, delta, len(FORM_FIELDS))

    def type(self, char: str) -> None:
        self.form[self.current_field].type(char)

    def backspace(self) -> None:
        self.form[self.current_field].backspace()

    def selected_item(self) -> DiscoveredInstance | ConnectionHistoryEntry | None:
        items = self.items
        if not items:
            return None
        return items[min(self.selected, len(items) - 1)]

    def form_config(self) -> ConnectionConfig:
        """Config from the manual form; raises ValueError on bad input."""
        values = {name: text.value.strip() for name, text in self.form.items()}
        if not values["host"]:
            raise ValueError("Host is required")
        try:
            port = int(values["port"] or DEFAULT_PORT)
        except ValueError:
            raise ValueError(f"Invalid port: {values['port']}") from None
        if not 0 < port < 65536:
            raise ValueError(f"Invalid port: {port}")
        sslmode = values["sslmode"] or DEFAULT_SSLMODE
        if sslmode not in SSL_MODES:
            raise ValueError(f"Invalid sslmode: {sslmode} (expected one of {', '.join(SSL_MODES)})")
        return ConnectionConfig(
            host=values["host"],
            port=port,
            database=values["database"] or DEFAULT_DATABASE,
            user=values["user"] or default_user(),
            password=self.form["password"].value or None,
            sslmode=sslmode,
        )


# -- command palette --------------------------------------------------------


@dataclass(frozen=True)
class PaletteItem:
    kind: str  # "command", "table" or "history"
    label: str
    value: str
    description: str = ""


def _palette_match(item: PaletteItem, needle: str) -> bool:
    if needle in item.label.lower() or needle in item.description.lower():
        return True
    # History labels are truncated; match the whole statement.
    return item.kind == "history" and needle in item.value.lower()


@dataclass
class CommandPalette:
    items: list[PaletteItem] = field(default_factory=list)
    query: TextInput = field(default_factory=TextInput)
    selected: int = 0

    def filtered(self) -> list[PaletteItem]:
        needle = self.query.value.lower()
        if not needle:
            return list(self.items)
        return [item for item in self.items if _palette_match(item, needle)]

    def move(self, delta: int) -> None:
        self.selected = _clamp(self.selected, delta, len(self.filtered()))

    def type(self, char: str) -> None:
        self.query.type(char)
        self.selected = 0

    def backspace(self) -> None:
        self.query.backspace()
        self.selected = 0

    def selected_item(self) -> PaletteItem | None:
        items = self.filtered()
        if not items:
            return None
        return items[min(self.selected, len(items) - 1)]


# -- filter builder ---------------------------------------------------------

BUILDER_FIELDS = ("column", "operator", "value")


@dataclass(frozen=True)
class FilterColumn:
    name: str
    data_type: str


@dataclass
class FilterBuilder:
    """Composes a Filter one condition at a time."""

    schema: str
    table: str
    columns: list[FilterColumn] = field(default_factory=list)
    root: FilterGroup = field(default_factory=lambda: FilterGroup(logic=Logic.AND))
    field_index: int = 0
    column_index: int = 0
    operator_index: int = 0
    value: TextInput = field(default_factory=TextInput)
    error: str | None = None
    loading_columns: bool = False

    @classmethod
    def from_filter(cls, filter_: Filter, columns: list[FilterColumn]) -> FilterBuilder:
        return cls(schema=filter_.schema, table=filter_.table, columns=columns, root=filter_.root)

    @property
    def current_field(self) -> str:
        return BUILDER_FIELDS[self.field_index]

    @property
    def column(self) -> FilterColumn | None:
        if not self.columns:
            return None
        return self.columns[min(self.column_index, len(self.columns) - 1)]

    @property
    def operators(self) -> list[FilterOperator]:
        column = self.column
        return operators_for_type(column.data_type if column else "")

    @property
    def operator(self) -> FilterOperator:
        operators = self.operators
        return operators[min(self.operator_index, len(operators) - 1)]

    def set_columns(self, columns: list[FilterColumn]) -> None:
        self.columns = columns
        self.loading_columns = False
        self.column_index = 0
        self.operator_index = 0

    def next_field(self, delta: int = 1) -> None:
        self.field_index = _wrap(self.field_index, delta, len(BUILDER_FIELDS))

    def move(self, delta: int) -> None:
        """Change the column or operator, depending on the focused field."""
        if self.current_field == "column":
            self.column_index = _wrap(self.column_index, delta, len(self.columns))
            self.operator_index = 0
        elif self.current_field == "operator":
            self.operator_index = _wrap(self.operator_index, delta, len(self.operators))

    def type(self, char: str) -> None:
        if self.current_field == "value":
            self.value.type(char)
            self.error = None

    def backspace(self) -> None:
        if self.current_field == "value":
            self.value.backspace()

    def toggle_logic(self) -> None:
        self.root.logic = Logic.OR if self.root.logic is Logic.AND else Logic.AND

    def pending_condition(self) -> FilterCondition | None:
        """Condition described by the current fields, or None if incomplete."""
        column = self.column
        operator = self.operator
        if column is None:
            return None
        if not operator.is_null_check and not self.value.value.strip():
            return None
        value = coerce_value(self.value.value, column.data_type, operator)
        return FilterCondition(column=column.name, operator=operator, value=value, declared_type=column.data_type)

    def add_condition(self) -> bool:
        """Append the current condition to the root group.

        Returns False (with ``error`` set) when it is incomplete or invalid.
        """
        try:
            condition = self.pending_condition()
            if condition is None:
                if self.column is None:
                    raise FilterValidationError("Column name is required")
                raise FilterValidationError(f"Value is required for operator {self.operator.value}")
            validate_condition(condition)
        except FilterValidationError as error:
            self.error = str(error)
            return False
        self.root.conditions.append(condition)
        self.value.clear()
        self.error = None
        return True

    def group_conditions(self) -> bool:
        """Move the root's conditions into a new subgroup."""
        if not self.root.conditions:
            self.error = "No conditions to group"
            return False
        self.root.subgroups.append(FilterGroup(conditions=self.root.conditions, logic=self.root.logic))
        self.root.conditions = []
        self.error = None
        return True

    def build(self) -> Filter | None:
        """Validated Filter including a pending condition, or None with ``error`` set."""
        if self.value.value.strip() or (self.column is not None and self.operator.is_null_check and self.root.is_empty()):
            if not self.add_condition():
                return None
        filter_ = Filter(schema=self.schema, table=self.table, root=self.root)
        try:
            validate(filter_)
        except FilterValidationError as error:
            self.error = str(error)
            return None
        return filter_

    def describe(self) -> list[str]:
        return _describe_group(self.root, 0)


def _describe_group(group: FilterGroup, depth: int) -> list[str]:
    indent = "  " * depth
    logic = (group.logic or Logic.AND).value
    lines = [f"{indent}{logic}:"]
    lines.extend(f"{indent}  {condition.describe()}" for condition in group.conditions)
    for subgroup in group.subgroups:
        lines.extend(_describe_group(subgroup, depth + 1))
    return lines


# -- JSONB viewer -----------------------------------------------------------


def parse_json_cell(text: str | None) -> object | None:
    """Parsed JSON if ``text`` is a JSON object or array, else None."""
    if not text:
        return None
    stripped = text.strip()
    if not stripped or stripped[0] not in "{[":
        return None
    try:
        value = json.loads(stripped)
    except ValueError:
        return None
    return value if isinstance(value, (dict, list)) else None


@dataclass
class JSONBViewer:
    column: str
    lines: list[str]
    offset: int = 0

    @classmethod
    def from_value(cls, column: str, value: object) -> JSONBViewer:
        text = json.dumps(value, indent=2, ensure_ascii=False, sort_keys=False)
        return cls(column=column, lines=text.splitlines())

    def scroll(self, delta: int) -> None:
        self.offset = _clamp(self.offset, delta, len(self.lines))


# -- favorites --------------------------------------------------------------


@dataclass
class FavoritesDialog:
    favorites: list[Favorite] = field(default_factory=list)
    selected: int = 0
    adding: bool = False
    name: TextInput = field(default_factory=TextInput)
    query: TextInput = field(default_factory=TextInput)
    searching: bool = False
    loading: bool = True
    error: str | None = None

    def move(self, delta: int) -> None:
        self.selected = _clamp(self.selected, delta, len(self.favorites))

    def set_favorites(self, favorites: list[Favorite]) -> None:
        self.favorites = list(favorites)
        self.loading = False
        self.selected = min(self.selected, max(0, len(self.favorites) - 1))

    def selected_favorite(self) -> Favorite | None:
        if not self.favorites:
            return None
        return self.favorites[min(self.selected, len(self.favorites) - 1)]


# -- search -----------------------------------------------------------------


@dataclass
class SearchInput:
    text: TextInput = field(default_factory=TextInput)
    mode: str = "local"  # "local" or "table"

    def toggle_mode(self) -> None:
        self.mode = "table" if self.mode == "local" else "local"
