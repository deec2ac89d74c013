"""Filter model and the filter-to-SQL compiler.

Conditions compile to PostgreSQL positional placeholders (``$1``, ``$2``...).
Values never appear in the clause text; they are returned separately, in
placeholder order.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pglens.shared.core.errors import FilterValidationError


class FilterOperator(str, Enum):
    EQUAL = "="
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    LESS_OR_EQUAL = "<="
    GREATER_THAN = ">"
    GREATER_OR_EQUAL = ">="
    LIKE = "LIKE"
    ILIKE = "ILIKE"
    IN = "IN"
    NOT_IN = "NOT IN"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"
    CONTAINS = "@>"
    CONTAINED_BY = "<@"
    HAS_KEY = "?"
    ARRAY_OVERLAP = "&&"

    @property
    def is_null_check(self) -> bool:
        return self in NULL_CHECK_OPERATORS

    @property
    def takes_list(self) -> bool:
        return self in (FilterOperator.IN, FilterOperator.NOT_IN)


NULL_CHECK_OPERATORS = frozenset({FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL})

_EQUALITY = [FilterOperator.EQUAL, FilterOperator.NOT_EQUAL]
_NULLS = [FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL]
_ORDERING = [
    FilterOperator.GREATER_THAN,
    FilterOperator.GREATER_OR_EQUAL,
    FilterOperator.LESS_THAN,
    FilterOperator.LESS_OR_EQUAL,
]
_MEMBERSHIP = [FilterOperator.IN, FilterOperator.NOT_IN]

_NUMERIC_MARKERS = ("int", "numeric", "real", "double", "decimal", "serial", "float")
_TEXT_MARKERS = ("char", "text")


class Logic(str, Enum):
    AND = "AND"
    OR = "OR"


@dataclass
class FilterCondition:
    """One ``column <operator> value`` predicate."""

    column: str
    operator: FilterOperator
    value: Any = None
    declared_type: str = ""

    def describe(self) -> str:
        if self.operator.is_null_check:
            return f"{self.column} {self.operator.value}"
        return f"{self.column} {self.operator.value} {self.value!r}"


@dataclass
class FilterGroup:
    """Conditions and nested groups joined by one logic operator."""

    conditions: list[FilterCondition] = field(default_factory=list)
    subgroups: list[FilterGroup] = field(default_factory=list)
    logic: Logic | None = None

    def is_empty(self) -> bool:
        return not self.conditions and not self.subgroups

    def condition_count(self) -> int:
        return len(self.conditions) + sum(group.condition_count() for group in self.subgroups)


@dataclass
class Filter:
    """A filter targeting one relation."""

    schema: str
    table: str
    root: FilterGroup = field(default_factory=FilterGroup)


def normalize_type(data_type: str) -> str:
    """Classify a declared PostgreSQL type into an operator family."""
    lowered = (data_type or "").strip().lower()
    if not lowered:
        return ""
    if lowered.endswith("[]") or "array" in lowered or lowered.startswith("_"):
        return "array"
    if "json" in lowered:
        return "jsonb"
    if any(marker in lowered for marker in _NUMERIC_MARKERS):
        return "numeric"
    if any(marker in lowered for marker in _TEXT_MARKERS):
        return "text"
    if "bool" in lowered:
        return "bool"
    if "date" in lowered or "time" in lowered:
        return "temporal"
    return "other"


def operators_for_type(data_type: str) -> list[FilterOperator]:
    """Operators legal for a column of ``data_type``, in display order."""
    family = normalize_type(data_type)
    if family == "array":
        return [
            *_EQUALITY,
            FilterOperator.ARRAY_OVERLAP,
            FilterOperator.CONTAINS,
            FilterOperator.CONTAINED_BY,
            *_NULLS,
        ]
    if family == "jsonb":
        return [
            *_EQUALITY,
            FilterOperator.CONTAINS,
            FilterOperator.CONTAINED_BY,
            FilterOperator.HAS_KEY,
            *_NULLS,
        ]
    if family in ("numeric", "temporal"):
        return [*_EQUALITY, *_ORDERING, *_MEMBERSHIP, *_NULLS]
    if family == "text":
        return [*_EQUALITY, FilterOperator.LIKE, FilterOperator.ILIKE, *_MEMBERSHIP, *_NULLS]
    if family == "bool":
        return [*_EQUALITY, *_NULLS]
    return [*_EQUALITY, *_MEMBERSHIP, *_NULLS]


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _compile_condition(condition: FilterCondition, index: int) -> tuple[str, list[Any]]:
    column = quote_identifier(condition.column)
    operator = condition.operator
    if operator is FilterOperator.IS_NULL:
        return f"{column} IS NULL", []
    if operator is FilterOperator.IS_NOT_NULL:
        return f"{column} IS NOT NULL", []
    if operator is FilterOperator.IN:
        return f"{column} = ANY(${index})", [list(condition.value)]
    if operator is FilterOperator.NOT_IN:
        return f"NOT ({column} = ANY(${index}))", [list(condition.value)]

    placeholder = f"${index}"
    if normalize_type(condition.declared_type) == "jsonb" and operator in (
        FilterOperator.CONTAINS,
        FilterOperator.CONTAINED_BY,
    ):
        placeholder += "::jsonb"
    return f"{column} {operator.value} {placeholder}", [condition.value]


def compile_group(group: FilterGroup, start_index: int = 1) -> tuple[str, list[Any], int]:
    """Render ``group`` without the ``WHERE`` keyword.

    Returns ``(clause, args, next_index)``. Placeholders are numbered
    depth-first from ``start_index``: a group's own conditions first, then
    each subgroup in order.
    """
    parts: list[str] = []
    args: list[Any] = []
    index = start_index

    for condition in group.conditions:
        clause, values = _compile_condition(condition, index)
        parts.append(clause)
        args.extend(values)
        index += len(values)

    for subgroup in group.subgroups:
        clause, values, index = compile_group(subgroup, index)
        if clause:
            parts.append(f"({clause})")
            args.extend(values)

    logic = (group.logic or Logic.AND).value
    return f" {logic} ".join(parts), args, index


def build_where(filter_: Filter, start_index: int = 1) -> tuple[str, list[Any]]:
    """Return ``("WHERE ...", args)``, or ``("", [])`` for an empty filter."""
    if filter_.root.is_empty():
        return "", []
    clause, args, _ = compile_group(filter_.root, start_index)
    if not clause:
        return "", []
    return f"WHERE {clause}", args


def validate_condition(condition: FilterCondition) -> None:
    if not condition.column:
        raise FilterValidationError("Column name is required")
    operator = condition.operator
    if operator.is_null_check:
        return
    if condition.value is None:
        raise FilterValidationError(f"Value is required for operator {operator.value}")
    if operator.takes_list:
        if not isinstance(condition.value, (list, tuple)) or not condition.value:
            raise FilterValidationError(f"{operator.value} requires a non-empty list of values")
    if condition.declared_type and operator not in operators_for_type(condition.declared_type):
        raise FilterValidationError(
            f"Operator {operator.value} is not supported for {condition.column} ({condition.declared_type})"
        )


def validate_group(group: FilterGroup) -> None:
    for condition in group.conditions:
        validate_condition(condition)
    for subgroup in group.subgroups:
        validate_group(subgroup)


def validate(filter_: Filter) -> None:
    """Raise FilterValidationError when the filter cannot be compiled."""
    if not filter_.table:
        raise FilterValidationError("Table name is required")
    validate_group(filter_.root)


def coerce_value(raw: str, data_type: str, operator: FilterOperator) -> Any:
    """Convert user-typed text into a parameter value for ``data_type``.

    Returns None for null-check operators and for blank input.
    """
    if operator.is_null_check:
        return None
    text = raw.strip()
    if not text:
        return None

    family = normalize_type(data_type)
    if operator.takes_list:
        items = [item.strip() for item in text.split(",") if item.strip()]
        item_family = normalize_type(element_type(data_type) if family == "array" else data_type)
        return [_coerce_scalar(item, item_family) for item in items]

    if family == "jsonb":
        if operator is FilterOperator.HAS_KEY:
            return text
        try:
            parsed = json.loads(text)
        except ValueError as exc:
            raise FilterValidationError(f"Invalid JSON value: {exc}") from exc
        return json.dumps(parsed)

    if family == "array":
        body = text
        if body.startswith("{") and body.endswith("}"):
            body = body[1:-1]
        item_family = normalize_type(element_type(data_type))
        return [_coerce_scalar(item.strip().strip('"'), item_family) for item in body.split(",") if item.strip()]

    return _coerce_scalar(text, family)


def element_type(data_type: str) -> str:
    """Element type of an array type: "integer[]" and "_int4" give "integer" and "int4".

    The bare "ARRAY" reported by information_schema has no known element type.
    """
    stripped = (data_type or "").strip()
    while stripped.endswith("[]"):
        stripped = stripped[:-2].rstrip()
    if stripped.startswith("_"):
        stripped = stripped[1:]
    if stripped.lower() == "array":
        return ""
    return stripped


def _coerce_scalar(text: str, family: str) -> Any:
    if family == "numeric":
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError as exc:
            raise FilterValidationError(f"Not a number: {text}") from exc
    if family == "bool":
        lowered = text.lower()
        if lowered in ("true", "t", "yes", "y", "1", "on"):
            return True
        if lowered in ("false", "f", "no", "n", "0", "off"):
            return False
        raise FilterValidationError(f"Not a boolean: {text}")
    return text
