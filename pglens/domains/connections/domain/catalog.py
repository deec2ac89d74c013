"""Catalog listing records returned by schema introspection."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    data_type: str
    nullable: bool = True
    is_primary_key: bool = False
    default: str | None = None


@dataclass(frozen=True)
class IndexInfo:
    name: str
    table_name: str
    is_unique: bool = False
    is_primary: bool = False
    definition: str = ""


# pg_constraint.contype -> short label
CONSTRAINT_TYPE_LABELS = {"p": "PK", "f": "FK", "u": "UQ", "c": "CK"}


@dataclass(frozen=True)
class ConstraintInfo:
    name: str
    type: str  # pg_constraint.contype
    definition: str
    columns: tuple[str, ...] = ()
    foreign_table: str = ""  # "schema.table" of a foreign key target
    foreign_columns: tuple[str, ...] = ()

    @property
    def type_label(self) -> str:
        return CONSTRAINT_TYPE_LABELS.get(self.type, self.type.upper())


@dataclass(frozen=True)
class TriggerInfo:
    name: str
    table_name: str


@dataclass(frozen=True)
class RoutineInfo:
    name: str
    arguments: str = ""
    oid: int | None = None


@dataclass(frozen=True)
class ExtensionInfo:
    name: str
    version: str = ""


@dataclass(frozen=True)
class TypeInfo:
    name: str
    detail: str = ""


@dataclass
class SchemaObjects:
    """Everything listed under one schema.

    A listing that failed is left empty; the schema still loads.
    """

    tables: list[str] = field(default_factory=list)
    views: list[str] = field(default_factory=list)
    materialized_views: list[str] = field(default_factory=list)
    functions: list[RoutineInfo] = field(default_factory=list)
    procedures: list[RoutineInfo] = field(default_factory=list)
    sequences: list[str] = field(default_factory=list)
    composite_types: list[TypeInfo] = field(default_factory=list)
    enum_types: list[TypeInfo] = field(default_factory=list)
    domain_types: list[TypeInfo] = field(default_factory=list)
    range_types: list[TypeInfo] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            len(self.tables)
            + len(self.views)
            + len(self.materialized_views)
            + len(self.functions)
            + len(self.procedures)
            + len(self.sequences)
            + len(self.composite_types)
            + len(self.enum_types)
            + len(self.domain_types)
            + len(self.range_types)
        )


@dataclass
class RelationObjects:
    """Sub-objects of a table or view."""

    columns: list[ColumnInfo] = field(default_factory=list)
    indexes: list[IndexInfo] = field(default_factory=list)
    triggers: list[TriggerInfo] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class TableStructure:
    """Columns, constraints and indexes of one table, as shown in the structure tabs."""

    schema: str
    table: str
    columns: list[ColumnInfo] = field(default_factory=list)
    constraints: list[ConstraintInfo] = field(default_factory=list)
    indexes: list[IndexInfo] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
