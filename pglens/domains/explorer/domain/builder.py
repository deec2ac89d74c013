"""Build detached node specs from catalog listings.

Runs on executor threads; the controller attaches the result to its tree.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from pglens.domains.connections.domain.catalog import (
    ColumnInfo,
    ExtensionInfo,
    IndexInfo,
    RelationObjects,
    RoutineInfo,
    SchemaObjects,
    TriggerInfo,
    TypeInfo,
)

from .tree import NodeSpec
from .tree_nodes import (
    ColumnNode,
    DatabaseNode,
    ExtensionNode,
    FolderNode,
    IndexNode,
    NodeKind,
    RelationNode,
    RoutineNode,
    SchemaNode,
    SequenceNode,
    TriggerNode,
    TypeNode,
)


def database_id(database: str) -> str:
    return f"db:{database}"


def schema_id(database: str, schema: str) -> str:
    return f"schema:{database}.{schema}"


def relation_id(kind: NodeKind, database: str, schema: str, name: str) -> str:
    return f"{kind.value}:{database}.{schema}.{name}"


def _group(
    folder_type: str,
    label: str,
    owner: str,
    database: str,
    items: Sequence[Any],
    make_child: Callable[[Any], NodeSpec],
    schema: str | None = None,
    table: str | None = None,
) -> NodeSpec | None:
    if not items:
        return None
    return NodeSpec(
        id=f"{folder_type}:{owner}",
        kind=NodeKind.OBJECT_GROUP,
        label=f"{label} ({len(items)})",
        selectable=False,
        loaded=True,
        metadata=FolderNode(folder_type=folder_type, database=database, schema=schema, table=table),
        children=[make_child(item) for item in items],
    )


def build_database_spec(
    database: str,
    schemas: Sequence[str],
    extensions: Sequence[ExtensionInfo] = (),
) -> NodeSpec:
    """Database node with its extensions group and (unloaded) schema nodes."""
    children: list[NodeSpec] = []

    def make_extension(ext: ExtensionInfo) -> NodeSpec:
        label = f"{ext.name} v{ext.version}" if ext.version else ext.name
        return NodeSpec(
            id=f"extension:{database}.{ext.name}",
            kind=NodeKind.EXTENSION,
            label=label,
            loaded=True,
            metadata=ExtensionNode(database=database, name=ext.name, version=ext.version),
        )

    extension_group = _group("extensions", "Extensions", database, database, extensions, make_extension)
    if extension_group is not None:
        children.append(extension_group)

    for schema in schemas:
        children.append(
            NodeSpec(
                id=schema_id(database, schema),
                kind=NodeKind.SCHEMA,
                label=schema,
                metadata=SchemaNode(database=database, schema=schema),
            )
        )

    return NodeSpec(
        id=database_id(database),
        kind=NodeKind.DATABASE,
        label=database,
        loaded=True,
        metadata=DatabaseNode(name=database, active=True),
        children=children,
    )


def build_schema_children(database: str, schema: str, objects: SchemaObjects) -> list[NodeSpec]:
    """Object groups of one schema. Empty listings produce no group."""
    owner = f"{database}.{schema}"

    def relation(kind: NodeKind) -> Callable[[str], NodeSpec]:
        def make(name: str) -> NodeSpec:
            return NodeSpec(
                id=relation_id(kind, database, schema, name),
                kind=kind,
                label=name,
                metadata=RelationNode(database=database, schema=schema, name=name),
            )

        return make

    def routine(kind: NodeKind) -> Callable[[RoutineInfo], NodeSpec]:
        def make(info: RoutineInfo) -> NodeSpec:
            label = f"{info.name}({info.arguments})" if info.arguments else info.name
            return NodeSpec(
                id=f"{kind.value}:{owner}.{label}",
                kind=kind,
                label=label,
                loaded=True,
                metadata=RoutineNode(
                    database=database, schema=schema, name=info.name, arguments=info.arguments, oid=info.oid
                ),
            )

        return make

    def sequence(name: str) -> NodeSpec:
        return NodeSpec(
            id=f"sequence:{owner}.{name}",
            kind=NodeKind.SEQUENCE,
            label=name,
            loaded=True,
            metadata=SequenceNode(database=database, schema=schema, name=name),
        )

    def user_type(kind: NodeKind, label_format: str) -> Callable[[TypeInfo], NodeSpec]:
        def make(info: TypeInfo) -> NodeSpec:
            label = label_format.format(name=info.name, detail=info.detail) if info.detail else info.name
            return NodeSpec(
                id=f"{kind.value}:{owner}.{info.name}",
                kind=kind,
                label=label,
                loaded=True,
                metadata=TypeNode(database=database, schema=schema, name=info.name, detail=info.detail),
            )

        return make

    groups = [
        _group("tables", "Tables", owner, database, objects.tables, relation(NodeKind.TABLE), schema),
        _group("views", "Views", owner, database, objects.views, relation(NodeKind.VIEW), schema),
        _group(
            "matviews",
            "Materialized Views",
            owner,
            database,
            objects.materialized_views,
            relation(NodeKind.MATERIALIZED_VIEW),
            schema,
        ),
        _group("functions", "Functions", owner, database, objects.functions, routine(NodeKind.FUNCTION), schema),
        _group(
            "procedures", "Procedures", owner, database, objects.procedures, routine(NodeKind.PROCEDURE), schema
        ),
        _group("sequences", "Sequences", owner, database, objects.sequences, sequence, schema),
    ]

    type_groups = [
        _group(
            "compositetypes",
            "Composite",
            owner,
            database,
            objects.composite_types,
            user_type(NodeKind.COMPOSITE_TYPE, "{name}"),
            schema,
        ),
        _group(
            "enumtypes", "Enum", owner, database, objects.enum_types, user_type(NodeKind.ENUM_TYPE, "{name}"), schema
        ),
        _group(
            "domaintypes",
            "Domain",
            owner,
            database,
            objects.domain_types,
            user_type(NodeKind.DOMAIN_TYPE, "{name} → {detail}"),
            schema,
        ),
        _group(
            "rangetypes",
            "Range",
            owner,
            database,
            objects.range_types,
            user_type(NodeKind.RANGE_TYPE, "{name} [{detail}]"),
            schema,
        ),
    ]
    present_types = [group for group in type_groups if group is not None]
    if present_types:
        type_count = (
            len(objects.composite_types)
            + len(objects.enum_types)
            + len(objects.domain_types)
            + len(objects.range_types)
        )
        groups.append(
            NodeSpec(
                id=f"types:{owner}",
                kind=NodeKind.OBJECT_GROUP,
                label=f"Types ({type_count})",
                selectable=False,
                loaded=True,
                metadata=FolderNode(folder_type="types", database=database, schema=schema),
                children=present_types,
            )
        )

    return [group for group in groups if group is not None]


def build_relation_children(database: str, schema: str, table: str, objects: RelationObjects) -> list[NodeSpec]:
    """Columns, Indexes and Triggers groups of a table or view."""
    owner = f"{database}.{schema}.{table}"

    def column(info: ColumnInfo) -> NodeSpec:
        label = f"{info.name} ({info.data_type})"
        return NodeSpec(
            id=f"column:{owner}.{info.name}",
            kind=NodeKind.COLUMN,
            label=label,
            selectable=False,
            loaded=True,
            metadata=ColumnNode(
                database=database,
                schema=schema,
                table=table,
                name=info.name,
                data_type=info.data_type,
                nullable=info.nullable,
                is_primary_key=info.is_primary_key,
            ),
        )

    def index(info: IndexInfo) -> NodeSpec:
        return NodeSpec(
            id=f"index:{owner}.{info.name}",
            kind=NodeKind.INDEX,
            label=info.name,
            loaded=True,
            metadata=IndexNode(database=database, schema=schema, name=info.name, table_name=info.table_name),
        )

    def trigger(info: TriggerInfo) -> NodeSpec:
        return NodeSpec(
            id=f"trigger:{owner}.{info.name}",
            kind=NodeKind.TRIGGER,
            label=info.name,
            loaded=True,
            metadata=TriggerNode(database=database, schema=schema, name=info.name, table_name=info.table_name),
        )

    groups = [
        _group("columns", "Columns", owner, database, objects.columns, column, schema, table),
        _group("indexes", "Indexes", owner, database, objects.indexes, index, schema, table),
        _group("triggers", "Triggers", owner, database, objects.triggers, trigger, schema, table),
    ]
    return [group for group in groups if group is not None]
