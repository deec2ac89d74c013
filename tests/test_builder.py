"""Tests for building tree node specs from catalog listings."""

from __future__ import annotations

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
from pglens.domains.explorer.domain.builder import (
    build_database_spec,
    build_relation_children,
    build_schema_children,
)
from pglens.domains.explorer.domain.tree import NavigationTree
from pglens.domains.explorer.domain.tree_nodes import ColumnNode, NodeKind, RoutineNode


class TestDatabaseSpec:
    def test_schemas_are_unloaded_children(self):
        spec = build_database_spec("app", ["public", "audit"])

        assert spec.id == "db:app"
        assert spec.loaded is True
        assert [child.label for child in spec.children] == ["public", "audit"]
        assert all(child.kind is NodeKind.SCHEMA and not child.loaded for child in spec.children)

    def test_extensions_group_comes_first(self):
        spec = build_database_spec("app", ["public"], [ExtensionInfo("pgcrypto", "1.3")])

        group = spec.children[0]
        assert group.kind is NodeKind.OBJECT_GROUP
        assert group.label == "Extensions (1)"
        assert group.children[0].label == "pgcrypto v1.3"


class TestSchemaChildren:
    def test_empty_listings_produce_no_group(self):
        specs = build_schema_children("app", "public", SchemaObjects(tables=["users", "orders"]))

        assert [spec.label for spec in specs] == ["Tables (2)"]

    def test_groups_in_display_order(self):
        objects = SchemaObjects(
            tables=["users"],
            views=["active_users"],
            materialized_views=["stats"],
            functions=[RoutineInfo("add", "integer, integer", 10)],
            procedures=[RoutineInfo("cleanup")],
            sequences=["users_id_seq"],
            enum_types=[TypeInfo("mood")],
            domain_types=[TypeInfo("email", "text")],
        )
        specs = build_schema_children("app", "public", objects)

        assert [spec.label for spec in specs] == [
            "Tables (1)",
            "Views (1)",
            "Materialized Views (1)",
            "Functions (1)",
            "Procedures (1)",
            "Sequences (1)",
            "Types (2)",
        ]
        types = specs[-1]
        assert [group.label for group in types.children] == ["Enum (1)", "Domain (1)"]
        assert types.children[1].children[0].label == "email → text"

    def test_relations_are_lazy_and_routines_are_leaves(self):
        objects = SchemaObjects(tables=["users"], functions=[RoutineInfo("add", "integer", 10)])
        tables, functions = build_schema_children("app", "public", objects)

        table = tables.children[0]
        assert table.id == "table:app.public.users"
        assert table.loaded is False

        function = functions.children[0]
        assert function.label == "add(integer)"
        assert function.loaded is True
        assert function.metadata == RoutineNode(database="app", schema="public", name="add", arguments="integer", oid=10)


class TestRelationChildren:
    def test_columns_indexes_and_triggers(self):
        objects = RelationObjects(
            columns=[ColumnInfo("id", "integer", nullable=False, is_primary_key=True), ColumnInfo("tags", "text[]")],
            indexes=[IndexInfo("users_pkey", "users", is_unique=True, is_primary=True)],
            triggers=[TriggerInfo("audit_users", "users")],
        )
        specs = build_relation_children("app", "public", "users", objects)

        assert [spec.label for spec in specs] == ["Columns (2)", "Indexes (1)", "Triggers (1)"]
        column = specs[0].children[1]
        assert column.label == "tags (text[])"
        assert isinstance(column.metadata, ColumnNode)
        assert column.metadata.is_array is True

    def test_specs_attach_into_a_tree(self):
        tree = NavigationTree.from_specs([build_database_spec("app", ["public"])])
        tree.attach("schema:app.public", build_schema_children("app", "public", SchemaObjects(tables=["users"])))
        tree.attach(
            "table:app.public.users",
            build_relation_children("app", "public", "users", RelationObjects(columns=[ColumnInfo("id", "integer")])),
        )

        assert tree.path_labels("column:app.public.users.id") == ["app", "public", "Tables (1)", "users", "Columns (1)", "id (integer)"]
        assert tree.schema_name("column:app.public.users.id") == "public"
