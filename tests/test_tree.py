"""Tests for the navigation tree."""

from __future__ import annotations

import pytest

from pglens.domains.explorer.domain.tree import ROOT_ID, NavigationTree, NodeSpec, TreeNode, parse_node_id
from pglens.domains.explorer.domain.tree_nodes import (
    ColumnNode,
    DatabaseNode,
    NodeKind,
    RelationNode,
    SchemaNode,
)


def _sample_tree() -> NavigationTree:
    """Root -> d -> s -> [a, b]."""
    return NavigationTree.from_specs(
        [
            NodeSpec(
                id="db:d",
                kind=NodeKind.DATABASE,
                label="d",
                loaded=True,
                metadata=DatabaseNode(name="d"),
                children=[
                    NodeSpec(
                        id="schema:d.s",
                        kind=NodeKind.SCHEMA,
                        label="s",
                        loaded=True,
                        metadata=SchemaNode(database="d", schema="s"),
                        children=[
                            NodeSpec(
                                id="table:d.s.a",
                                kind=NodeKind.TABLE,
                                label="a",
                                metadata=RelationNode(database="d", schema="s", name="a"),
                            ),
                            NodeSpec(
                                id="table:d.s.b",
                                kind=NodeKind.TABLE,
                                label="b",
                                metadata=RelationNode(database="d", schema="s", name="b"),
                            ),
                        ],
                    )
                ],
            )
        ]
    )


class TestFlatten:
    def test_only_expanded_branches_are_visible(self):
        tree = _sample_tree()
        tree.node("db:d").expanded = True
        tree.node("schema:d.s").expanded = True

        assert [node.label for node in tree.flatten()] == ["d", "s", "a", "b"]

    def test_collapsing_schema_hides_its_tables(self):
        tree = _sample_tree()
        tree.node("db:d").expanded = True
        tree.node("schema:d.s").expanded = True

        tree.toggle("schema:d.s")

        assert [node.label for node in tree.flatten()] == ["d", "s"]

    def test_collapsed_ancestor_hides_expanded_descendants(self):
        tree = _sample_tree()
        tree.node("schema:d.s").expanded = True

        assert [node.label for node in tree.flatten()] == ["d"]

    def test_root_is_never_listed(self):
        tree = _sample_tree()
        assert all(node.id != ROOT_ID for node in tree.flatten())


class TestToggle:
    def test_unloaded_leaf_can_expand(self):
        tree = _sample_tree()
        assert tree.toggle("table:d.s.a") is True
        assert tree.needs_fetch("table:d.s.a") is True

    def test_loaded_node_without_children_does_not_toggle(self):
        tree = _sample_tree()
        tree.attach("table:d.s.a", [])
        assert tree.toggle("table:d.s.a") is False
        assert tree.node("table:d.s.a").expanded is False

    def test_columns_never_toggle(self):
        tree = _sample_tree()
        tree.attach(
            "table:d.s.a",
            [
                NodeSpec(
                    id="column:d.s.a.id",
                    kind=NodeKind.COLUMN,
                    label="id (integer)",
                    loaded=True,
                    metadata=ColumnNode(database="d", schema="s", table="a", name="id", data_type="integer"),
                )
            ],
        )
        assert tree.toggle("column:d.s.a.id") is False


class TestMutation:
    def test_attach_marks_parent_loaded_and_skips_known_ids(self):
        tree = _sample_tree()
        spec = NodeSpec(
            id="table:d.s.a",
            kind=NodeKind.TABLE,
            label="a",
            metadata=RelationNode(database="d", schema="s", name="a"),
        )
        added = tree.attach("schema:d.s", [spec])

        assert added == []
        assert len(tree.children_of("schema:d.s")) == 2
        assert tree.node("schema:d.s").loaded is True

    def test_add_child_rejects_duplicate_ids(self):
        tree = _sample_tree()
        with pytest.raises(ValueError):
            tree.add_child("schema:d.s", TreeNode(id="table:d.s.a", kind=NodeKind.TABLE, label="a"))

    def test_replace_children_drops_the_old_subtree(self):
        tree = _sample_tree()
        tree.replace_children("schema:d.s", [])

        assert tree.children_of("schema:d.s") == []
        assert tree.get("table:d.s.a") is None

    def test_reloaded_children_keep_their_expansion(self):
        tree = _sample_tree()
        tree.node("schema:d.s").expanded = True

        tree.replace_children(
            "db:d",
            [
                NodeSpec(
                    id="schema:d.s",
                    kind=NodeKind.SCHEMA,
                    label="s",
                    loaded=True,
                    children=[NodeSpec(id="table:d.s.c", kind=NodeKind.TABLE, label="c")],
                ),
                NodeSpec(id="schema:d.t", kind=NodeKind.SCHEMA, label="t"),
            ],
        )

        assert tree.node("schema:d.s").expanded is True
        assert tree.node("schema:d.t").expanded is False
        assert [node.label for node in tree.children_of("schema:d.s")] == ["c"]
        assert tree.get("table:d.s.a") is None

    def test_metadata_must_match_kind(self):
        with pytest.raises(TypeError):
            TreeNode(id="x", kind=NodeKind.TABLE, label="x", metadata=SchemaNode(database="d", schema="s"))


class TestAncestors:
    def test_path_labels(self):
        tree = _sample_tree()
        assert tree.path_labels("table:d.s.b") == ["d", "s", "b"]

    def test_schema_and_database_lookup(self):
        tree = _sample_tree()
        assert tree.schema_name("table:d.s.a") == "s"
        assert tree.database_name("table:d.s.a") == "d"
        assert tree.schema_name("db:d") is None

    def test_expand_ancestors_reveals_node(self):
        tree = _sample_tree()
        assert tree.expand_ancestors("table:d.s.b") is True
        assert "table:d.s.b" in [node.id for node in tree.flatten()]

    def test_expand_ancestors_of_unknown_node(self):
        assert _sample_tree().expand_ancestors("table:d.s.zzz") is False

    def test_depth_and_is_ancestor_of(self):
        tree = _sample_tree()
        assert tree.depth("table:d.s.a") == 3
        assert tree.is_ancestor_of("db:d", "table:d.s.a") is True
        assert tree.is_ancestor_of("table:d.s.a", "db:d") is False

    def test_iter_nodes_filters_by_kind(self):
        tree = _sample_tree()
        assert [node.label for node in tree.iter_nodes({NodeKind.TABLE})] == ["a", "b"]


class TestParseNodeId:
    def test_splits_prefix_and_parts(self):
        assert parse_node_id("table:db.public.users") == ("table", ["db", "public", "users"])

    def test_without_prefix(self):
        assert parse_node_id("root") == ("", [])
