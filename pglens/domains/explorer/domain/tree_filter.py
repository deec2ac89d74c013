"""Filtering the navigation tree by a typed query.

A query is an optional ``!`` (keep what does *not* match), an optional
type prefix such as ``t:`` or ``function:``, and a pattern matched as a
case-insensitive subsequence of the node label::

    plan        every object whose label contains p, l, a, n in order
    t:ord       tables only
    !f:get      everything except functions matching "get"
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .tree import NavigationTree, TreeNode
from .tree_nodes import NodeKind

TYPE_PREFIXES = {
    "t:": "table",
    "v:": "view",
    "f:": "function",
    "s:": "schema",
    "seq:": "sequence",
    "ext:": "extension",
    "col:": "column",
    "idx:": "index",
    "table:": "table",
    "view:": "view",
    "func:": "function",
    "function:": "function",
    "schema:": "schema",
    "sequence:": "sequence",
    "extension:": "extension",
    "column:": "column",
    "index:": "index",
}

TYPE_KINDS = {
    "table": frozenset({NodeKind.TABLE}),
    "view": frozenset({NodeKind.VIEW, NodeKind.MATERIALIZED_VIEW}),
    "function": frozenset({NodeKind.FUNCTION}),
    "schema": frozenset({NodeKind.SCHEMA}),
    "sequence": frozenset({NodeKind.SEQUENCE}),
    "extension": frozenset({NodeKind.EXTENSION}),
    "column": frozenset({NodeKind.COLUMN}),
    "index": frozenset({NodeKind.INDEX}),
}

# Databases and the "Tables (3)" style folders are never listed.
SEARCHABLE_KINDS = frozenset(NodeKind) - {NodeKind.ROOT, NodeKind.DATABASE, NodeKind.OBJECT_GROUP}


@dataclass(frozen=True)
class SearchQuery:
    pattern: str = ""
    negate: bool = False
    type_filter: str = ""


def parse_search_query(text: str) -> SearchQuery:
    negate = text.startswith("!")
    if negate:
        text = text[1:]
    type_filter = ""
    lowered = text.lower()
    for prefix, name in TYPE_PREFIXES.items():
        if lowered.startswith(prefix):
            type_filter = name
            text = text[len(prefix) :]
            break
    return SearchQuery(pattern=text, negate=negate, type_filter=type_filter)


def fuzzy_match(pattern: str, target: str) -> list[int] | None:
    """Positions in ``target`` matching ``pattern`` in order, or None.

    Case-insensitive; an empty pattern matches with no positions.
    """
    positions: list[int] = []
    if not pattern:
        return positions
    wanted = pattern.lower()
    index = 0
    for position, char in enumerate(target.lower()):
        if char == wanted[index]:
            positions.append(position)
            index += 1
            if index == len(wanted):
                return positions
    return None


def matches_type(node: TreeNode, type_filter: str) -> bool:
    if not type_filter:
        return True
    return node.kind in TYPE_KINDS.get(type_filter, frozenset())


def node_matches(node: TreeNode, query: SearchQuery) -> bool:
    type_ok = matches_type(node, query.type_filter)
    pattern_ok = fuzzy_match(query.pattern, node.label) is not None
    if not query.negate:
        return type_ok and pattern_ok
    if query.type_filter:
        # Everything outside the type, plus the type's non-matches.
        return not type_ok or not pattern_ok
    return not pattern_ok


def filter_tree(tree: NavigationTree, query: SearchQuery) -> list[TreeNode]:
    """Matching loaded nodes in tree order, collapsed or not."""
    return [node for node in tree.iter_nodes(SEARCHABLE_KINDS) if node_matches(node, query)]


class FilterMode(Enum):
    OFF = "off"
    INPUTTING = "inputting"
    ACTIVE = "active"


@dataclass
class TreeFilter:
    """The ``/`` filter over the tree panel.

    While typing the list is re-filtered on every key; Enter keeps the
    filter applied for navigation and Esc drops it.
    """

    mode: FilterMode = FilterMode.OFF
    query: str = ""

    @property
    def applied(self) -> bool:
        return self.mode is not FilterMode.OFF and bool(self.query)

    def start(self) -> None:
        self.mode = FilterMode.INPUTTING
        self.query = ""

    def confirm(self) -> None:
        self.mode = FilterMode.ACTIVE if self.query else FilterMode.OFF

    def clear(self) -> None:
        self.mode = FilterMode.OFF
        self.query = ""

    def visible(self, tree: NavigationTree) -> list[TreeNode]:
        if not self.applied:
            return tree.flatten()
        return filter_tree(tree, parse_search_query(self.query))

    def highlights(self, node: TreeNode) -> list[int]:
        """Label positions to highlight for ``node`` (none for negated queries)."""
        if not self.applied:
            return []
        query = parse_search_query(self.query)
        if query.negate:
            return []
        return fuzzy_match(query.pattern, node.label) or []
