"""Navigation tree: an arena of nodes addressed by their string ids.

Nodes reference their parent by id rather than by object, so the tree has
no ownership cycles while ancestor walks (schema lookup, path labels,
deep-linking) stay cheap. The tree is owned and mutated by the controller
only; background loaders describe new children as detached ``NodeSpec``
values which the controller attaches.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .tree_nodes import NodeData, NodeKind, check_metadata

ROOT_ID = "root"


@dataclass
class TreeNode:
    """One entry of the navigation tree."""

    id: str
    kind: NodeKind
    label: str
    parent: str | None = None
    children: list[str] = field(default_factory=list)
    expanded: bool = False
    loaded: bool = False
    selectable: bool = True
    metadata: NodeData = None

    def __post_init__(self) -> None:
        check_metadata(self.kind, self.metadata)


@dataclass
class NodeSpec:
    """Detached description of a node (and its subtree) to attach to the tree."""

    id: str
    kind: NodeKind
    label: str
    selectable: bool = True
    loaded: bool = False
    metadata: NodeData = None
    children: list[NodeSpec] = field(default_factory=list)


class NavigationTree:
    """Hierarchical catalog: database -> schema -> group -> object -> sub-object."""

    def __init__(self, root_label: str = "Databases") -> None:
        root = TreeNode(
            id=ROOT_ID,
            kind=NodeKind.ROOT,
            label=root_label,
            expanded=True,
            loaded=True,
            selectable=False,
        )
        self._nodes: dict[str, TreeNode] = {ROOT_ID: root}

    @classmethod
    def from_specs(cls, specs: Iterable[NodeSpec], root_label: str = "Databases") -> NavigationTree:
        tree = cls(root_label)
        tree.attach(ROOT_ID, specs)
        return tree

    @property
    def root(self) -> TreeNode:
        return self._nodes[ROOT_ID]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, node_id: str | None) -> TreeNode | None:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def node(self, node_id: str) -> TreeNode:
        """Return the node with ``node_id``; raises KeyError if absent."""
        return self._nodes[node_id]

    def parent_of(self, node_id: str) -> TreeNode | None:
        return self.get(self.node(node_id).parent)

    def children_of(self, node_id: str) -> list[TreeNode]:
        return [self._nodes[child_id] for child_id in self.node(node_id).children]

    # -- mutation ---------------------------------------------------------

    def add_child(self, parent_id: str, child: TreeNode) -> TreeNode:
        """Append ``child`` under ``parent_id``."""
        parent = self.node(parent_id)
        if child.id in self._nodes:
            raise ValueError(f"Duplicate node id: {child.id}")
        child.parent = parent.id
        parent.children.append(child.id)
        self._nodes[child.id] = child
        return child

    def attach(self, parent_id: str, specs: Iterable[NodeSpec]) -> list[TreeNode]:
        """Add ``specs`` (recursively) under ``parent_id`` and mark it loaded.

        Existing children are left untouched; specs whose id is already in
        the tree are skipped.
        """
        added: list[TreeNode] = []
        for spec in specs:
            if spec.id in self._nodes:
                continue
            added.append(self._attach_spec(parent_id, spec))
        self.node(parent_id).loaded = True
        return added

    def _attach_spec(self, parent_id: str, spec: NodeSpec) -> TreeNode:
        node = self.add_child(
            parent_id,
            TreeNode(
                id=spec.id,
                kind=spec.kind,
                label=spec.label,
                selectable=spec.selectable,
                loaded=spec.loaded,
                metadata=spec.metadata,
            ),
        )
        for child in spec.children:
            if child.id not in self._nodes:
                self._attach_spec(node.id, child)
        return node

    def replace_children(self, parent_id: str, specs: Iterable[NodeSpec]) -> list[TreeNode]:
        """Drop every existing child subtree of ``parent_id`` and attach ``specs``.

        Loaded nodes that come back under the same id stay expanded if they were.
        """
        parent = self.node(parent_id)
        expanded: set[str] = set()
        for child_id in list(parent.children):
            expanded.update(self._remove_subtree(child_id))
        parent.children = []
        added = self.attach(parent_id, specs)
        for node_id in expanded:
            node = self._nodes.get(node_id)
            if node is not None and node.loaded:
                node.expanded = True
        return added

    def _remove_subtree(self, node_id: str) -> set[str]:
        """Remove a subtree; returns the ids in it that were expanded."""
        expanded = set()
        stack = [node_id]
        while stack:
            current = self._nodes.pop(stack.pop())
            if current.expanded:
                expanded.add(current.id)
            stack.extend(current.children)
        return expanded

    def toggle(self, node_id: str) -> bool:
        """Toggle expansion. Returns True if the expanded flag changed.

        Columns are leaves and never toggle. Other nodes toggle when they
        have children or have not been loaded yet (they may gain children).
        """
        node = self.node(node_id)
        if node.kind in (NodeKind.COLUMN, NodeKind.ROOT):
            return False
        if node.children or not node.loaded:
            node.expanded = not node.expanded
            return True
        return False

    def expand_ancestors(self, node_id: str) -> bool:
        """Expand every ancestor of ``node_id`` so it becomes visible."""
        node = self.get(node_id)
        if node is None:
            return False
        current = self.get(node.parent)
        while current is not None and current.kind is not NodeKind.ROOT:
            current.expanded = True
            current = self.get(current.parent)
        return True

    # -- queries ----------------------------------------------------------

    def flatten(self) -> list[TreeNode]:
        """Visible nodes in depth-first pre-order, root excluded.

        A node is visible iff every ancestor below the root is expanded.
        Always recomputed from the current expansion state.
        """
        result: list[TreeNode] = []
        stack = list(reversed(self.root.children))
        while stack:
            node = self._nodes[stack.pop()]
            result.append(node)
            if node.expanded:
                stack.extend(reversed(node.children))
        return result

    def iter_nodes(self, kinds: Iterable[NodeKind] | None = None) -> Iterator[TreeNode]:
        """Every node below the root in depth-first pre-order, ignoring expansion."""
        wanted = frozenset(kinds) if kinds is not None else None
        stack = list(reversed(self.root.children))
        while stack:
            node = self._nodes[stack.pop()]
            if wanted is None or node.kind in wanted:
                yield node
            stack.extend(reversed(node.children))

    def ancestors(self, node_id: str) -> Iterator[TreeNode]:
        """Ancestors of ``node_id`` from nearest to farthest, root excluded."""
        current = self.parent_of(node_id)
        while current is not None and current.kind is not NodeKind.ROOT:
            yield current
            current = self.get(current.parent)

    def ancestor_of_kind(self, node_id: str, kind: NodeKind) -> TreeNode | None:
        node = self.get(node_id)
        while node is not None:
            if node.kind is kind:
                return node
            node = self.get(node.parent)
        return None

    def path_labels(self, node_id: str) -> list[str]:
        """Labels from the top-level node down to ``node_id``."""
        node = self.node(node_id)
        labels = [node.label] if node.kind is not NodeKind.ROOT else []
        labels.extend(ancestor.label for ancestor in self.ancestors(node_id))
        labels.reverse()
        return labels

    def depth(self, node_id: str) -> int:
        """Distance from the root (root = 0)."""
        depth = 0
        current = self.parent_of(node_id)
        while current is not None:
            depth += 1
            current = self.get(current.parent)
        return depth

    def is_ancestor_of(self, ancestor_id: str, node_id: str) -> bool:
        current = self.parent_of(node_id)
        while current is not None:
            if current.id == ancestor_id:
                return True
            current = self.get(current.parent)
        return False

    def schema_name(self, node_id: str) -> str | None:
        schema = self.ancestor_of_kind(node_id, NodeKind.SCHEMA)
        return schema.label if schema else None

    def database_name(self, node_id: str) -> str | None:
        database = self.ancestor_of_kind(node_id, NodeKind.DATABASE)
        return database.label if database else None

    def needs_fetch(self, node_id: str) -> bool:
        """True when a node is expanded but its children were never loaded."""
        node = self.node(node_id)
        return node.expanded and not node.loaded


def parse_node_id(node_id: str) -> tuple[str, list[str]]:
    """Split ``"table:db.public.users"`` into ``("table", ["db", "public", "users"])``."""
    prefix, sep, rest = node_id.partition(":")
    if not sep:
        return "", []
    return prefix, rest.split(".")
