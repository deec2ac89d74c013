"""Tree node kinds and their per-kind metadata payloads."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NodeKind(Enum):
    """Kind of a navigation tree node."""

    ROOT = "root"
    DATABASE = "database"
    SCHEMA = "schema"
    OBJECT_GROUP = "group"
    TABLE = "table"
    VIEW = "view"
    MATERIALIZED_VIEW = "matview"
    FUNCTION = "function"
    PROCEDURE = "procedure"
    SEQUENCE = "sequence"
    INDEX = "index"
    TRIGGER = "trigger"
    EXTENSION = "extension"
    COMPOSITE_TYPE = "compositetype"
    ENUM_TYPE = "enumtype"
    DOMAIN_TYPE = "domaintype"
    RANGE_TYPE = "rangetype"
    COLUMN = "column"


# Kinds whose selection browses rows in the data panel.
RELATION_KINDS = frozenset({NodeKind.TABLE, NodeKind.VIEW, NodeKind.MATERIALIZED_VIEW})

# Kinds whose selection loads a definition into the object viewer.
DETAIL_KINDS = frozenset(
    {
        NodeKind.FUNCTION,
        NodeKind.PROCEDURE,
        NodeKind.SEQUENCE,
        NodeKind.INDEX,
        NodeKind.TRIGGER,
        NodeKind.EXTENSION,
        NodeKind.COMPOSITE_TYPE,
        NodeKind.ENUM_TYPE,
        NodeKind.DOMAIN_TYPE,
        NodeKind.RANGE_TYPE,
    }
)

# Kinds whose children are fetched on first expansion.
LAZY_KINDS = frozenset({NodeKind.SCHEMA}) | RELATION_KINDS


@dataclass(frozen=True)
class DatabaseNode:
    """Node representing the connected database."""

    name: str
    active: bool = True


@dataclass(frozen=True)
class SchemaNode:
    """Node representing a schema."""

    database: str
    schema: str


@dataclass(frozen=True)
class FolderNode:
    """Node representing a group header (Tables, Views, Indexes, ...)."""

    folder_type: str  # "tables", "views", "matviews", "functions", "indexes", "columns", ...
    database: str
    schema: str | None = None
    table: str | None = None


@dataclass(frozen=True)
class RelationNode:
    """Node representing a table, view or materialized view."""

    database: str
    schema: str
    name: str


@dataclass(frozen=True)
class RoutineNode:
    """Node representing a function or procedure."""

    database: str
    schema: str
    name: str
    arguments: str = ""
    oid: int | None = None


@dataclass(frozen=True)
class SequenceNode:
    """Node representing a sequence."""

    database: str
    schema: str
    name: str


@dataclass(frozen=True)
class IndexNode:
    """Node representing an index."""

    database: str
    schema: str
    name: str
    table_name: str


@dataclass(frozen=True)
class TriggerNode:
    """Node representing a trigger."""

    database: str
    schema: str
    name: str
    table_name: str


@dataclass(frozen=True)
class ExtensionNode:
    """Node representing an installed extension."""

    database: str
    name: str
    version: str = ""


@dataclass(frozen=True)
class TypeNode:
    """Node representing a user-defined type (composite, enum, domain or range)."""

    database: str
    schema: str
    name: str
    detail: str = ""  # base type for domains, subtype for ranges


@dataclass(frozen=True)
class ColumnNode:
    """Node representing a table/view column."""

    database: str
    schema: str
    table: str
    name: str
    data_type: str
    nullable: bool = True
    is_primary_key: bool = False

    @property
    def is_array(self) -> bool:
        return self.data_type.endswith("[]") or self.data_type.upper() == "ARRAY"

    @property
    def is_jsonb(self) -> bool:
        return self.data_type.lower() in ("json", "jsonb")


NodeData = (
    DatabaseNode
    | SchemaNode
    | FolderNode
    | RelationNode
    | RoutineNode
    | SequenceNode
    | IndexNode
    | TriggerNode
    | ExtensionNode
    | TypeNode
    | ColumnNode
    | None
)

# Payload type each kind carries; enforced when nodes are created.
METADATA_TYPES: dict[NodeKind, type | None] = {
    NodeKind.ROOT: None,
    NodeKind.DATABASE: DatabaseNode,
    NodeKind.SCHEMA: SchemaNode,
    NodeKind.OBJECT_GROUP: FolderNode,
    NodeKind.TABLE: RelationNode,
    NodeKind.VIEW: RelationNode,
    NodeKind.MATERIALIZED_VIEW: RelationNode,
    NodeKind.FUNCTION: RoutineNode,
    NodeKind.PROCEDURE: RoutineNode,
    NodeKind.SEQUENCE: SequenceNode,
    NodeKind.INDEX: IndexNode,
    NodeKind.TRIGGER: TriggerNode,
    NodeKind.EXTENSION: ExtensionNode,
    NodeKind.COMPOSITE_TYPE: TypeNode,
    NodeKind.ENUM_TYPE: TypeNode,
    NodeKind.DOMAIN_TYPE: TypeNode,
    NodeKind.RANGE_TYPE: TypeNode,
    NodeKind.COLUMN: ColumnNode,
}


def check_metadata(kind: NodeKind, metadata: NodeData) -> None:
    """Raise TypeError if ``metadata`` is not the payload type for ``kind``.

    Metadata is optional for every kind; when present it must match.
    """
    if metadata is None:
        return
    expected = METADATA_TYPES[kind]
    if expected is None:
        raise TypeError(f"{kind.value} nodes carry no metadata")
    if not isinstance(metadata, expected):
        raise TypeError(f"{kind.value} nodes require {expected.__name__}, got {type(metadata).__name__}")
