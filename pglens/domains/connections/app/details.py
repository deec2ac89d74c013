"""Definitions of non-tabular catalog objects, formatted for the viewer."""

from __future__ import annotations

from dataclasses import dataclass

from pglens.domains.explorer.domain.tree_nodes import (
    ExtensionNode,
    IndexNode,
    NodeData,
    NodeKind,
    RoutineNode,
    SequenceNode,
    TriggerNode,
    TypeNode,
)
from pglens.shared.core.errors import QueryError

from .session import PostgresSession, qualified_name


@dataclass(frozen=True)
class ObjectDetails:
    title: str
    text: str


ROUTINE_SQL = """
    SELECT pg_get_functiondef(p.oid), l.lanname, pg_get_function_result(p.oid)
    FROM pg_proc p
    JOIN pg_namespace n ON p.pronamespace = n.oid
    JOIN pg_language l ON p.prolang = l.oid
    WHERE n.nspname = $1 AND p.proname = $2
      AND pg_get_function_identity_arguments(p.oid) = $3
"""

ROUTINE_BY_OID_SQL = """
    SELECT pg_get_functiondef(p.oid), l.lanname, pg_get_function_result(p.oid)
    FROM pg_proc p
    JOIN pg_language l ON p.prolang = l.oid
    WHERE p.oid = $1
"""

SEQUENCE_SQL = """
    SELECT start_value, min_value, max_value, increment_by, cycle, sequenceowner, data_type::text
    FROM pg_sequences
    WHERE schemaname = $1 AND sequencename = $2
"""

INDEX_SQL = """
    SELECT pg_get_indexdef(ic.oid), i.indisunique, i.indisprimary
    FROM pg_index i
    JOIN pg_class ic ON i.indexrelid = ic.oid
    JOIN pg_namespace n ON ic.relnamespace = n.oid
    WHERE n.nspname = $1 AND ic.relname = $2
"""

TRIGGER_SQL = """
    SELECT pg_get_triggerdef(t.oid, true)
    FROM pg_trigger t
    JOIN pg_class c ON t.tgrelid = c.oid
    JOIN pg_namespace n ON c.relnamespace = n.oid
    WHERE n.nspname = $1 AND c.relname = $2 AND t.tgname = $3
"""

EXTENSION_SQL = """
    SELECT e.extversion, n.nspname, a.default_version, a.comment
    FROM pg_extension e
    JOIN pg_namespace n ON e.extnamespace = n.oid
    LEFT JOIN pg_available_extensions a ON a.name = e.extname
    WHERE e.extname = $1
"""

COMPOSITE_SQL = """
    SELECT a.attname, pg_catalog.format_type(a.atttypid, a.atttypmod)
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    JOIN pg_attribute a ON a.attrelid = t.typrelid
    WHERE n.nspname = $1 AND t.typname = $2 AND a.attnum > 0 AND NOT a.attisdropped
    ORDER BY a.attnum
"""

ENUM_SQL = """
    SELECT e.enumlabel
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    JOIN pg_enum e ON t.oid = e.enumtypid
    WHERE n.nspname = $1 AND t.typname = $2
    ORDER BY e.enumsortorder
"""

DOMAIN_SQL = """
    SELECT pg_catalog.format_type(t.typbasetype, t.typtypmod), t.typdefault, t.typnotnull
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    WHERE n.nspname = $1 AND t.typname = $2 AND t.typtype = 'd'
"""

DOMAIN_CONSTRAINTS_SQL = """
    SELECT c.conname, pg_get_constraintdef(c.oid)
    FROM pg_constraint c
    JOIN pg_type t ON c.contypid = t.oid
    JOIN pg_namespace n ON t.typnamespace = n.oid
    WHERE n.nspname = $1 AND t.typname = $2
    ORDER BY c.conname
"""

RANGE_SQL = """
    SELECT st.typname, r.rngcollation::regcollation::text, r.rngsubdiff::text
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    JOIN pg_range r ON t.oid = r.rngtypid
    JOIN pg_type st ON r.rngsubtype = st.oid
    WHERE n.nspname = $1 AND t.typname = $2
"""


def load_object_details(session: PostgresSession, kind: NodeKind, metadata: NodeData) -> ObjectDetails:
    """Fetch and format the definition of the object a tree node refers to.

    Raises QueryError when the object no longer exists.
    """
    if isinstance(metadata, RoutineNode):
        return _routine(session, kind, metadata)
    if isinstance(metadata, SequenceNode):
        return _sequence(session, metadata)
    if isinstance(metadata, IndexNode):
        return _index(session, metadata)
    if isinstance(metadata, TriggerNode):
        return _trigger(session, metadata)
    if isinstance(metadata, ExtensionNode):
        return _extension(session, metadata)
    if isinstance(metadata, TypeNode):
        return _user_type(session, kind, metadata)
    raise QueryError(f"No definition available for {kind.value} objects")


def _first(session: PostgresSession, sql: str, args: tuple, missing: str) -> tuple:
    rows = session.fetch(sql, args)
    if not rows:
        raise QueryError(missing)
    return rows[0]


def _routine(session: PostgresSession, kind: NodeKind, node: RoutineNode) -> ObjectDetails:
    label = "Procedure" if kind is NodeKind.PROCEDURE else "Function"
    signature = f"{node.schema}.{node.name}({node.arguments})"
    if node.oid is not None:
        row = _first(session, ROUTINE_BY_OID_SQL, (node.oid,), f"{label} {signature} not found")
    else:
        row = _first(
            session, ROUTINE_SQL, (node.schema, node.name, node.arguments), f"{label} {signature} not found"
        )
    definition, language, result_type = row
    header = f"-- {label}: {signature}\n-- Language: {language}"
    if kind is not NodeKind.PROCEDURE and result_type:
        header += f"\n-- Returns: {result_type}"
    return ObjectDetails(title=f"{label} {signature}", text=f"{header}\n\n{definition.strip()}")


def _sequence(session: PostgresSession, node: SequenceNode) -> ObjectDetails:
    name = f"{node.schema}.{node.name}"
    start, minimum, maximum, increment, cycle, owner, data_type = _first(
        session, SEQUENCE_SQL, (node.schema, node.name), f"Sequence {name} not found"
    )
    try:
        rows = session.fetch(f"SELECT last_value, is_called FROM {qualified_name(node.schema, node.name)}")
        current = str(rows[0][0]) if rows and rows[0][1] else "(not yet called)"
    except QueryError:
        current = "(unavailable)"
    lines = [
        f"Sequence:      {name}",
        f"Type:          {data_type}",
        f"Owner:         {owner}",
        f"Current value: {current}",
        f"Start value:   {start}",
        f"Increment:     {increment}",
        f"Min value:     {minimum}",
        f"Max value:     {maximum}",
        f"Cycle:         {'yes' if cycle else 'no'}",
    ]
    return ObjectDetails(title=f"Sequence {name}", text="\n".join(lines))


def _index(session: PostgresSession, node: IndexNode) -> ObjectDetails:
    name = f"{node.schema}.{node.name}"
    definition, unique, primary = _first(session, INDEX_SQL, (node.schema, node.name), f"Index {name} not found")
    flags = ", ".join(flag for flag, on in (("primary key", primary), ("unique", unique)) if on) or "non-unique"
    text = f"-- Index on {node.schema}.{node.table_name} ({flags})\n{definition};"
    return ObjectDetails(title=f"Index {name}", text=text)


def _trigger(session: PostgresSession, node: TriggerNode) -> ObjectDetails:
    name = f"{node.name} on {node.schema}.{node.table_name}"
    (definition,) = _first(
        session, TRIGGER_SQL, (node.schema, node.table_name, node.name), f"Trigger {name} not found"
    )
    return ObjectDetails(title=f"Trigger {name}", text=f"{definition};")


def _extension(session: PostgresSession, node: ExtensionNode) -> ObjectDetails:
    version, schema, default_version, comment = _first(
        session, EXTENSION_SQL, (node.name,), f"Extension {node.name} not found"
    )
    lines = [
        f"Extension:       {node.name}",
        f"Version:         {version}",
        f"Default version: {default_version or '-'}",
        f"Schema:          {schema}",
    ]
    if comment:
        lines.extend(["", comment])
    return ObjectDetails(title=f"Extension {node.name}", text="\n".join(lines))


def _user_type(session: PostgresSession, kind: NodeKind, node: TypeNode) -> ObjectDetails:
    name = f"{node.schema}.{node.name}"
    args = (node.schema, node.name)
    if kind is NodeKind.COMPOSITE_TYPE:
        rows = session.fetch(COMPOSITE_SQL, args)
        body = ",\n".join(f"    {attr} {data_type}" for attr, data_type in rows)
        return ObjectDetails(title=f"Type {name}", text=f"CREATE TYPE {name} AS (\n{body}\n);")
    if kind is NodeKind.ENUM_TYPE:
        labels = [row[0] for row in session.fetch(ENUM_SQL, args)]
        body = ",\n".join("    '" + label.replace("'", "''") + "'" for label in labels)
        return ObjectDetails(title=f"Type {name}", text=f"CREATE TYPE {name} AS ENUM (\n{body}\n);")
    if kind is NodeKind.DOMAIN_TYPE:
        base_type, default, not_null = _first(session, DOMAIN_SQL, args, f"Domain {name} not found")
        parts = [f"CREATE DOMAIN {name} AS {base_type}"]
        if default:
            parts.append(f"    DEFAULT {default}")
        if not_null:
            parts.append("    NOT NULL")
        for constraint_name, definition in session.fetch(DOMAIN_CONSTRAINTS_SQL, args):
            parts.append(f"    CONSTRAINT {constraint_name} {definition}")
        return ObjectDetails(title=f"Domain {name}", text="\n".join(parts) + ";")
    subtype, collation, subdiff = _first(session, RANGE_SQL, args, f"Range type {name} not found")
    options = [f"    SUBTYPE = {subtype}"]
    if collation and collation != "-":
        options.append(f"    COLLATION = {collation}")
    if subdiff and subdiff != "-":
        options.append(f"    SUBTYPE_DIFF = {subdiff}")
    body = ",\n".join(options)
    return ObjectDetails(title=f"Range type {name}", text=f"CREATE TYPE {name} AS RANGE (\n{body}\n);")
