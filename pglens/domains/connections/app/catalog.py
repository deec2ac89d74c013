"""PostgreSQL schema introspection.

Listings that fail are logged, left empty and recorded in ``failed`` so a
schema or table still loads with whatever could be read. Only the schema
listing itself is fatal to a tree load.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from pglens.domains.connections.domain.catalog import (
    ColumnInfo,
    ConstraintInfo,
    ExtensionInfo,
    IndexInfo,
    RelationObjects,
    RoutineInfo,
    SchemaObjects,
    TableStructure,
    TriggerInfo,
    TypeInfo,
)
from pglens.shared.core.errors import PglensError, QueryError, TreeLoadError

from .session import PostgresSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMAS_SQL = """
    SELECT nspname FROM pg_namespace
    WHERE nspname NOT IN ('pg_catalog', 'information_schema', 'pg_toast')
      AND nspname NOT LIKE 'pg\\_temp\\_%'
      AND nspname NOT LIKE 'pg\\_toast\\_temp\\_%'
    ORDER BY nspname
"""

EXTENSIONS_SQL = """
    SELECT extname, extversion FROM pg_extension ORDER BY extname
"""

TABLES_SQL = """
    SELECT tablename FROM pg_catalog.pg_tables WHERE schemaname = $1 ORDER BY tablename
"""

VIEWS_SQL = """
    SELECT viewname FROM pg_catalog.pg_views WHERE schemaname = $1 ORDER BY viewname
"""

MATVIEWS_SQL = """
    SELECT matviewname FROM pg_catalog.pg_matviews WHERE schemaname = $1 ORDER BY matviewname
"""

ROUTINES_SQL = """
    SELECT p.proname, pg_get_function_identity_arguments(p.oid), p.oid
    FROM pg_proc p
    JOIN pg_namespace n ON p.pronamespace = n.oid
    WHERE n.nspname = $1
      AND p.prokind = $2
      AND p.prorettype != 'trigger'::regtype
    ORDER BY p.proname, 2
"""

SEQUENCES_SQL = """
    SELECT sequencename FROM pg_catalog.pg_sequences WHERE schemaname = $1 ORDER BY sequencename
"""

COMPOSITE_TYPES_SQL = """
    SELECT t.typname, ''
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    LEFT JOIN pg_class c ON t.typrelid = c.oid
    WHERE n.nspname = $1 AND t.typtype = 'c' AND (c.relkind IS NULL OR c.relkind = 'c')
    ORDER BY t.typname
"""

ENUM_TYPES_SQL = """
    SELECT t.typname, string_agg(e.enumlabel, ', ' ORDER BY e.enumsortorder)
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    JOIN pg_enum e ON t.oid = e.enumtypid
    WHERE n.nspname = $1 AND t.typtype = 'e'
    GROUP BY t.typname
    ORDER BY t.typname
"""

DOMAIN_TYPES_SQL = """
    SELECT t.typname, pg_catalog.format_type(t.typbasetype, t.typtypmod)
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    WHERE n.nspname = $1 AND t.typtype = 'd'
    ORDER BY t.typname
"""

RANGE_TYPES_SQL = """
    SELECT t.typname, st.typname
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    JOIN pg_range r ON t.oid = r.rngtypid
    JOIN pg_type st ON r.rngsubtype = st.oid
    WHERE n.nspname = $1 AND t.typtype = 'r'
    ORDER BY t.typname
"""

COLUMNS_SQL = """
    SELECT a.attname,
           pg_catalog.format_type(a.atttypid, a.atttypmod),
           NOT a.attnotnull,
           COALESCE(i.indisprimary, false),
           pg_get_expr(d.adbin, d.adrelid)
    FROM pg_attribute a
    JOIN pg_class c ON a.attrelid = c.oid
    JOIN pg_namespace n ON c.relnamespace = n.oid
    LEFT JOIN pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
    LEFT JOIN pg_index i ON i.indrelid = c.oid AND i.indisprimary AND a.attnum = ANY(i.indkey)
    WHERE n.nspname = $1 AND c.relname = $2 AND a.attnum > 0 AND NOT a.attisdropped
    ORDER BY a.attnum
"""

INDEXES_SQL = """
    SELECT ic.relname, t.relname, i.indisunique, i.indisprimary, pg_get_indexdef(i.indexrelid)
    FROM pg_index i
    JOIN pg_class ic ON i.indexrelid = ic.oid
    JOIN pg_class t ON i.indrelid = t.oid
    JOIN pg_namespace n ON t.relnamespace = n.oid
    WHERE n.nspname = $1 AND t.relname = $2
    ORDER BY ic.relname
"""

CONSTRAINTS_SQL = """
    SELECT con.conname,
           con.contype,
           pg_get_constraintdef(con.oid),
           ARRAY(
               SELECT att.attname
               FROM unnest(con.conkey) WITH ORDINALITY AS u(attnum, position)
               JOIN pg_attribute att ON att.attrelid = con.conrelid AND att.attnum = u.attnum
               ORDER BY u.position
           ),
           COALESCE(nf.nspname || '.' || clf.relname, ''),
           ARRAY(
               SELECT att.attname
               FROM unnest(con.confkey) WITH ORDINALITY AS u(attnum, position)
               JOIN pg_attribute att ON att.attrelid = con.confrelid AND att.attnum = u.attnum
               ORDER BY u.position
           )
    FROM pg_constraint con
    JOIN pg_class cl ON con.conrelid = cl.oid
    JOIN pg_namespace ns ON cl.relnamespace = ns.oid
    LEFT JOIN pg_class clf ON con.confrelid = clf.oid
    LEFT JOIN pg_namespace nf ON clf.relnamespace = nf.oid
    WHERE ns.nspname = $1 AND cl.relname = $2
    ORDER BY CASE con.contype WHEN 'p' THEN 1 WHEN 'u' THEN 2 WHEN 'f' THEN 3 WHEN 'c' THEN 4 ELSE 5 END,
             con.conname
"""

TRIGGERS_SQL = """
    SELECT t.tgname, c.relname
    FROM pg_trigger t
    JOIN pg_class c ON t.tgrelid = c.oid
    JOIN pg_namespace n ON c.relnamespace = n.oid
    WHERE n.nspname = $1 AND c.relname = $2 AND NOT t.tgisinternal
    ORDER BY t.tgname
"""


class PostgresCatalog:
    """Reads catalog listings through a session."""

    def __init__(self, session: PostgresSession) -> None:
        self.session = session

    @property
    def database(self) -> str:
        return self.session.config.database

    def list_schemas(self) -> list[str]:
        try:
            return [row[0] for row in self.session.fetch(SCHEMAS_SQL)]
        except PglensError as error:
            raise TreeLoadError(f"Could not list schemas: {error}") from error

    def list_extensions(self) -> list[ExtensionInfo]:
        failed: list[str] = []
        rows = self._listing("extensions", EXTENSIONS_SQL, (), failed)
        return [ExtensionInfo(name=row[0], version=row[1] or "") for row in rows]

    def schema_objects(self, schema: str) -> SchemaObjects:
        objects = SchemaObjects()
        failed = objects.failed

        def names(label: str, sql: str) -> list[str]:
            return [row[0] for row in self._listing(label, sql, (schema,), failed)]

        def routines(label: str, prokind: str) -> list[RoutineInfo]:
            rows = self._listing(label, ROUTINES_SQL, (schema, prokind), failed)
            return [RoutineInfo(name=row[0], arguments=row[1] or "", oid=row[2]) for row in rows]

        def types(label: str, sql: str) -> list[TypeInfo]:
            return [TypeInfo(name=row[0], detail=row[1] or "") for row in self._listing(label, sql, (schema,), failed)]

        objects.tables = names("tables", TABLES_SQL)
        objects.views = names("views", VIEWS_SQL)
        objects.materialized_views = names("materialized views", MATVIEWS_SQL)
        objects.functions = routines("functions", "f")
        objects.procedures = routines("procedures", "p")
        objects.sequences = names("sequences", SEQUENCES_SQL)
        objects.composite_types = types("composite types", COMPOSITE_TYPES_SQL)
        objects.enum_types = types("enum types", ENUM_TYPES_SQL)
        objects.domain_types = types("domain types", DOMAIN_TYPES_SQL)
        objects.range_types = types("range types", RANGE_TYPES_SQL)
        return objects

    def relation_objects(self, schema: str, table: str) -> RelationObjects:
        objects = RelationObjects()
        args = (schema, table)
        objects.columns = self._columns(args, objects.failed)
        objects.indexes = self._indexes(args, objects.failed)
        objects.triggers = [
            TriggerInfo(name=row[0], table_name=row[1])
            for row in self._listing("triggers", TRIGGERS_SQL, args, objects.failed)
        ]
        return objects

    def table_structure(self, schema: str, table: str) -> TableStructure:
        """Everything the Columns, Constraints and Indexes tabs show for one table."""
        structure = TableStructure(schema=schema, table=table)
        args = (schema, table)
        structure.columns = self._columns(args, structure.failed)
        structure.constraints = [
            ConstraintInfo(
                name=row[0],
                type=row[1],
                definition=row[2] or "",
                columns=tuple(row[3] or ()),
                foreign_table=row[4] or "",
                foreign_columns=tuple(row[5] or ()),
            )
            for row in self._listing("constraints", CONSTRAINTS_SQL, args, structure.failed)
        ]
        structure.indexes = self._indexes(args, structure.failed)
        return structure

    def _columns(self, args: tuple, failed: list[str]) -> list[ColumnInfo]:
        return [
            ColumnInfo(name=row[0], data_type=row[1], nullable=bool(row[2]), is_primary_key=bool(row[3]), default=row[4])
            for row in self._listing("columns", COLUMNS_SQL, args, failed)
        ]

    def _indexes(self, args: tuple, failed: list[str]) -> list[IndexInfo]:
        return [
            IndexInfo(
                name=row[0],
                table_name=row[1],
                is_unique=bool(row[2]),
                is_primary=bool(row[3]),
                definition=row[4] or "",
            )
            for row in self._listing("indexes", INDEXES_SQL, args, failed)
        ]

    def _listing(self, label: str, sql: str, args: tuple, failed: list[str]) -> list[tuple]:
        return _guarded(label, lambda: self.session.fetch(sql, args), failed, [])


def _guarded(label: str, load: Callable[[], T], failed: list[str], default: T) -> T:
    try:
        return load()
    except QueryError as error:
        logger.warning("Listing %s failed: %s", label, error)
        failed.append(label)
        return default
