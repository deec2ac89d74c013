"""Tests for SQL helpers used by the PostgreSQL session."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from pglens.domains.connections.app.session import (
    NULL_DISPLAY,
    escape_like,
    format_cell,
    qualified_name,
    quote_identifier,
    translate_placeholders,
)
from pglens.shared.core.errors import QueryError


class TestTranslatePlaceholders:
    def test_positional_placeholders_become_pyformat(self):
        sql, args = translate_placeholders('SELECT * FROM t WHERE "a" = $1 AND "b" > $2', [1, 2])

        assert sql == 'SELECT * FROM t WHERE "a" = %s AND "b" > %s'
        assert args == [1, 2]

    def test_arguments_follow_placeholder_order(self):
        sql, args = translate_placeholders("SELECT $2, $1, $2", ["a", "b"])

        assert sql == "SELECT %s, %s, %s"
        assert args == ["b", "a", "b"]

    def test_literal_percent_is_escaped(self):
        sql, args = translate_placeholders("SELECT * FROM t WHERE name LIKE $1 AND x % 2 = 0", ["a%"])

        assert sql == "SELECT * FROM t WHERE name LIKE %s AND x %% 2 = 0"
        assert args == ["a%"]

    def test_dollar_signs_inside_quotes_are_left_alone(self):
        sql, args = translate_placeholders("SELECT '$1', \"$2\" FROM t WHERE a = $1", [5])

        assert sql == "SELECT '$1', \"$2\" FROM t WHERE a = %s"
        assert args == [5]

    def test_sql_without_placeholders_is_unchanged(self):
        assert translate_placeholders("SELECT 100 % 7", []) == ("SELECT 100 % 7", [])

    def test_missing_argument(self):
        with pytest.raises(QueryError):
            translate_placeholders("SELECT $2", [1])


class TestFormatCell:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, NULL_DISPLAY),
            (True, "true"),
            (False, "false"),
            (12, "12"),
            (Decimal("1.50"), "1.50"),
            ({"a": [1, 2]}, '{"a": [1, 2]}'),
            ([1, "x"], '[1, "x"]'),
            (b"bytes", "bytes"),
            (date(2024, 1, 2), "2024-01-02"),
            (datetime(2024, 1, 2, 3, 4, 5), "2024-01-02 03:04:05"),
        ],
    )
    def test_formats(self, value, expected):
        assert format_cell(value) == expected


class TestQuoting:
    def test_quote_identifier(self):
        assert quote_identifier('my "table"') == '"my ""table"""'

    def test_qualified_name(self):
        assert qualified_name("public", "users") == '"public"."users"'

    def test_escape_like(self):
        assert escape_like("50%_off\\") == "50\\%\\_off\\\\"
