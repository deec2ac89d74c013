"""Tests for query result tabs and pending query tracking."""

from __future__ import annotations

from pglens.domains.results.domain.result_tabs import (
    QueryOutcome,
    QueryStatus,
    ResultTabs,
    generate_title,
)


def _completed(rows=None) -> QueryOutcome:
    return QueryOutcome(status=QueryStatus.COMPLETED, columns=["n"], rows=rows or [["1"]])


class TestCancellation:
    def test_result_of_cancelled_query_is_discarded(self):
        tabs = ResultTabs()
        tab, _ = tabs.start("SELECT pg_sleep(10)")

        assert tabs.cancel(tab.query.token) is tab
        assert tabs.resolve(tab.query.token, _completed()) is None
        assert tab.query.status is QueryStatus.CANCELLED

    def test_starting_a_query_supersedes_the_pending_one(self):
        tabs = ResultTabs()
        first, superseded = tabs.start("SELECT 1")
        assert superseded is None

        second, superseded = tabs.start("SELECT 2")

        assert superseded is first.query.token
        assert first.query.status is QueryStatus.CANCELLED
        assert tabs.pending() is second
        assert tabs.resolve(first.query.token, _completed()) is None

    def test_errored_outcome_is_kept(self):
        tabs = ResultTabs()
        tab, _ = tabs.start("SELECT nope")

        resolved = tabs.resolve(tab.query.token, QueryOutcome(status=QueryStatus.ERRORED, error="boom"))

        assert resolved is tab
        assert tab.query.status is QueryStatus.ERRORED
        assert tabs.cancel(tab.query.token) is None

    def test_result_is_applied_once(self):
        tabs = ResultTabs()
        tab, _ = tabs.start("SELECT 1")
        assert tabs.resolve(tab.query.token, _completed()) is tab
        assert tabs.resolve(tab.query.token, _completed([["2"]])) is None
        assert tab.rows == [["1"]]

    def test_closing_a_running_tab_cancels_it(self):
        tabs = ResultTabs()
        tab, _ = tabs.start("SELECT 1")

        closed = tabs.close_active()

        assert closed is tab
        assert tab.query.status is QueryStatus.CANCELLED
        assert len(tabs) == 0
        assert tabs.active is None


class TestTabs:
    def test_newest_tab_is_first_and_active(self):
        tabs = ResultTabs()
        first, _ = tabs.start("SELECT 1")
        tabs.resolve(first.query.token, _completed())
        second, _ = tabs.start("SELECT 2")

        assert tabs.tabs[0] is second
        assert tabs.active is second

    def test_cycling_wraps(self):
        tabs = ResultTabs()
        for n in range(3):
            tab, _ = tabs.start(f"SELECT {n}")
            tabs.resolve(tab.query.token, _completed())

        assert tabs.next_tab() is tabs.tabs[1]
        assert tabs.prev_tab() is tabs.tabs[0]
        assert tabs.prev_tab() is tabs.tabs[2]

    def test_oldest_resolved_tab_is_evicted(self):
        tabs = ResultTabs(max_tabs=2)
        for n in range(3):
            tab, _ = tabs.start(f"SELECT {n}")
            tabs.resolve(tab.query.token, _completed())

        assert len(tabs) == 2
        assert [tab.sql for tab in tabs.tabs] == ["SELECT 2", "SELECT 1"]


class TestGenerateTitle:
    def test_leading_dash_comment(self):
        assert generate_title("-- active users\nSELECT * FROM users") == "active users"

    def test_leading_block_comment(self):
        assert generate_title("/* monthly\n report */ SELECT 1") == "monthly report"

    def test_main_table(self):
        assert generate_title("SELECT * FROM public.users WHERE id = 1") == "public.users"

    def test_join_is_marked(self):
        assert generate_title("SELECT * FROM users u JOIN orders o ON o.user_id = u.id") == "users(+)"

    def test_statements(self):
        assert generate_title("DELETE FROM sessions") == "DELETE sessions"
        assert generate_title("UPDATE users SET name = 'x'") == "UPDATE users"
        assert generate_title("INSERT INTO logs VALUES (1)") == "INSERT logs"

    def test_long_sql_is_truncated(self):
        title = generate_title("SELECT 1 + 2 + 3 + 4 + 5 + 6")
        assert title == "SELECT 1 + 2 + 3 ..."
        assert len(title) == 20
