"""Query result tabs and the pending query each one tracks."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from enum import Enum

from pglens.shared.core.cancellation import CancellationToken

from .pagination import GridCursor

MAX_RESULT_TABS = 10
TITLE_MAX_LENGTH = 20

_DASH_COMMENT = re.compile(r"^\s*--\s*(.+)$")
_BLOCK_COMMENT = re.compile(r"^\s*/\*\s*(.+?)\s*\*/", re.DOTALL)
_IDENT = r"([A-Za-z_][A-Za-z0-9_.]*)"
_DELETE = re.compile(rf"\bDELETE\s+FROM\s+{_IDENT}", re.IGNORECASE)
_FROM = re.compile(rf"\bFROM\s+{_IDENT}", re.IGNORECASE)
_UPDATE = re.compile(rf"\bUPDATE\s+{_IDENT}", re.IGNORECASE)
_INSERT = re.compile(rf"\bINSERT\s+INTO\s+{_IDENT}", re.IGNORECASE)
_JOIN = re.compile(r"\bJOIN\b", re.IGNORECASE)


class QueryStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERRORED = "errored"


@dataclass
class QueryOutcome:
    """Terminal result of a query."""

    status: QueryStatus
    columns: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)
    rows_affected: int = 0
    duration_ms: float = 0.0
    error: str | None = None


@dataclass
class PendingQuery:
    sql: str
    token: CancellationToken
    started_at: float = field(default_factory=time.monotonic)
    outcome: QueryOutcome | None = None

    @property
    def resolved(self) -> bool:
        return self.outcome is not None

    @property
    def status(self) -> QueryStatus:
        return self.outcome.status if self.outcome else QueryStatus.RUNNING


@dataclass
class ResultTab:
    id: int
    title: str
    query: PendingQuery
    cursor: GridCursor = field(default_factory=GridCursor)

    @property
    def sql(self) -> str:
        return self.query.sql

    @property
    def columns(self) -> list[str]:
        return self.query.outcome.columns if self.query.outcome else []

    @property
    def rows(self) -> list[list[str]]:
        return self.query.outcome.rows if self.query.outcome else []


def generate_title(sql: str) -> str:
    """Title for a result tab: leading comment, else main table, else the SQL."""
    lines = sql.strip().splitlines()
    if lines:
        match = _DASH_COMMENT.match(lines[0])
        if match:
            return match.group(1).strip()
    match = _BLOCK_COMMENT.match(sql)
    if match:
        return " ".join(match.group(1).split())

    match = _DELETE.search(sql)
    if match:
        return f"DELETE {match.group(1)}"
    match = _FROM.search(sql)
    if match:
        suffix = "(+)" if _JOIN.search(sql) else ""
        return match.group(1) + suffix
    match = _UPDATE.search(sql)
    if match:
        return f"UPDATE {match.group(1)}"
    match = _INSERT.search(sql)
    if match:
        return f"INSERT {match.group(1)}"

    cleaned = " ".join(sql.split())
    if len(cleaned) > TITLE_MAX_LENGTH:
        cleaned = cleaned[: TITLE_MAX_LENGTH - 3] + "..."
    return cleaned


class ResultTabs:
    """Newest-first list of result tabs with one active tab.

    At most one query is unresolved at any time: starting a new one
    supersedes (cancels) the previous pending query.
    """

    def __init__(self, max_tabs: int = MAX_RESULT_TABS) -> None:
        self.max_tabs = max(1, max_tabs)
        self.tabs: list[ResultTab] = []
        self.active_index = 0
        self._next_id = 1

    def __len__(self) -> int:
        return len(self.tabs)

    @property
    def active(self) -> ResultTab | None:
        if not self.tabs:
            return None
        return self.tabs[self.active_index]

    def pending(self) -> ResultTab | None:
        for tab in self.tabs:
            if not tab.query.resolved:
                return tab
        return None

    def start(self, sql: str, token: CancellationToken | None = None) -> tuple[ResultTab, CancellationToken | None]:
        """Open a tab for a new query.

        Returns the new tab and the token of a superseded pending query
        (its tab already marked cancelled), or None.
        """
        superseded = None
        previous = self.pending()
        if previous is not None:
            superseded = previous.query.token
            self.cancel(superseded)

        tab = ResultTab(
            id=self._next_id,
            title=generate_title(sql),
            query=PendingQuery(sql=sql, token=token or CancellationToken()),
        )
        self._next_id += 1
        self.tabs.insert(0, tab)
        self._evict()
        self.active_index = self.tabs.index(tab)
        return tab, superseded

    def _evict(self) -> None:
        while len(self.tabs) > self.max_tabs:
            for index in range(len(self.tabs) - 1, -1, -1):
                if self.tabs[index].query.resolved:
                    del self.tabs[index]
                    break
            else:
                del self.tabs[-1]

    def find_by_token(self, token: CancellationToken) -> ResultTab | None:
        for tab in self.tabs:
            if tab.query.token is token:
                return tab
        return None

    def resolve(self, token: CancellationToken, outcome: QueryOutcome) -> ResultTab | None:
        """Record ``outcome`` for the query owning ``token``.

        Returns None (result discarded) when the tab is gone or the query
        already reached a terminal state, e.g. it was cancelled.
        """
        tab = self.find_by_token(token)
        if tab is None or tab.query.resolved:
            return None
        tab.query.outcome = outcome
        tab.cursor = GridCursor()
        return tab

    def cancel(self, token: CancellationToken) -> ResultTab | None:
        """Mark the query owning ``token`` as cancelled.

        Only the tab state changes; interrupting the running statement is
        left to whoever executes the query.
        """
        tab = self.find_by_token(token)
        if tab is None or tab.query.resolved:
            return None
        duration = (time.monotonic() - tab.query.started_at) * 1000
        tab.query.outcome = QueryOutcome(status=QueryStatus.CANCELLED, duration_ms=duration)
        return tab

    def next_tab(self) -> ResultTab | None:
        if self.tabs:
            self.active_index = (self.active_index + 1) % len(self.tabs)
        return self.active

    def prev_tab(self) -> ResultTab | None:
        if self.tabs:
            self.active_index = (self.active_index - 1) % len(self.tabs)
        return self.active

    def close_active(self) -> ResultTab | None:
        """Remove the active tab (cancelling its query if still running)."""
        tab = self.active
        if tab is None:
            return None
        if not tab.query.resolved:
            self.cancel(tab.query.token)
        del self.tabs[self.active_index]
        if self.active_index >= len(self.tabs):
            self.active_index = max(0, len(self.tabs) - 1)
        return tab
