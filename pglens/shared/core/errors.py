"""Error taxonomy shared across pglens domains."""

from __future__ import annotations


class PglensError(Exception):
    """Base class for all pglens errors."""


class ConnectionFailedError(PglensError):
    """Raised when a server is unreachable, rejects auth, or times out."""

    def __init__(self, host: str, port: int, reason: str):
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"Could not connect to {host}:{port}\n\nError: {reason}")


class QueryError(PglensError):
    """Server-side query failure. The message is the server's, verbatim."""


class DiscoveryTimeout(PglensError):
    """Discovery reached its deadline without any server answering."""


class PgPassError(PglensError):
    """The password file is unreadable or has insecure permissions."""


class TreeLoadError(PglensError):
    """The top-level catalog listing failed."""


class FilterValidationError(PglensError, ValueError):
    """A filter is structurally invalid and must not be compiled."""


class QueryCancelledError(PglensError):
    """The operator cancelled a running query."""


class FavoriteError(PglensError, ValueError):
    """A favorites mutation was rejected."""
