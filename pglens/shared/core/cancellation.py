"""Cancellation tokens for long-running database work."""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


class CancellationToken:
    """Handle the controller keeps for one in-flight query.

    Results are matched to tokens by identity. The executor registers a
    cancel callback (for example a server-side cancel on the connection)
    once the operation has started; cancelling before that point runs the
    callback as soon as it is registered.
    """

    def __init__(self) -> None:
        self.id = next(_ids)
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callback: Callable[[], None] | None = None

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"<CancellationToken {self.id} {state}>"

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            callback = self._callback
        if callback is not None:
            self._run(callback)

    def on_cancel(self, callback: Callable[[], None] | None) -> None:
        """Register (or with None, clear) the callback run on cancel."""
        with self._lock:
            self._callback = callback
            run_now = callback is not None and self._cancelled.is_set()
        if run_now and callback is not None:
            self._run(callback)

    def _run(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.debug("Cancel callback for token %s failed", self.id, exc_info=True)
