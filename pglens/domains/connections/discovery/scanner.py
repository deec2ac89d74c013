"""Discover PostgreSQL servers listening on well-known local ports."""

from __future__ import annotations

import logging
import os
import socket
import time
from collections.abc import Iterable
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import replace

from pglens.domains.connections.domain.config import DEFAULT_PORT, DiscoveredInstance, DiscoverySource
from pglens.shared.core.errors import DiscoveryTimeout

logger = logging.getLogger(__name__)

DEFAULT_PORTS = (5432, 5433, 5434, 5435)
PORT_TIMEOUT = 2.0


def probe(host: str, port: int, timeout: float = PORT_TIMEOUT) -> DiscoveredInstance | None:
    """Return an instance if a TCP connection to host:port succeeds."""
    started = time.monotonic()
    try:
        with socket.create_connection((host, port), timeout=timeout):
            pass
    except (TimeoutError, OSError):
        return None
    return DiscoveredInstance(host=host, port=port, response_ms=(time.monotonic() - started) * 1000)


def environment_targets() -> list[tuple[str, int]]:
    """Host/port named by PGHOST/PGPORT, if any (sockets paths are skipped)."""
    host = os.environ.get("PGHOST", "").strip()
    if not host or host.startswith("/"):
        return []
    try:
        port = int(os.environ.get("PGPORT", DEFAULT_PORT))
    except ValueError:
        port = DEFAULT_PORT
    return [(host, port)]


class PortScanner:
    """Probes candidate host/port pairs concurrently within one deadline."""

    def __init__(self, ports: Iterable[int] = DEFAULT_PORTS, host: str = "localhost") -> None:
        self.ports = list(ports) or list(DEFAULT_PORTS)
        self.host = host

    def targets(self) -> list[tuple[str, int]]:
        seen: set[tuple[str, int]] = set()
        result = []
        for target in [(self.host, port) for port in self.ports] + environment_targets():
            if target not in seen:
                seen.add(target)
                result.append(target)
        return result

    def scan(self, timeout: float = 5.0) -> list[DiscoveredInstance]:
        """Instances that answered before the deadline, ordered by port.

        Probes still pending at the deadline are abandoned. Raises
        DiscoveryTimeout if the deadline passes before anything answered.
        """
        deadline = time.monotonic() + timeout
        scanned = {(self.host, port) for port in self.ports}
        timed_out = False
        per_probe = min(PORT_TIMEOUT, timeout)
        found: list[DiscoveredInstance] = []
        pool = ThreadPoolExecutor(max_workers=8, thread_name_prefix="pglens-discovery")
        try:
            pending = {pool.submit(probe, host, port, per_probe) for host, port in self.targets()}
            while pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.info("Discovery deadline reached with %d probe(s) pending", len(pending))
                    timed_out = True
                    break
                done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
                for future in done:
                    instance = future.result()
                    if instance is None:
                        continue
                    if instance.key not in scanned:
                        instance = replace(instance, source=DiscoverySource.ENVIRONMENT)
                    found.append(instance)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        if timed_out and not found:
            raise DiscoveryTimeout(f"No server answered within {timeout:g}s")
        found.sort(key=lambda i: (i.host, i.port))
        logger.debug("Discovered %d instance(s)", len(found))
        return found


def merge_instances(*sources: Iterable[DiscoveredInstance]) -> list[DiscoveredInstance]:
    """One instance per host:port, keeping the highest-priority source.

    The result is ordered by source (port scan, environment, .pgpass) and
    then by host and port.
    """
    best: dict[tuple[str, int], DiscoveredInstance] = {}
    for instances in sources:
        for instance in instances:
            existing = best.get(instance.key)
            if existing is None or instance.source < existing.source:
                best[instance.key] = instance
    return sorted(best.values(), key=lambda i: (i.source, i.host, i.port))
