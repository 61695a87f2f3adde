"""
Connection registry: the set of viewers currently receiving frames.

Shared by the acceptor thread (which adds viewers) and the dispatcher
thread (which writes to them and evicts the ones that fail). Every access
goes through one lock.

    Acceptor ──add()──────┐
                          ▼
                 ┌──────────────────┐
                 │  _connections    │  guarded by _lock
                 └──────────────────┘
                          ▲
    Dispatcher ─broadcast()┘  write to all, then evict failures
"""

import logging
import threading
from typing import List

from .connection import Connection


logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Lock-guarded collection of live viewer connections.

    Order is not meaningful: eviction swaps the last entry into the
    vacated slot.
    """

    def __init__(self):
        self._connections: List[Connection] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def add(self, conn: Connection) -> None:
        """Register a viewer that completed its handshake."""
        with self._lock:
            self._connections.append(conn)
            count = len(self._connections)
        logger.debug(f"[{conn.id}] Registered viewer {conn.client_ip} ({count} total)")

    def broadcast(self, chunk: bytes) -> int:
        """
        Write one chunk to every viewer, evicting those that fail.

        The lock is held for the whole pass, so a viewer accepted meanwhile
        waits for the next frame. Failures are collected first and removed
        after every viewer has been tried; one bad viewer never stops
        delivery to the rest.

        Args:
            chunk: A complete multipart chunk.

        Returns:
            Number of viewers evicted during this pass.
        """
        with self._lock:
            failed = [
                index
                for index, conn in enumerate(self._connections)
                if not conn.send(chunk)
            ]

            # Highest index first so earlier indices stay valid
            for index in reversed(failed):
                conn = self._connections[index]
                self._connections[index] = self._connections[-1]
                self._connections.pop()
                conn.close()
                logger.debug(f"[{conn.id}] Evicted viewer {conn.client_ip}")

        return len(failed)

    def clear(self) -> int:
        """
        Drop every viewer (end of a run).

        Returns:
            Number of viewers dropped.
        """
        with self._lock:
            connections, self._connections = self._connections, []

        for conn in connections:
            conn.close()

        return len(connections)
