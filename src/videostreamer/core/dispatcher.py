"""
=============================================================================
BROADCAST DISPATCHER
=============================================================================

The only thread that writes frames to viewers. It turns the ordered stream
of commands into multipart chunks and pushes each one to every registered
viewer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Dispatcher Loop                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   1. Block on the command queue                                     │
    │          │                                                          │
    │          ▼                                                          │
    │   2. STOP? ──── Yes ──► exit now (queued frames are discarded)      │
    │          │                                                          │
    │          No (DATA)                                                  │
    │          ▼                                                          │
    │   3. Frame it as a multipart chunk                                  │
    │          │                                                          │
    │          ▼                                                          │
    │   4. registry.broadcast(chunk)                                      │
    │          │   write to each viewer, evict the ones that fail         │
    │          │                                                          │
    │          ├── unexpected error ──► registry unusable, exit loop      │
    │          │                                                          │
    │          └── go back to step 1                                      │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Because there is exactly one consumer and the queue is FIFO, frames reach
viewers in the order send() was called.

=============================================================================
"""

import queue
import logging
import threading

from .commands import Command
from .registry import ConnectionRegistry
from ..http.response import BOUNDARY, multipart_chunk


logger = logging.getLogger(__name__)


class Dispatcher(threading.Thread):
    """
    Background thread that broadcasts frames to all viewers.

    Args:
        commands: Queue of Command objects; only this thread reads it.
        registry: The shared viewer registry.

    Attributes:
        closed: Set once the loop has exited, for whatever reason. Nothing
                reads the command queue after that, so producers must stop
                putting frames on it.
    """

    def __init__(
        self,
        commands: "queue.Queue[Command]",
        registry: ConnectionRegistry,
    ):
        # daemon=True: a forgotten server never keeps the process alive
        super().__init__(name="videostreamer-dispatcher", daemon=True)

        self.commands = commands
        self.registry = registry
        self.closed = threading.Event()

        # Metrics
        self.frames_broadcast = 0
        self.evictions = 0

    def run(self):
        logger.debug("Dispatcher started")

        try:
            self._dispatch_loop()
        finally:
            self.closed.set()

        logger.debug(
            f"Dispatcher stopped after {self.frames_broadcast} frames, "
            f"{self.evictions} evictions"
        )

    def _dispatch_loop(self):
        while True:
            command = self.commands.get()

            if command.is_stop:
                return

            chunk = multipart_chunk(command.frame, BOUNDARY)

            try:
                evicted = self.registry.broadcast(chunk)
            except Exception as e:
                # A registry that raises cannot be trusted for the rest of
                # the run; nothing is broadcast until the server restarts.
                logger.exception(f"Registry unusable, dispatcher stopping: {e}")
                return

            self.frames_broadcast += 1
            if evicted:
                self.evictions += evicted
                logger.info(f"Evicted {evicted} viewer(s) after failed write")
