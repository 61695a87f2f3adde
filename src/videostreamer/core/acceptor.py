"""
=============================================================================
CONNECTION ACCEPTOR
=============================================================================

Turns the listening socket into registered viewers.

=============================================================================
WHY POLL INSTEAD OF BLOCKING IN accept()?
=============================================================================

The listening socket is non-blocking. When nobody is waiting to connect,
accept() raises BlockingIOError immediately and the acceptor sleeps for
poll_interval (30 ms) before trying again:

    while running:
        try:
            accept()          # returns at once
        except BlockingIOError:
            sleep(0.03)       # nothing pending, check the flag again

This keeps the loop responsive to stop() (it notices the cleared running
flag within one interval) without needing a wake-up socket or closing the
listener from another thread.

=============================================================================
ACCEPTOR FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   while running flag is set:                                        │
    │       │                                                             │
    │       ├──► accept()                                                 │
    │       │       ├── would block ──► sleep(poll_interval), loop        │
    │       │       └── other error ──► fatal, leave the loop             │
    │       │                                                             │
    │       ├──► read ≤ 1024 bytes, parse request line                    │
    │       │                                                             │
    │       ├──► GET <endpoint>?                                          │
    │       │       ├── no  ──► "404 Not Found", close                    │
    │       │       └── yes ──► stream headers, registry.add()            │
    │       │                                                             │
    │   on exit:                                                          │
    │       push STOP, join dispatcher, close listener, drop viewers      │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

A failure while talking to one new client (reset, timeout, garbage) only
costs that client. Only a failing listener ends the run.

=============================================================================
"""

import queue
import socket
import time
import logging
import threading
from typing import Optional

from .commands import Command
from .connection import Connection
from .dispatcher import Dispatcher
from .registry import ConnectionRegistry
from ..config import ServerConfiguration
from ..http.request import HTTPRequest, RequestParser, HTTPParseError
from ..http.response import stream_response, not_found


logger = logging.getLogger(__name__)


class Acceptor(threading.Thread):
    """
    Background thread that accepts, validates and registers viewers.

    It owns the dispatcher's shutdown: whatever makes the accept loop end
    (stop() or a fatal listener error), the acceptor sends STOP and waits
    for the dispatcher before it exits itself.

    Args:
        listener: Bound, listening, non-blocking socket.
        registry: Where accepted viewers are added.
        commands: The dispatcher's command queue.
        dispatcher: The dispatcher thread to stop on exit.
        running: Shared running flag, cleared by Server.stop().
        config: Server configuration.
    """

    def __init__(
        self,
        listener: socket.socket,
        registry: ConnectionRegistry,
        commands: "queue.Queue[Command]",
        dispatcher: Dispatcher,
        running: threading.Event,
        config: ServerConfiguration,
    ):
        super().__init__(name="videostreamer-acceptor", daemon=True)

        self.listener = listener
        self.registry = registry
        self.commands = commands
        self.dispatcher = dispatcher
        self.running = running
        self.config = config

        self._parser = RequestParser()
        self._endpoint = config.effective_endpoint

        # Metrics
        self.accepted = 0
        self.rejected = 0

    def run(self):
        logger.debug(f"Acceptor started, serving {self._endpoint!r}")

        try:
            self._accept_loop()
        finally:
            # Tell the dispatcher to finish and wait for it, so no frame is
            # written to a viewer after the registry is cleared below.
            self.commands.put(Command.stop())
            self.dispatcher.join()
            self._cleanup()

    def _accept_loop(self):
        while self.running.is_set():
            try:
                client_socket, client_address = self.listener.accept()
            except BlockingIOError:
                # Nothing pending. This is the normal idle case.
                time.sleep(self.config.poll_interval)
                continue
            except ConnectionAbortedError as e:
                # Client gave up between SYN and accept(); not our problem
                logger.debug(f"Connection aborted before accept: {e}")
                continue
            except OSError as e:
                logger.error(f"Accept error, acceptor stopping: {e}")
                break

            self._handle_client(client_socket, client_address)

    def _handle_client(self, client_socket: socket.socket, client_address: tuple):
        """
        Run the handshake for one new client.

        Any socket error here is confined to this client: it is logged,
        the socket is released and the accept loop carries on.
        """
        try:
            conn = Connection(
                socket=client_socket,
                address=tuple(client_address[:2]),
                read_buffer_size=self.config.read_buffer_size,
                read_timeout=self.config.read_timeout,
                write_timeout=self.config.write_timeout,
            )
        except OSError as e:
            logger.debug(f"Could not set up client {client_address}: {e}")
            client_socket.close()
            return

        try:
            request = self._handshake(conn)
            if request is not None:
                self.registry.add(conn)
                self.accepted += 1
                logger.info(
                    f"[{conn.id}] Viewer connected from "
                    f"{conn.address[0]}:{conn.address[1]} "
                    f"({request.user_agent or 'no user agent'})"
                )
            else:
                self.rejected += 1
                conn.close()
        except OSError as e:
            logger.debug(f"[{conn.id}] Handshake failed: {e}")
            conn.close()

    def _handshake(self, conn: Connection) -> Optional[HTTPRequest]:
        """
        Validate the request and answer it.

        Returns:
            The viewer's request if it was sent the stream headers and
            should be registered, None if it was answered with 404.

        Raises:
            OSError: If reading or writing the socket fails.
        """
        raw = conn.read_request()

        try:
            request = self._parser.parse(raw, conn.address)
        except HTTPParseError as e:
            logger.debug(f"[{conn.id}] Rejected malformed request ({e.status_code}): {e}")
            conn.respond(not_found().to_bytes())
            return None

        if request.method != "GET" or request.target != self._endpoint:
            logger.debug(
                f"[{conn.id}] Rejected {request.method} {request.target} "
                f"(serving GET {self._endpoint})"
            )
            conn.respond(not_found().to_bytes())
            return None

        conn.respond(stream_response().to_bytes())

        # Frames should leave as soon as they are written
        conn.socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        conn.start_streaming()
        return request

    def _cleanup(self):
        """Release the listener and every viewer still registered."""
        try:
            self.listener.close()
        except OSError as e:
            logger.debug(f"Error closing listener: {e}")

        dropped = self.registry.clear()
        logger.debug(
            f"Acceptor stopped: {self.accepted} accepted, {self.rejected} "
            f"rejected, {dropped} viewer(s) dropped"
        )
