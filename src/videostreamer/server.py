"""
=============================================================================
STREAMING SERVER
=============================================================================

The public face of the library: start it, feed it frames, stop it.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   caller thread               background threads                    │
    │   ─────────────               ──────────────────                    │
    │                                                                     │
    │   Server.start() ──spawns──►  Acceptor     Dispatcher               │
    │                                  │             ▲                    │
    │   Server.send(frame) ──DATA──────┼─────────────┤ command queue      │
    │                                  │             │                    │
    │   Server.stop() ──clear flag─────┤   ──STOP────┘                    │
    │                  ──join──────────┘                                  │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

The acceptor and dispatcher run for exactly one start()/stop() pair.
Each start() builds a fresh listener, command queue and registry; stop()
waits for both threads and throws them away.

=============================================================================
SHUTDOWN SIGNALS
=============================================================================

Two signals end a run:

1. The running flag (threading.Event). The acceptor checks it between
   accept() polls.
2. The STOP command. The dispatcher only looks at its queue, so this is
   what ends it, deterministically and ahead of any frames still queued.

is_running() reads the flag, so right after another thread calls stop()
it may still report True for a moment. Callers must tolerate that.

=============================================================================
USAGE
=============================================================================

    config = ServerConfiguration(7879, endpoint="/img")

    with Server(config) as server:          # start() ... stop()
        while producing:
            server.send(next_jpeg())

    # Or manage the lifecycle explicitly
    server = Server(config)
    server.start()
    server.send(jpeg_bytes)
    server.stop()

=============================================================================
"""

import queue
import socket
import logging
import threading
from typing import Optional

from .config import ServerConfiguration
from .core import Acceptor, Command, ConnectionRegistry, Dispatcher
from .errors import BindError, CommunicationError


logger = logging.getLogger(__name__)


class Server:
    """
    MJPEG streaming server.

    Frames passed to send() are broadcast to every viewer connected to
    ``http://<address>:<port><endpoint>``. The server does not inspect
    the bytes; they must already be encoded JPEG images.

    Attributes:
        configuration: The server configuration. Never changes after
                       construction.
    """

    def __init__(self, configuration: ServerConfiguration):
        """
        Create a stopped server. No sockets or threads are created here.

        Raises:
            ValueError: If the configuration is invalid.
        """
        configuration.validate()
        self.configuration = configuration

        # Read by both background threads, written only here
        self._running = threading.Event()

        # Serializes start() and stop() against each other
        self._lifecycle_lock = threading.Lock()

        # Per-run handles (None while stopped)
        self._commands: Optional["queue.Queue[Command]"] = None
        self._dispatcher: Optional[Dispatcher] = None
        self._acceptor: Optional[Acceptor] = None
        self._registry: Optional[ConnectionRegistry] = None
        self._address: Optional[tuple[str, int]] = None

    # =========================================================================
    # STATE
    # =========================================================================

    def is_running(self) -> bool:
        """
        Check whether the server is running.

        A snapshot only: a concurrent start() or stop() may change the
        answer right after it is returned.
        """
        return self._running.is_set()

    @property
    def address(self) -> Optional[tuple[str, int]]:
        """
        The (host, port) actually bound, or None while stopped.

        Resolves port 0 to the port the OS picked.
        """
        return self._address

    @property
    def connection_count(self) -> int:
        """Number of viewers currently registered (0 while stopped)."""
        registry = self._registry
        return len(registry) if registry is not None else 0

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> bool:
        """
        Start listening and broadcasting.

        Returns:
            True if the server was started, False if it was already running
            (nothing is rebound in that case).

        Raises:
            BindError: If the listening socket cannot be created or bound.
                       The server stays stopped.
        """
        with self._lifecycle_lock:
            if self._running.is_set():
                return False

            listener = self._create_listener()
            self._address = tuple(listener.getsockname()[:2])

            commands: "queue.Queue[Command]" = queue.Queue()
            registry = ConnectionRegistry()
            dispatcher = Dispatcher(commands, registry)
            acceptor = Acceptor(
                listener=listener,
                registry=registry,
                commands=commands,
                dispatcher=dispatcher,
                running=self._running,
                config=self.configuration,
            )

            self._commands = commands
            self._registry = registry
            self._dispatcher = dispatcher
            self._acceptor = acceptor

            # The flag must be up before the acceptor checks it
            self._running.set()
            dispatcher.start()
            acceptor.start()

            host, port = self._address
            logger.info(
                f"Streaming on http://{host}:{port}"
                f"{self.configuration.effective_endpoint}"
            )
            return True

    def stop(self) -> bool:
        """
        Stop the server and wait for both background threads to exit.

        Viewers are disconnected without any closing boundary. Frames still
        queued are discarded.

        Returns:
            True if the server was stopped, False if it was not running.

        Raises:
            CommunicationError: If the command queue or acceptor handle is
                                missing (inconsistent internal state).
        """
        with self._lifecycle_lock:
            if not self._running.is_set():
                return False

            self._running.clear()

            commands, acceptor = self._commands, self._acceptor
            self._commands = None
            self._dispatcher = None
            self._acceptor = None
            self._address = None

            if commands is None or acceptor is None:
                raise CommunicationError()

            commands.put(Command.stop())
            acceptor.join()

            self._registry = None
            logger.info("Server stopped")
            return True

    def send(self, frame: bytes) -> bool:
        """
        Queue a frame for broadcast to every viewer.

        Returns immediately; delivery happens on the dispatcher thread.
        Frames are broadcast in the order send() is called. There is no
        backpressure: if frames arrive faster than they can be written
        they simply queue up.

        Args:
            frame: Encoded JPEG bytes (bytes, bytearray or memoryview).
                   Copied, so the caller may reuse its buffer.

        Returns:
            True if the frame was queued, False if the server is not running.

        Raises:
            CommunicationError: If the server claims to run but its
                                dispatcher has exited (fatal accept or
                                registry error), so nothing would ever
                                read the frame. Call stop() to clean up.
        """
        # Handles first, flag second: stop() clears the flag before it drops
        # the handles, so this order never sees a running server without them.
        commands, dispatcher = self._commands, self._dispatcher
        if not self._running.is_set():
            return False

        if commands is None or dispatcher is None or dispatcher.closed.is_set():
            # A regular stop() racing with this call also closes the
            # channel; only report the failure if the flag is still up.
            if not self._running.is_set():
                return False
            raise CommunicationError("Unable to send data by channel.")

        commands.put(Command.data(frame))
        return True

    # =========================================================================
    # SOCKET SETUP
    # =========================================================================

    def _create_listener(self) -> socket.socket:
        """
        Create, bind and listen on the server socket.

        SO_REUSEADDR lets a restarted server rebind while old connections
        sit in TIME_WAIT. SO_REUSEPORT is deliberately not set: a second
        server on the same port must fail to bind.

        Raises:
            BindError: On any failure (address lookup, bind, listen).
        """
        host, port = self.configuration.bind_address
        sock = None

        try:
            family, _, _, _, sockaddr = socket.getaddrinfo(
                host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
            )[0]

            sock = socket.socket(family, socket.SOCK_STREAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
            sock.listen(self.configuration.backlog)
            sock.setblocking(False)
        except OSError as e:
            if sock is not None:
                sock.close()
            logger.error(f"Failed to bind to {host}:{port}: {e}")
            raise BindError(
                e.errno,
                f"Failed to bind to {host}:{port}: {e.strerror or e}",
                address=(host, port),
            ) from e

        return sock

    # =========================================================================
    # SCOPED USE
    # =========================================================================

    def __enter__(self) -> "Server":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    def __del__(self):
        # Backstop for a server that was dropped while still running.
        # Prefer the context manager; finalizer timing is up to the GC.
        running = getattr(self, "_running", None)
        if running is not None and running.is_set():
            self.stop()
