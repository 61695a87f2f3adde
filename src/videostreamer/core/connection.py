"""
=============================================================================
VIEWER CONNECTION
=============================================================================

Wraps one accepted client socket for its whole life:

    ┌──────────┐  read_request()  ┌───────────┐ start_streaming() ┌───────────┐
    │   NEW    │ ───────────────► │ HANDSHAKE │ ────────────────► │ STREAMING │
    └──────────┘                  └─────┬─────┘                   └─────┬─────┘
                                        │ rejected (404)                │ send() failed
                                        ▼                               ▼
                                  ┌──────────────────────────────────────────┐
                                  │                 CLOSED                   │
                                  └──────────────────────────────────────────┘

A viewer is read from exactly once (its request) and afterwards only
written to. Reads and writes have separate timeouts: a new client that
never speaks must not stall the accept loop for long, and a viewer that
stops reading must not stall the broadcast to everyone else.

=============================================================================
"""

import socket
import time
import uuid
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states (for logging and debugging)."""
    NEW = "new"                # Just accepted
    HANDSHAKE = "handshake"    # Reading the request / writing the response head
    STREAMING = "streaming"    # Registered, receiving frames
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    A viewer connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used as a log prefix.
        state: Current lifecycle state.
        created_at: Timestamp when the connection was accepted.
        frames_sent: Number of frames successfully written.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    frames_sent: int = 0

    # Configuration (passed from ServerConfiguration)
    read_buffer_size: int = 1024
    read_timeout: Optional[float] = 5.0
    write_timeout: Optional[float] = 5.0

    def __post_init__(self):
        # Accepted sockets must block (with a timeout) even though the
        # listener is non-blocking.
        self.socket.setblocking(True)
        self.socket.settimeout(self.read_timeout)

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0]

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # HANDSHAKE
    # =========================================================================

    def read_request(self) -> bytes:
        """
        Read the viewer's request, at most read_buffer_size bytes.

        Reads until the blank line that ends the headers, the buffer limit,
        or end of stream, whichever comes first. Whatever arrived is
        returned; the parser decides whether it is usable.

        Returns:
            The bytes received (b"" if the client closed without sending).

        Raises:
            OSError: On timeout or connection reset.
        """
        self.state = ConnectionState.HANDSHAKE
        buffer = b""

        while b"\r\n\r\n" not in buffer and len(buffer) < self.read_buffer_size:
            chunk = self.socket.recv(self.read_buffer_size - len(buffer))
            if not chunk:
                break  # Client closed its side
            buffer += chunk

        return buffer

    def respond(self, data: bytes) -> None:
        """
        Write a handshake response (the 200 head or the 404).

        Raises:
            OSError: If the write fails.
        """
        self.socket.sendall(data)

    def start_streaming(self) -> None:
        """Switch to the streaming phase: from now on only writes happen."""
        self.socket.settimeout(self.write_timeout)
        self.state = ConnectionState.STREAMING

    # =========================================================================
    # STREAMING
    # =========================================================================

    def send(self, data: bytes) -> bool:
        """
        Write one multipart chunk.

        sendall() either delivers every byte or raises; a timeout counts as
        a failure, which gets the viewer evicted.

        Returns:
            True if the whole chunk was written, False if the viewer is gone.
        """
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.debug(f"[{self.id}] Send failed: {e}")
            return False

        self.frames_sent += 1
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Release the socket.

        No goodbye is sent to the viewer: the stream simply ends. Safe to
        call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Peer already gone

        self.socket.close()
        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.frames_sent} frames, "
            f"{self.age:.1f}s"
        )
