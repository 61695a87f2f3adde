"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Immutable parameters for one streaming server.

=============================================================================
WHY FROZEN?
=============================================================================

The configuration is read from two background threads (the acceptor reads
the endpoint and timeouts, the lifecycle controller reads address and
port). Making the dataclass frozen means nobody can change it while those
threads are running, so no lock is needed to read it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION GROUPS                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   NETWORK       port, address, backlog                              │
    │   HTTP          endpoint, read_buffer_size                          │
    │   TIMING        poll_interval, read_timeout, write_timeout          │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
USAGE
=============================================================================

    # Only the port is required
    config = ServerConfiguration(7879)

    # Serve on all interfaces, only answer GET /img
    config = ServerConfiguration(7879, address="0.0.0.0", endpoint="/img")

    # Ephemeral port (tests)
    config = ServerConfiguration(0)

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional


DEFAULT_ADDRESS = "127.0.0.1"
DEFAULT_ENDPOINT = "/"


@dataclass(frozen=True)
class ServerConfiguration:
    """
    Configuration of a streaming server.

    After creation it never changes. Fields beyond port/address/endpoint
    are tuning knobs with defaults matching the reference behaviour.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    port: int
    """
    TCP port to listen on. 0 lets the OS pick a free port; the bound
    port is then available from Server.address.
    """

    address: str = DEFAULT_ADDRESS
    """
    Address to bind to.
    - "127.0.0.1" - Localhost only (default)
    - "0.0.0.0" - All network interfaces
    """

    endpoint: Optional[str] = None
    """
    Request target that viewers must ask for, e.g. "/img" in
    http://127.0.0.1:7879/img. None means "/". Requests for any other
    target are answered with 404.
    """

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    read_buffer_size: int = 1024
    """
    Upper bound on how many bytes of the initial request are read.
    Anything past this is ignored; the request line is all that matters.
    """

    # ─────────────────────────────────────────────────────────────────────
    # TIMING
    # ─────────────────────────────────────────────────────────────────────

    poll_interval: float = 0.03
    """Seconds the acceptor sleeps when no connection is pending."""

    read_timeout: Optional[float] = 5.0
    """
    Seconds to wait for a new client to send its request.
    None = wait forever (a silent client then stalls the accept loop).
    """

    write_timeout: Optional[float] = 5.0
    """
    Seconds a single frame write to one viewer may block before that
    viewer is considered dead and evicted.
    None = blocking writes with no bound.
    """

    @property
    def effective_endpoint(self) -> str:
        """The endpoint with the "/" default applied."""
        return self.endpoint if self.endpoint is not None else DEFAULT_ENDPOINT

    @property
    def bind_address(self) -> tuple[str, int]:
        """(address, port) tuple as passed to socket.bind()."""
        return (self.address, self.port)

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by Server.__init__ so that a bad value fails at construction
        time rather than inside a background thread.

        Raises:
            ValueError: If any value is out of range.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not self.address:
            raise ValueError("address must not be empty")

        if self.endpoint is not None and not self.endpoint.startswith("/"):
            raise ValueError(f"endpoint must start with '/': {self.endpoint!r}")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.read_buffer_size < 16:
            raise ValueError("read_buffer_size must be >= 16")

        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")

        if self.read_timeout is not None and self.read_timeout <= 0:
            raise ValueError("read_timeout must be > 0")

        if self.write_timeout is not None and self.write_timeout <= 0:
            raise ValueError("write_timeout must be > 0")
