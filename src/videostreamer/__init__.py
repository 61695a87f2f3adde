"""
=============================================================================
VIDEOSTREAMER - MJPEG-over-HTTP broadcast server
=============================================================================

Streams a continuously updated JPEG image to any number of browsers or
players using multipart/x-mixed-replace, on raw sockets and two background
threads. No framework, no dependencies.

=============================================================================
QUICK START
=============================================================================

    from videostreamer import Server, ServerConfiguration

    config = ServerConfiguration(7879, endpoint="/img")

    with Server(config) as server:
        while True:
            server.send(capture_jpeg())     # your producer
            time.sleep(1 / 30)

    # Then open http://127.0.0.1:7879/img in a browser.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    videostreamer/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # Demo driver (python -m videostreamer)
    ├── server.py            # Server: start / stop / send / is_running
    ├── config.py            # ServerConfiguration frozen dataclass
    ├── errors.py            # BindError, CommunicationError
    ├── core/
    │   ├── connection.py    # One viewer socket
    │   ├── registry.py      # Lock-guarded set of viewers
    │   ├── commands.py      # STOP / DATA commands
    │   ├── dispatcher.py    # Broadcast thread
    │   └── acceptor.py      # Accept + handshake thread
    └── http/
        ├── request.py       # Request line / header parsing
        ├── response.py      # Stream headers, 404, multipart chunks
        └── status_codes.py  # HTTP status enum

=============================================================================
"""

__version__ = "1.0.0"

from .server import Server
from .config import ServerConfiguration
from .errors import StreamerError, BindError, CommunicationError

__all__ = [
    "Server",
    "ServerConfiguration",
    "StreamerError",
    "BindError",
    "CommunicationError",
    "__version__",
]
