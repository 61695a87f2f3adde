"""
Exceptions raised by the streaming server.

Only whole-server failures surface to the caller. Problems with a single
viewer (a reset socket, a slow reader) are handled inside the server by
evicting that viewer and never show up here.

    StreamerError (OSError)
    ├── BindError            start(): listening socket could not be bound
    └── CommunicationError   stop()/send(): command queue or thread missing
"""


class StreamerError(OSError):
    """
    Base class for all server-level failures.

    Derives from OSError so callers that already guard network code with
    ``except OSError`` keep working.
    """
    pass


class BindError(StreamerError):
    """
    Raised by Server.start() when the listening socket cannot be set up.

    Carries the errno of the underlying OSError (e.g. EADDRINUSE) and is
    chained to it with ``raise ... from``.
    """

    def __init__(self, errno: int, message: str, address: tuple = ("", 0)):
        super().__init__(errno, message)
        self.address = address


class CommunicationError(StreamerError):
    """
    Raised when the channel to the background threads is broken.

    Under correct start/stop sequencing this never happens; it signals that
    the command queue or a thread handle disappeared while the server still
    claimed to be running.
    """

    def __init__(self, message: str = "Unable to use communication channel."):
        super().__init__(message)
