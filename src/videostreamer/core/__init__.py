"""
Core components of the streaming server.

    Connection          - One accepted viewer socket
    ConnectionRegistry  - Lock-guarded set of live viewers
    Command             - STOP / DATA instruction for the dispatcher
    Dispatcher          - Thread that broadcasts frames to all viewers
    Acceptor            - Thread that accepts and validates new viewers

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   Server.send(frame)                                                │
    │        │                                                            │
    │        ▼                                                            │
    │   queue.Queue[Command] ──► Dispatcher ──► ConnectionRegistry        │
    │                                               ▲     │ broadcast     │
    │   listening socket ──► Acceptor ──add()───────┘     ▼               │
    │                                              viewer sockets         │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘
"""

from .connection import Connection, ConnectionState
from .registry import ConnectionRegistry
from .commands import Command, CommandKind
from .dispatcher import Dispatcher
from .acceptor import Acceptor

__all__ = [
    "Connection",
    "ConnectionState",
    "ConnectionRegistry",
    "Command",
    "CommandKind",
    "Dispatcher",
    "Acceptor",
]
