"""
Commands sent from the lifecycle controller to the dispatcher.

A command is either STOP or DATA carrying one encoded frame:

    Server.send(frame) ──► Command.data(frame) ─┐
                                                ├──► queue.Queue ──► Dispatcher
    Server.stop()      ──► Command.stop() ──────┘    (FIFO, one consumer)
"""

from dataclasses import dataclass
from enum import Enum


class CommandKind(Enum):
    STOP = "stop"
    DATA = "data"


@dataclass(frozen=True)
class Command:
    """
    One instruction for the dispatcher.

    Attributes:
        kind: STOP or DATA.
        frame: Encoded frame bytes (DATA only, empty for STOP).
    """

    kind: CommandKind
    frame: bytes = b""

    @classmethod
    def stop(cls) -> "Command":
        return cls(CommandKind.STOP)

    @classmethod
    def data(cls, frame: bytes) -> "Command":
        # Copy so the producer may reuse its buffer right after send()
        return cls(CommandKind.DATA, bytes(frame))

    @property
    def is_stop(self) -> bool:
        return self.kind is CommandKind.STOP
