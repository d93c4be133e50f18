"""Protocol layer for plugin <-> gateway frames."""

from .base import Protocol
from .json_protocol import JSONProtocol
from .parser import MessageParser
from .serializer import MessageSerializer

__all__ = [
    "Protocol",
    "JSONProtocol",
    "MessageParser",
    "MessageSerializer",
]
