"""Transport layer for plugin <-> gateway communication."""

from .base import Channel, RequestChannel
from .nng import NngPairChannel, NngRequestChannel

__all__ = ["Channel", "RequestChannel", "NngPairChannel", "NngRequestChannel"]
