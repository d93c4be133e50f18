"""JSON envelope protocol implementation.

Wraps the MessageParser and MessageSerializer.
"""
from __future__ import annotations

from typing import Optional

from ..models import GatewayMessage, Message, RegisterPluginReply
from .base import Protocol
from .parser import MessageParser
from .serializer import MessageSerializer


class JSONProtocol(Protocol):
    """JSON protocol spoken by the gateway's addon manager.
    
    Uses one JSON document per frame, tagged by ``messageType``.
    """
    
    def __init__(self):
        self._parser = MessageParser()
        self._serializer = MessageSerializer()
    
    def parse_frame(self, frame: bytes) -> Optional[GatewayMessage]:
        return self._parser.parse_gateway_message(frame)
    
    def parse_reply(self, frame: bytes) -> Optional[RegisterPluginReply]:
        return self._parser.parse_register_reply(frame)
    
    def serialize_message(self, message: Message) -> bytes:
        return self._serializer.serialize_message(message)
    
    @property
    def name(self) -> str:
        return "json"
