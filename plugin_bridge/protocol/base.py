"""Abstract base class for gateway plugin protocols.

Defines the interface for parsing incoming frames and serializing messages.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..models import GatewayMessage, Message, RegisterPluginReply


class Protocol(ABC):
    """Abstract wire protocol between plugin and gateway.
    
    Protocols handle:
    - Parsing incoming frames into messages
    - Serializing messages into wire format
    """
    
    @abstractmethod
    def parse_frame(self, frame: bytes) -> Optional[GatewayMessage]:
        """Parse a frame received over the persistent channel.
        
        Args:
            frame: One complete frame from the gateway
            
        Returns:
            GatewayMessage if the frame is a known command, None otherwise
        """
        pass
    
    @abstractmethod
    def parse_reply(self, frame: bytes) -> Optional[RegisterPluginReply]:
        """Parse the registration reply received during the handshake."""
        pass
    
    @abstractmethod
    def serialize_message(self, message: Message) -> bytes:
        """Serialize a message into wire format.
        
        Args:
            message: Message object to serialize
            
        Returns:
            Bytes ready to write to a channel
        """
        pass
    
    @property
    @abstractmethod
    def name(self) -> str:
        """Protocol identifier (e.g., 'json')."""
        pass
