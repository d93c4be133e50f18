"""Message parser for the gateway plugin IPC protocol.

Decodes JSON frames into message objects.
Pure functions with no side effects.
"""
from __future__ import annotations

import json
import logging
from typing import Dict, Optional, Type

from ..errors import ProtocolError
from ..models import (
    Message,
    GatewayMessage,
    PluginMessage,
    RegisterPlugin,
    RegisterPluginReply,
    GATEWAY_MESSAGES,
    PLUGIN_MESSAGES,
    REGISTER_REQUESTS,
    REGISTER_REPLIES,
)

logger = logging.getLogger(__name__)


class MessageParser:
    """Parser for protocol frames.
    
    A frame is one complete UTF-8 JSON document:
    {"messageType": "<tag>", "data": {...}}
    
    Anything that is not valid UTF-8, not valid JSON, not an envelope,
    carries an unknown tag, or has a malformed payload parses to None.
    """
    
    @staticmethod
    def parse_frame(
        frame: bytes,
        message_types: Dict[str, Type[Message]],
    ) -> Optional[Message]:
        """Parse a single frame against one message family.
        
        Args:
            frame: Raw frame bytes
            message_types: Mapping of messageType tag to message class
            
        Returns:
            Message if the frame was parsed successfully, None otherwise
            
        Examples:
            >>> frame = b'{"messageType":"unloadPlugin","data":{"pluginId":"mqtt"}}'
            >>> MessageParser.parse_frame(frame, GATEWAY_MESSAGES)
            UnloadPlugin(plugin_id='mqtt')
        """
        try:
            return MessageParser.decode(frame, message_types)
        except ProtocolError as e:
            logger.debug(f"Dropping frame: {e}")
            return None
    
    @staticmethod
    def decode(
        frame: bytes,
        message_types: Dict[str, Type[Message]],
    ) -> Message:
        """Decode a single frame, raising on any failure.
        
        Raises:
            ProtocolError: If the frame is malformed or its tag is unknown
        """
        if not frame:
            raise ProtocolError("Empty frame")
        
        try:
            envelope = json.loads(frame.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ProtocolError(f"Invalid JSON frame: {e}") from e
        
        if not isinstance(envelope, dict):
            raise ProtocolError("Frame is not a JSON object")
        
        tag = envelope.get("messageType")
        message_cls = message_types.get(tag) if isinstance(tag, str) else None
        if message_cls is None:
            # Unknown tags are tolerated for forward compatibility
            raise ProtocolError(f"Unknown messageType: {tag!r}")
        
        return message_cls.from_data(envelope.get("data"))
    
    @staticmethod
    def parse_gateway_message(frame: bytes) -> Optional[GatewayMessage]:
        """Parse a command received over the persistent channel."""
        return MessageParser.parse_frame(frame, GATEWAY_MESSAGES)
    
    @staticmethod
    def parse_plugin_message(frame: bytes) -> Optional[PluginMessage]:
        """Parse an event as the gateway would receive it."""
        return MessageParser.parse_frame(frame, PLUGIN_MESSAGES)
    
    @staticmethod
    def parse_register_request(frame: bytes) -> Optional[RegisterPlugin]:
        return MessageParser.parse_frame(frame, REGISTER_REQUESTS)
    
    @staticmethod
    def parse_register_reply(frame: bytes) -> Optional[RegisterPluginReply]:
        return MessageParser.parse_frame(frame, REGISTER_REPLIES)
