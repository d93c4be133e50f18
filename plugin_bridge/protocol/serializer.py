"""Message serializer for the gateway plugin IPC protocol.

Converts message objects to JSON frames.
Pure functions with no side effects.
"""
from __future__ import annotations

import json
from typing import Any, Dict

from ..models import Message


class MessageSerializer:
    """Serializer for protocol frames.
    
    Converts message objects into envelopes the gateway understands.
    """
    
    @staticmethod
    def to_envelope(message: Message) -> Dict[str, Any]:
        """Build the ``{"messageType", "data"}`` envelope for a message.
        
        Raises:
            ValueError: If message is not a known protocol message
        """
        if not isinstance(message, Message) or not message.MESSAGE_TYPE:
            raise ValueError(f"Unknown message type: {type(message)}")
        
        return {
            "messageType": message.MESSAGE_TYPE,
            "data": message.to_data(),
        }
    
    @staticmethod
    def serialize_message(message: Message) -> bytes:
        """Convert a message object to frame bytes.
        
        Args:
            message: Message object to serialize
            
        Returns:
            Compact UTF-8 JSON ready to write to a channel

        Raises:
            ValueError: If the message is unknown or holds a value JSON cannot encode
            
        Examples:
            >>> MessageSerializer.serialize_message(PluginUnloaded(plugin_id="mqtt"))
            b'{"messageType":"pluginUnloaded","data":{"pluginId":"mqtt"}}'
        """
        envelope = MessageSerializer.to_envelope(message)
        try:
            return json.dumps(envelope, separators=(",", ":")).encode("utf-8")
        except TypeError as e:
            raise ValueError(f"{message.MESSAGE_TYPE} is not JSON serializable: {e}") from e
