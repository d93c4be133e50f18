"""Abstract base classes for the transport layer.

A Channel is the persistent duplex connection to the gateway used for all
steady-state messages. A RequestChannel is the one-shot request/reply
connection used for the registration handshake.

Key principles:
- Frames are complete messages (no partial reads)
- Reads never block: try_recv() returns None when nothing is waiting
- Failures surface as TransportError, closed channels as ChannelClosedError
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class Channel(ABC):
    """Abstract persistent duplex channel.
    
    Channels are responsible for:
    1. Managing connection lifecycle
    2. Writing frames to the gateway
    3. Reading frames from the gateway without blocking
    
    Channels should NOT parse or interpret frames.
    They are pure communication pipes.
    """
    
    @abstractmethod
    def connect(self, address: str) -> None:
        """Connect to the gateway at address.
        
        Raises:
            TransportError: If the connection cannot be established
        """
        pass
    
    @abstractmethod
    def close(self) -> None:
        """Close the channel.
        
        Should be safe to call multiple times.
        """
        pass
    
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the channel is currently open."""
        pass
    
    @abstractmethod
    def try_recv(self) -> Optional[bytes]:
        """Read one complete frame if one is waiting.
        
        Returns:
            A fresh bytes object per frame, or None if no frame is available
            
        Raises:
            ChannelClosedError: If the channel has been closed
            TransportError: If the read failed
        """
        pass
    
    @abstractmethod
    def send(self, frame: bytes) -> None:
        """Write one complete frame.
        
        Raises:
            ChannelClosedError: If the channel has been closed
            TransportError: If the write failed or timed out
        """
        pass
    
    def __enter__(self) -> Channel:
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager support - close on exit."""
        self.close()


class RequestChannel(ABC):
    """Abstract request/reply channel used once for registration."""
    
    @abstractmethod
    def connect(self, address: str) -> None:
        """Connect to the rendezvous address.
        
        Raises:
            TransportError: If the connection cannot be established
        """
        pass
    
    @abstractmethod
    def request(self, frame: bytes) -> bytes:
        """Send one request and block for exactly one reply.
        
        Raises:
            TransportError: If the write or read failed or timed out
        """
        pass
    
    @abstractmethod
    def close(self) -> None:
        """Close the channel. Safe to call multiple times."""
        pass
    
    def __enter__(self) -> RequestChannel:
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
