"""nanomsg-compatible channels built on pynng.

The gateway speaks nanomsg scalability protocols over ipc:// addresses:
- Req0 to the rendezvous address for the registration handshake
- Pair0 to the per-plugin address for all steady-state traffic

Note: These are RAW FRAME channels. They do not interpret
      frames. Use the protocol layer to parse and serialize.
"""
from __future__ import annotations

import logging
from typing import Optional

import pynng

from ..errors import ChannelClosedError, TransportError
from .base import Channel, RequestChannel

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 1.0  # seconds
DEFAULT_REQUEST_TIMEOUT = 5.0  # seconds


def _to_ms(seconds: float) -> int:
    return int(seconds * 1000)


class NngPairChannel(Channel):
    """Persistent duplex channel over a Pair0 socket.

    Example:
        >>> channel = NngPairChannel(send_timeout=1.0)
        >>> channel.connect("ipc:///tmp/gateway.plugin.mqtt")
        >>> channel.send(b'{"messageType":"pluginUnloaded","data":{"pluginId":"mqtt"}}')
        >>> frame = channel.try_recv()  # None when nothing is waiting
        >>> channel.close()
    """

    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT):
        """Initialize pair channel.

        Args:
            send_timeout: Seconds a write may wait for the peer
        """
        self._send_timeout = send_timeout
        self._socket: Optional[pynng.Pair0] = None
        self._address: Optional[str] = None
        self._connected = False

    def connect(self, address: str) -> None:
        if self._connected:
            logger.warning("Already connected")
            return

        try:
            self._socket = pynng.Pair0(send_timeout=_to_ms(self._send_timeout))
            self._socket.dial(address, block=True)
        except pynng.NNGException as e:
            self._close_socket()
            raise TransportError(f"Failed to connect to {address}: {e}") from e

        self._address = address
        self._connected = True
        logger.info(f"Connected to {address}")

    def close(self) -> None:
        if self._socket is None:
            return

        self._connected = False
        self._close_socket()
        logger.info(f"Closed channel to {self._address}")

    def is_connected(self) -> bool:
        return self._connected and self._socket is not None

    def try_recv(self) -> Optional[bytes]:
        socket = self._require_socket()
        try:
            return socket.recv(block=False)
        except pynng.TryAgain:
            return None
        except pynng.Closed as e:
            self._connected = False
            raise ChannelClosedError(f"Channel to {self._address} closed") from e
        except pynng.NNGException as e:
            raise TransportError(f"Read error: {e}") from e

    def send(self, frame: bytes) -> None:
        socket = self._require_socket()
        try:
            socket.send(frame)
        except pynng.Closed as e:
            self._connected = False
            raise ChannelClosedError(f"Channel to {self._address} closed") from e
        except pynng.Timeout as e:
            raise TransportError(f"Send to {self._address} timed out") from e
        except pynng.NNGException as e:
            raise TransportError(f"Send error: {e}") from e

    def _require_socket(self) -> pynng.Pair0:
        if not self._connected or self._socket is None:
            raise ChannelClosedError("Channel is not connected")
        return self._socket

    def _close_socket(self) -> None:
        if self._socket is None:
            return
        try:
            self._socket.close()
        except pynng.NNGException as e:
            logger.error(f"Error closing socket: {e}")
        finally:
            self._socket = None


class NngRequestChannel(RequestChannel):
    """One-shot request/reply channel over a Req0 socket."""

    def __init__(self, timeout: float = DEFAULT_REQUEST_TIMEOUT):
        """Initialize request channel.

        Args:
            timeout: Seconds allowed for each send and each receive
        """
        self._timeout = timeout
        self._socket: Optional[pynng.Req0] = None
        self._address: Optional[str] = None

    def connect(self, address: str) -> None:
        try:
            self._socket = pynng.Req0(
                send_timeout=_to_ms(self._timeout),
                recv_timeout=_to_ms(self._timeout),
            )
            self._socket.dial(address, block=True)
        except pynng.NNGException as e:
            self.close()
            raise TransportError(f"Failed to connect to {address}: {e}") from e

        self._address = address
        logger.debug(f"Request channel connected to {address}")

    def request(self, frame: bytes) -> bytes:
        if self._socket is None:
            raise ChannelClosedError("Request channel is not connected")

        try:
            self._socket.send(frame)
            return self._socket.recv()
        except pynng.Timeout as e:
            raise TransportError(f"No reply from {self._address} within {self._timeout}s") from e
        except pynng.NNGException as e:
            raise TransportError(f"Request to {self._address} failed: {e}") from e

    def close(self) -> None:
        if self._socket is None:
            return
        try:
            self._socket.close()
        except pynng.NNGException as e:
            logger.error(f"Error closing request socket: {e}")
        finally:
            self._socket = None
