"""Registration handshake with the gateway's addon manager.

The plugin connects to the well-known rendezvous address with a request/reply
socket, sends exactly one registerPlugin request, and blocks for exactly one
registerPluginReply. The reply names the persistent channel, which lives at
``<base_url>/<ipcBaseAddr>``.

Without a registered identity the plugin cannot run, so every failure here is
fatal to startup and surfaces as HandshakeError. Transport failures are retried
a bounded number of times with exponential backoff before giving up.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .config import BridgeConfig
from .errors import HandshakeError, TransportError
from .models import RegisterPlugin, RegisterPluginReply
from .protocol import JSONProtocol, Protocol
from .transport import NngRequestChannel, RequestChannel

logger = logging.getLogger(__name__)


class HandshakeClient:
    """Registers a plugin with the gateway.

    Example:
        >>> client = HandshakeClient("mqtt")
        >>> reply = client.register()
        >>> client.channel_address(reply)
        'ipc:///tmp/gateway.plugin.mqtt'
    """

    def __init__(
        self,
        plugin_id: str,
        config: Optional[BridgeConfig] = None,
        protocol: Optional[Protocol] = None,
        channel_factory: Optional[Callable[..., RequestChannel]] = None,
    ):
        """Initialize handshake client.

        Args:
            plugin_id: Id to register
            config: Addresses, timeout and retry policy (default: BridgeConfig())
            protocol: Protocol implementation (default: JSONProtocol)
            channel_factory: Called with ``timeout=`` to build each request
                channel (default: NngRequestChannel)
        """
        self._plugin_id = plugin_id
        self._config = config or BridgeConfig()
        self._protocol = protocol or JSONProtocol()
        self._channel_factory = channel_factory or NngRequestChannel

    def register(self) -> RegisterPluginReply:
        """Perform the registration exchange.

        Returns:
            The gateway's reply

        Raises:
            HandshakeError: If every attempt failed or the reply is invalid
        """
        frame = self._protocol.serialize_message(RegisterPlugin(plugin_id=self._plugin_id))
        attempts = self._config.handshake_retries + 1
        last_error: Optional[TransportError] = None

        for attempt in range(1, attempts + 1):
            logger.info(
                f"Registering plugin '{self._plugin_id}' with {self._config.rendezvous_url} "
                f"(attempt {attempt}/{attempts})"
            )
            try:
                reply_frame = self._exchange(frame)
            except TransportError as e:
                last_error = e
                logger.warning(f"Registration attempt {attempt} failed: {e}")
                if attempt < attempts:
                    time.sleep(self._config.handshake_backoff * (2 ** (attempt - 1)))
                continue

            reply = self._parse_reply(reply_frame, attempt)
            logger.info(f"Plugin '{self._plugin_id}' registered, channel '{reply.ipc_base_addr}'")
            return reply

        raise HandshakeError(
            f"Could not register plugin '{self._plugin_id}' with "
            f"{self._config.rendezvous_url} after {attempts} attempts: {last_error}",
            attempts=attempts,
        ) from last_error

    def channel_address(self, reply: RegisterPluginReply) -> str:
        """Address of the persistent channel named by a registration reply."""
        return self._config.channel_address(reply.ipc_base_addr)

    def _exchange(self, frame: bytes) -> bytes:
        channel = self._channel_factory(timeout=self._config.handshake_timeout)
        try:
            channel.connect(self._config.rendezvous_url)
            return channel.request(frame)
        finally:
            channel.close()

    def _parse_reply(self, frame: bytes, attempt: int) -> RegisterPluginReply:
        reply = self._protocol.parse_reply(frame)
        if reply is None:
            raise HandshakeError(f"Malformed registration reply: {frame[:100]!r}", attempts=attempt)

        if reply.plugin_id != self._plugin_id:
            raise HandshakeError(
                f"Registration reply is for plugin '{reply.plugin_id}', "
                f"expected '{self._plugin_id}'",
                attempts=attempt,
            )
        return reply
