"""Gateway bridge facade.

Composes the handshake client, relay loop, local channel pair and dispatcher,
and tracks the process-level state machine:

    UNREGISTERED -> REGISTERING -> RELAYING -> SHUTTING_DOWN -> TERMINATED

The relay thread drives the handshake and then the relay loop. The dispatcher
runs on the thread that calls serve(). The two only talk through the mailboxes
of the channel pair.
"""
from __future__ import annotations

import logging
import queue
import threading
from enum import Enum
from typing import Callable, Optional, Union

from .channels import ChannelPair
from .config import BridgeConfig
from .dispatcher import Dispatcher
from .errors import BridgeError
from .handshake import HandshakeClient
from .models import RegisterPluginReply
from .protocol import JSONProtocol, Protocol
from .registry import Plugin
from .relay import RelayLoop
from .transport import Channel, NngPairChannel, RequestChannel

logger = logging.getLogger(__name__)


class BridgeState(Enum):
    """Lifecycle of a plugin's connection to the gateway."""
    UNREGISTERED = "unregistered"
    REGISTERING = "registering"
    RELAYING = "relaying"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class GatewayBridge:
    """Connects a Plugin to the gateway and runs it until unloaded.

    Example:
        >>> plugin = Plugin("mqtt")
        >>> bridge = GatewayBridge(plugin)
        >>> plugin.add_adapter(MyAdapter("a1"))
        >>> bridge.run_forever()  # returns after unloadPlugin
    """

    def __init__(
        self,
        plugin: Plugin,
        config: Optional[BridgeConfig] = None,
        protocol: Optional[Protocol] = None,
        request_channel_factory: Optional[Callable[..., RequestChannel]] = None,
        channel_factory: Optional[Callable[[], Channel]] = None,
    ):
        """Initialize bridge.

        Attaches the plugin to the outbound mailbox, so events sent from now on
        are queued and delivered once the relay is running.

        Args:
            plugin: Plugin registry to serve
            config: Bridge configuration (default: BridgeConfig())
            protocol: Protocol implementation (default: JSONProtocol)
            request_channel_factory: Builds handshake channels (default: NngRequestChannel)
            channel_factory: Builds the persistent channel (default: NngPairChannel)
        """
        self._plugin = plugin
        self._config = config or BridgeConfig()
        self._protocol = protocol or JSONProtocol()
        self._channel_factory = channel_factory or self._default_channel

        self._channels = ChannelPair.create(
            capacity=self._config.queue_capacity,
            full_policy=self._config.full_policy,
        )
        self._handshake = HandshakeClient(
            plugin.id,
            config=self._config,
            protocol=self._protocol,
            channel_factory=request_channel_factory,
        )
        self._dispatcher = Dispatcher(
            plugin,
            self._channels.inbound,
            poll_interval=self._config.poll_interval,
            on_unload=self._begin_shutdown,
        )
        self._relay: Optional[RelayLoop] = None
        self._relay_thread: Optional[threading.Thread] = None
        self._relay_failure: Optional[Exception] = None

        # One-shot handoff of the registration result from the relay thread
        self._registration_result: queue.Queue[Union[RegisterPluginReply, Exception]] = queue.Queue(maxsize=1)
        self._registration: Optional[RegisterPluginReply] = None
        self._channel_address: Optional[str] = None

        self._state = BridgeState.UNREGISTERED
        self._state_lock = threading.Lock()
        self._terminated = threading.Event()

        plugin.attach(self._channels.outbound)

    @property
    def plugin(self) -> Plugin:
        return self._plugin

    @property
    def state(self) -> BridgeState:
        with self._state_lock:
            return self._state

    @property
    def registration(self) -> Optional[RegisterPluginReply]:
        """The gateway's registration reply, once registered."""
        return self._registration

    @property
    def channel_address(self) -> Optional[str]:
        return self._channel_address

    @property
    def error(self) -> Optional[Exception]:
        """Error that ended the relay, None after a graceful shutdown."""
        if self._relay_failure is not None:
            return self._relay_failure
        return self._relay.error if self._relay else None

    def start(self) -> RegisterPluginReply:
        """Register with the gateway and start the relay thread.

        Blocks until registration succeeded or failed.

        Returns:
            The gateway's registration reply

        Raises:
            HandshakeError: If registration failed
            TransportError: If the persistent channel could not be opened
            BridgeError: If the bridge was already started
        """
        with self._state_lock:
            if self._state != BridgeState.UNREGISTERED:
                raise BridgeError(f"Bridge already started ({self._state.value})")
        self._set_state(BridgeState.REGISTERING)

        self._relay_thread = threading.Thread(
            target=self._relay_main,
            daemon=True,
            name="GatewayRelay"
        )
        self._relay_thread.start()

        result = self._registration_result.get()
        if isinstance(result, Exception):
            self._relay_thread.join()
            self._set_state(BridgeState.TERMINATED)
            self._terminated.set()
            raise result

        return result

    def serve(self) -> None:
        """Run the dispatcher on this thread until the plugin unloads.

        Returns once the relay has closed the channel and both loops are done.

        Raises:
            BridgeError: If the bridge has not been started
        """
        if self._relay_thread is None:
            raise BridgeError("Bridge not started")
        if self._terminated.is_set():
            return

        self._dispatcher.run()
        self._relay_thread.join()

        self._set_state(BridgeState.TERMINATED)
        self._terminated.set()
        if self.error is not None:
            logger.error(f"Bridge terminated by relay error: {self.error}")

    def run_forever(self) -> None:
        """Register, then serve until the plugin unloads."""
        self.start()
        self.serve()

    def shutdown(self) -> bool:
        """Unload the plugin: queue pluginUnloaded for the relay.

        Returns:
            True if the event was queued, False if the bridge is already stopping
        """
        return self._plugin.unload()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait until the bridge has terminated.

        Returns:
            True if terminated, False on timeout
        """
        return self._terminated.wait(timeout)

    # Internal methods

    def _default_channel(self) -> Channel:
        return NngPairChannel(send_timeout=self._config.send_timeout)

    def _relay_main(self) -> None:
        """Relay thread: handshake, connect, then relay until shutdown."""
        try:
            reply = self._handshake.register()
            address = self._handshake.channel_address(reply)
            channel = self._channel_factory()
            channel.connect(address)
        except Exception as e:
            logger.error(f"Bridge startup failed: {e}")
            self._channels.close()
            self._registration_result.put(e)
            return

        self._registration = reply
        self._channel_address = address
        self._relay = RelayLoop(
            channel,
            self._channels.inbound,
            self._channels.outbound,
            protocol=self._protocol,
            poll_interval=self._config.poll_interval,
            on_shutdown=self._begin_shutdown,
            inbound_timeout=self._config.send_timeout,
        )
        logger.info(f"Relaying {self._protocol.name} frames on {address}")
        self._set_state(BridgeState.RELAYING)
        self._registration_result.put(reply)

        try:
            self._relay.run()
        except Exception as e:
            logger.exception("Relay loop failed")
            self._relay_failure = e
        logger.info("Relay thread exiting")

    def _begin_shutdown(self) -> None:
        with self._state_lock:
            if self._state != BridgeState.RELAYING:
                return
            self._state = BridgeState.SHUTTING_DOWN
        logger.info(f"Bridge state: {BridgeState.RELAYING.value} -> {BridgeState.SHUTTING_DOWN.value}")

    def _set_state(self, state: BridgeState) -> None:
        with self._state_lock:
            previous = self._state
            if previous == state:
                return
            self._state = state
        logger.info(f"Bridge state: {previous.value} -> {state.value}")
