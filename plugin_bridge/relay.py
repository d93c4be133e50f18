"""Relay loop between the persistent gateway channel and the local mailboxes.

The relay is the only component that touches the external channel. Each
iteration it:
1. Reads at most one frame without blocking and queues the parsed command
   on the inbound mailbox (malformed frames are dropped)
2. Writes at most one message from the outbound mailbox
3. Waits up to poll_interval for an outbound message when step 1 found nothing

Writing a pluginUnloaded event is the graceful shutdown: the relay closes the
channel and both mailboxes, then returns.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from .channels import Mailbox
from .config import DEFAULT_POLL_INTERVAL, DEFAULT_SEND_TIMEOUT
from .errors import ChannelClosedError, MailboxClosed, MailboxFull, TransportError
from .models import PluginUnloaded
from .protocol import JSONProtocol, Protocol
from .transport import Channel

logger = logging.getLogger(__name__)


class RelayStep(Enum):
    """Result of one relay iteration."""
    IDLE = "idle"
    WORKED = "worked"
    SHUTDOWN = "shutdown"
    CLOSED = "closed"


class RelayLoop:
    """Moves frames between a gateway channel and the local channel pair.

    Responsibilities:
    - Parse inbound frames and queue them for the dispatcher
    - Serialize outbound messages and write them to the gateway
    - Stop on pluginUnloaded or when the channel is closed for good
    """

    def __init__(
        self,
        channel: Channel,
        inbound: Mailbox,
        outbound: Mailbox,
        protocol: Optional[Protocol] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_shutdown: Optional[Callable[[], None]] = None,
        inbound_timeout: float = DEFAULT_SEND_TIMEOUT,
    ):
        """Initialize relay loop.

        Args:
            channel: Connected persistent channel
            inbound: Mailbox the relay writes gateway commands to
            outbound: Mailbox the relay reads plugin events from
            protocol: Protocol implementation (default: JSONProtocol)
            poll_interval: Longest idle wait between iterations, in seconds
            on_shutdown: Called once when pluginUnloaded is taken for writing
            inbound_timeout: Longest wait for room in a full inbound mailbox
                before the command is dropped, in seconds
        """
        self._channel = channel
        self._inbound = inbound
        self._outbound = outbound
        self._protocol = protocol or JSONProtocol()
        self._poll_interval = poll_interval
        self._on_shutdown = on_shutdown
        self._inbound_timeout = inbound_timeout

        self._finished = False
        self._error: Optional[TransportError] = None
        self._dropped_frames = 0

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def error(self) -> Optional[TransportError]:
        """Transport error that ended the loop, None after a graceful shutdown."""
        return self._error

    @property
    def dropped_frames(self) -> int:
        """Number of inbound frames discarded so far.

        Counts malformed or unknown frames and commands that found no room
        in the inbound mailbox.
        """
        return self._dropped_frames

    def run(self) -> None:
        """Relay until pluginUnloaded is written or the channel closes.

        Returns immediately if the loop has already finished.
        """
        if self._finished:
            logger.debug("Relay loop already finished")
            return

        logger.debug("Relay loop started")
        try:
            while self.step() in (RelayStep.IDLE, RelayStep.WORKED):
                pass
        finally:
            self._finish()
        logger.debug("Relay loop exiting")

    def step(self) -> RelayStep:
        """Run one relay iteration.

        Returns:
            SHUTDOWN after pluginUnloaded was written, CLOSED if the channel or
            outbound mailbox is gone, otherwise WORKED or IDLE
        """
        if self._finished:
            return RelayStep.CLOSED

        try:
            did_read = self._read_once()
        except ChannelClosedError as e:
            self._error = e
            logger.error(f"Gateway channel closed: {e}")
            return RelayStep.CLOSED

        # Nothing read: the outbound receive doubles as the idle wait
        wait = 0 if did_read else self._poll_interval
        return self._write_once(wait, did_read)

    def _read_once(self) -> bool:
        try:
            frame = self._channel.try_recv()
        except ChannelClosedError:
            raise
        except TransportError as e:
            logger.warning(f"Read error: {e}")
            return False

        if frame is None:
            return False

        message = self._protocol.parse_frame(frame)
        if message is None:
            self._dropped_frames += 1
            logger.debug(f"Dropped unparseable frame ({len(frame)} bytes)")
            return True

        try:
            queued = self._inbound.send(message, timeout=self._inbound_timeout)
        except MailboxFull as e:
            queued = False
            logger.warning(f"{e}, dropping {type(message).__name__}")
        else:
            if not queued:
                state = "closed" if self._inbound.closed else "full"
                logger.warning(f"Inbound mailbox {state}, dropping {type(message).__name__}")

        if not queued:
            self._dropped_frames += 1
        return True

    def _write_once(self, wait: float, did_read: bool) -> RelayStep:
        try:
            if wait > 0:
                message = self._outbound.recv(timeout=wait)
            else:
                message = self._outbound.try_recv()
        except MailboxClosed:
            logger.info("Outbound mailbox closed, stopping relay")
            return RelayStep.CLOSED

        if message is None:
            return RelayStep.WORKED if did_read else RelayStep.IDLE

        shutdown = isinstance(message, PluginUnloaded)
        if shutdown:
            self._notify_shutdown()

        try:
            self._channel.send(self._protocol.serialize_message(message))
        except ChannelClosedError as e:
            self._error = e
            logger.error(f"Gateway channel closed while sending {type(message).__name__}: {e}")
            return RelayStep.CLOSED
        except TransportError as e:
            logger.error(f"Failed to send {type(message).__name__}: {e}")
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot serialize {type(message).__name__}: {e}")

        if shutdown:
            logger.info(f"Plugin '{message.plugin_id}' unloaded, closing gateway channel")
            return RelayStep.SHUTDOWN
        return RelayStep.WORKED

    def _notify_shutdown(self) -> None:
        if self._on_shutdown is None:
            return
        try:
            self._on_shutdown()
        except Exception as e:
            logger.error(f"Error in shutdown callback: {e}")

    def _finish(self) -> None:
        """Close the channel, then both mailboxes so the dispatcher stops."""
        self._finished = True
        self._channel.close()
        self._inbound.close()
        self._outbound.close()
