"""Local channel pair connecting the relay loop and the dispatcher.

Two independent FIFO mailboxes carry messages between threads:
- inbound: gateway -> plugin (written by the relay, read by the dispatcher)
- outbound: plugin -> gateway (written by the dispatcher and adapters, read by the relay)

Nothing else is shared between the two loops. Closing a mailbox is the
cooperative stop signal: receivers drain what was queued before the close,
then get MailboxClosed.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

from .config import DEFAULT_QUEUE_CAPACITY, FullPolicy
from .errors import MailboxClosed, MailboxFull

logger = logging.getLogger(__name__)

BLOCKING_SEND_SLICE = 0.1  # seconds between closed checks of a blocked send

# Unblocks a receiver waiting on an empty queue when the mailbox closes
_WAKE = object()


class Mailbox:
    """Thread-safe FIFO mailbox with non-blocking and timed receive.

    Messages are delivered in the order they were sent. Capacity is bounded
    unless it is 0; the full policy decides what a send does at capacity:
    - BLOCK: wait for room (or until the mailbox closes)
    - DROP_OLDEST: discard the oldest queued message to make room
    - ERROR: raise MailboxFull
    """

    def __init__(
        self,
        name: str,
        capacity: int = DEFAULT_QUEUE_CAPACITY,
        full_policy: FullPolicy = FullPolicy.BLOCK,
    ):
        """Initialize mailbox.

        Args:
            name: Label used in log messages (e.g. "inbound")
            capacity: Maximum queued messages, 0 for unbounded
            full_policy: Behavior of send() at capacity
        """
        self._name = name
        self._capacity = capacity
        self._full_policy = full_policy
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=capacity)
        self._closed = threading.Event()
        self._dropped_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        """True once close() has been called."""
        return self._closed.is_set()

    @property
    def dropped_count(self) -> int:
        """Number of messages discarded by the DROP_OLDEST policy."""
        return self._dropped_count

    def __len__(self) -> int:
        return self._queue.qsize()

    def send(self, message: Any, timeout: Optional[float] = None) -> bool:
        """Queue a message for the receiving side.

        Args:
            message: Message to deliver (must not be None)
            timeout: For the BLOCK policy, maximum seconds to wait for room

        Returns:
            True if the message was queued, False if the mailbox is closed
            or a blocking send timed out

        Raises:
            MailboxFull: If the mailbox is full and its policy is ERROR
        """
        if message is None:
            raise ValueError("Cannot send None through a mailbox")

        if self._closed.is_set():
            logger.debug(f"{self._name} mailbox closed, discarding {type(message).__name__}")
            return False

        if self._full_policy == FullPolicy.BLOCK:
            return self._put_blocking(message, timeout)

        try:
            self._queue.put_nowait(message)
            return True
        except queue.Full:
            if self._full_policy == FullPolicy.ERROR:
                raise MailboxFull(f"{self._name} mailbox is full ({self._capacity} messages)")

        # Queue is full, drop oldest item to make room (FIFO behavior)
        try:
            self._queue.get_nowait()
            self._queue.put_nowait(message)
        except (queue.Empty, queue.Full):
            # Receiver drained it (race) or another sender filled it (race)
            return False

        self._dropped_count += 1
        if self._dropped_count % 100 == 1:  # Log periodically
            logger.warning(f"{self._name} mailbox full, dropped oldest message")
        return True

    def try_recv(self) -> Optional[Any]:
        """Take the next message without blocking.

        Returns:
            The oldest queued message, or None if the mailbox is empty

        Raises:
            MailboxClosed: If the mailbox is closed and fully drained
        """
        return self._take(timeout=0)

    def recv(self, timeout: Optional[float] = None) -> Optional[Any]:
        """Take the next message, waiting up to timeout seconds.

        Args:
            timeout: Seconds to wait, or None to wait until a message
                arrives or the mailbox closes

        Returns:
            The oldest queued message, or None on timeout

        Raises:
            MailboxClosed: If the mailbox is closed and fully drained
        """
        return self._take(timeout=timeout)

    def close(self) -> None:
        """Close the mailbox.

        Later sends are discarded. Messages already queued are still
        delivered. Safe to call multiple times and from either side.
        """
        if self._closed.is_set():
            return
        self._closed.set()

        try:
            self._queue.put_nowait(_WAKE)
        except queue.Full:
            pass  # A full queue wakes receivers on its own

        logger.debug(f"{self._name} mailbox closed")

    def _put_blocking(self, message: Any, timeout: Optional[float]) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout

        while not self._closed.is_set():
            wait = BLOCKING_SEND_SLICE
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(f"{self._name} mailbox full, send timed out")
                    return False
                wait = min(wait, remaining)

            try:
                self._queue.put(message, timeout=wait)
                return True
            except queue.Full:
                continue

        return False

    def _take(self, timeout: Optional[float]) -> Optional[Any]:
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            # Read the flag before the queue: an empty queue after a close means drained
            closed = self._closed.is_set()
            try:
                if closed or timeout == 0:
                    item = self._queue.get_nowait()
                elif deadline is None:
                    item = self._queue.get()
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    item = self._queue.get(timeout=remaining)
            except queue.Empty:
                if closed:
                    raise MailboxClosed(f"{self._name} mailbox is closed")
                if timeout == 0:
                    return None
                continue

            if item is _WAKE:
                continue
            return item


@dataclass
class ChannelPair:
    """The two mailboxes between the relay loop and the dispatcher.

    Attributes:
        inbound: Gateway -> plugin commands
        outbound: Plugin -> gateway events
    """
    inbound: Mailbox
    outbound: Mailbox

    @classmethod
    def create(
        cls,
        capacity: int = DEFAULT_QUEUE_CAPACITY,
        full_policy: FullPolicy = FullPolicy.BLOCK,
    ) -> ChannelPair:
        return cls(
            inbound=Mailbox("inbound", capacity=capacity, full_policy=full_policy),
            outbound=Mailbox("outbound", capacity=capacity, full_policy=full_policy),
        )

    def close(self) -> None:
        """Close both directions."""
        self.inbound.close()
        self.outbound.close()
