"""
Bridge Configuration

Defaults for the gateway addresses, polling cadence, handshake retry policy
and mailbox sizing, with environment variable overrides.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional


# Environment variable names
ENV_BASE_URL = "PLUGIN_BRIDGE_BASE_URL"
ENV_RENDEZVOUS_URL = "PLUGIN_BRIDGE_RENDEZVOUS_URL"
ENV_POLL_INTERVAL = "PLUGIN_BRIDGE_POLL_INTERVAL"
ENV_HANDSHAKE_TIMEOUT = "PLUGIN_BRIDGE_HANDSHAKE_TIMEOUT"
ENV_HANDSHAKE_RETRIES = "PLUGIN_BRIDGE_HANDSHAKE_RETRIES"
ENV_HANDSHAKE_BACKOFF = "PLUGIN_BRIDGE_HANDSHAKE_BACKOFF"
ENV_SEND_TIMEOUT = "PLUGIN_BRIDGE_SEND_TIMEOUT"
ENV_QUEUE_CAPACITY = "PLUGIN_BRIDGE_QUEUE_CAPACITY"
ENV_FULL_POLICY = "PLUGIN_BRIDGE_FULL_POLICY"

DEFAULT_BASE_URL = "ipc:///tmp"
DEFAULT_RENDEZVOUS_URL = "ipc:///tmp/gateway.addonManager"
DEFAULT_POLL_INTERVAL = 0.033  # seconds
DEFAULT_HANDSHAKE_TIMEOUT = 5.0  # seconds per request
DEFAULT_HANDSHAKE_RETRIES = 3
DEFAULT_HANDSHAKE_BACKOFF = 0.5  # seconds, doubled per retry
DEFAULT_SEND_TIMEOUT = 1.0  # seconds
DEFAULT_QUEUE_CAPACITY = 1024  # messages per direction, 0 = unbounded


class FullPolicy(Enum):
    """What a mailbox send does when the mailbox is at capacity."""
    BLOCK = "block"
    DROP_OLDEST = "drop_oldest"
    ERROR = "error"


@dataclass(frozen=True)
class BridgeConfig:
    """
    Configuration for a gateway bridge.

    Attributes:
        base_url: Prefix of the persistent channel address
        rendezvous_url: Well-known address used for the registration handshake
        poll_interval: Idle wait of the relay and dispatcher loops, in seconds
        handshake_timeout: Send/receive timeout of each registration request
        handshake_retries: Extra registration attempts after a transport failure
        handshake_backoff: Delay before the first retry, doubled on each retry
        send_timeout: Write timeout on the persistent channel
        queue_capacity: Capacity of each mailbox (0 for unbounded)
        full_policy: Behavior of a send on a full mailbox
    """
    base_url: str = DEFAULT_BASE_URL
    rendezvous_url: str = DEFAULT_RENDEZVOUS_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT
    handshake_retries: int = DEFAULT_HANDSHAKE_RETRIES
    handshake_backoff: float = DEFAULT_HANDSHAKE_BACKOFF
    send_timeout: float = DEFAULT_SEND_TIMEOUT
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    full_policy: FullPolicy = FullPolicy.BLOCK

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.handshake_timeout <= 0:
            raise ValueError(f"handshake_timeout must be positive, got {self.handshake_timeout}")
        if self.handshake_retries < 0:
            raise ValueError(f"handshake_retries must be >= 0, got {self.handshake_retries}")
        if self.handshake_backoff < 0:
            raise ValueError(f"handshake_backoff must be >= 0, got {self.handshake_backoff}")
        if self.queue_capacity < 0:
            raise ValueError(f"queue_capacity must be >= 0, got {self.queue_capacity}")

    def channel_address(self, ipc_base_addr: str) -> str:
        """
        Build the persistent channel address from a registration reply.

        >>> BridgeConfig().channel_address("gateway.plugin.mqtt")
        'ipc:///tmp/gateway.plugin.mqtt'
        """
        return f"{self.base_url.rstrip('/')}/{ipc_base_addr}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> BridgeConfig:
        """
        Create configuration from environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable is set to an invalid value
        """
        env = os.environ if environ is None else environ

        def read(name: str, convert: Callable, default):
            raw = env.get(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return convert(raw.strip())
            except ValueError as e:
                raise ValueError(f"Invalid value for {name}: {raw!r}") from e

        return cls(
            base_url=read(ENV_BASE_URL, str, DEFAULT_BASE_URL),
            rendezvous_url=read(ENV_RENDEZVOUS_URL, str, DEFAULT_RENDEZVOUS_URL),
            poll_interval=read(ENV_POLL_INTERVAL, float, DEFAULT_POLL_INTERVAL),
            handshake_timeout=read(ENV_HANDSHAKE_TIMEOUT, float, DEFAULT_HANDSHAKE_TIMEOUT),
            handshake_retries=read(ENV_HANDSHAKE_RETRIES, int, DEFAULT_HANDSHAKE_RETRIES),
            handshake_backoff=read(ENV_HANDSHAKE_BACKOFF, float, DEFAULT_HANDSHAKE_BACKOFF),
            send_timeout=read(ENV_SEND_TIMEOUT, float, DEFAULT_SEND_TIMEOUT),
            queue_capacity=read(ENV_QUEUE_CAPACITY, int, DEFAULT_QUEUE_CAPACITY),
            full_policy=read(ENV_FULL_POLICY, lambda v: FullPolicy(v.lower()), FullPolicy.BLOCK),
        )
