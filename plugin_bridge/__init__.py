"""Gateway plugin bridge - registration handshake, relay and command dispatch."""

from .bridge import BridgeState, GatewayBridge
from .channels import ChannelPair, Mailbox
from .config import BridgeConfig, FullPolicy
from .dispatcher import Dispatcher
from .errors import (
    BridgeError,
    ChannelClosedError,
    HandshakeError,
    MailboxClosed,
    MailboxFull,
    NotFoundError,
    ProtocolError,
    TransportError,
)
from .handshake import HandshakeClient
from .models import (
    Property,
    Outcome,
    OutcomeStatus,
    GatewayMessage,
    PluginMessage,
)
from .registry import Adapter, Device, Plugin
from .relay import RelayLoop, RelayStep

__all__ = [
    "BridgeState",
    "GatewayBridge",
    "ChannelPair",
    "Mailbox",
    "BridgeConfig",
    "FullPolicy",
    "Dispatcher",
    "BridgeError",
    "ChannelClosedError",
    "HandshakeError",
    "MailboxClosed",
    "MailboxFull",
    "NotFoundError",
    "ProtocolError",
    "TransportError",
    "HandshakeClient",
    "Property",
    "Outcome",
    "OutcomeStatus",
    "GatewayMessage",
    "PluginMessage",
    "Adapter",
    "Device",
    "Plugin",
    "RelayLoop",
    "RelayStep",
]
