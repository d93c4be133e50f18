class BridgeError(RuntimeError):
    """Base class for all plugin bridge errors."""
    pass


class TransportError(BridgeError):
    """Raised when connecting to, reading from or writing to a channel fails."""
    pass


class ChannelClosedError(TransportError):
    """Raised when a channel has been closed and cannot be used again."""
    pass


class HandshakeError(BridgeError):
    """Raised when the plugin could not register with the gateway."""
    def __init__(self, message, attempts=0):
        super().__init__(message)
        self.attempts = attempts


class ProtocolError(BridgeError, ValueError):
    """Raised when a frame does not decode to a known message shape."""
    pass


class NotFoundError(BridgeError, LookupError):
    """Raised when an adapter or device id is not in the registry."""
    def __init__(self, kind, key):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class MailboxClosed(BridgeError):
    """Raised by a receive on a closed and drained mailbox."""
    pass


class MailboxFull(BridgeError):
    """Raised by a send on a full mailbox whose policy is ERROR."""
    pass
