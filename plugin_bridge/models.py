"""Immutable data models for the gateway plugin IPC protocol.

Every wire message is an envelope ``{"messageType": <tag>, "data": {...}}``.
Each message class below is a frozen dataclass whose ``MESSAGE_TYPE`` is the
tag and whose fields are the ``data`` keys. Field names are snake_case in
Python and camelCase on the wire unless a field overrides its wire name with
``field(metadata={"wire": ...})``.

Four families exist:
- Handshake request (plugin -> gateway, sent once)
- Handshake reply (gateway -> plugin, received once)
- Gateway messages (commands received over the persistent channel)
- Plugin messages (events sent over the persistent channel)
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Type, Union, get_type_hints

from .errors import ProtocolError


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _wire_name(f) -> str:
    return f.metadata.get("wire") or _camel_case(f.name)


@lru_cache(maxsize=None)
def _field_types(cls: type) -> Dict[str, Any]:
    return get_type_hints(cls)


@dataclass(frozen=True)
class Property:
    """A named value on a device.

    Attributes:
        name: Property name (e.g. "on", "brightness")
        value: Any JSON value, opaque to the bridge
    """
    name: str
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire mapping ``{"name": ..., "value": ...}``."""
        return {"name": self.name, "value": self.value}

    @classmethod
    def from_dict(cls, data: Any) -> Property:
        """Load from a decoded wire mapping.

        Raises:
            ProtocolError: If data is not a mapping with a string name
        """
        if not isinstance(data, dict) or not isinstance(data.get("name"), str):
            raise ProtocolError(f"Invalid property: {data!r}")
        return cls(name=data["name"], value=data.get("value"))


class Message:
    """Base class for all wire messages."""

    MESSAGE_TYPE = ""

    def to_data(self) -> Dict[str, Any]:
        """Build the ``data`` payload with wire field names."""
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Property):
                value = value.to_dict()
            elif isinstance(value, dict):
                value = dict(value)
            data[_wire_name(f)] = value
        return data

    @classmethod
    def from_data(cls, data: Any) -> Message:
        """Build a message from a decoded ``data`` payload.

        Every field is required. Strings must be strings, numbers are coerced
        to float, mappings must be JSON objects.

        Raises:
            ProtocolError: If a field is missing or has the wrong shape
        """
        if not isinstance(data, dict):
            raise ProtocolError(
                f"{cls.MESSAGE_TYPE}: data must be an object, got {type(data).__name__}"
            )

        hints = _field_types(cls)
        kwargs = {}
        for f in fields(cls):
            key = _wire_name(f)
            if key not in data:
                raise ProtocolError(f"{cls.MESSAGE_TYPE}: missing field '{key}'")
            kwargs[f.name] = _decode_field(cls.MESSAGE_TYPE, key, data[key], hints[f.name])
        return cls(**kwargs)


def _decode_field(tag: str, key: str, value: Any, expected: Any) -> Any:
    if expected is Property:
        return Property.from_dict(value)

    if expected is str:
        if not isinstance(value, str):
            raise ProtocolError(f"{tag}: '{key}' must be a string")
        return value

    if expected is float:
        # bool is an int subclass but never a valid number here
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ProtocolError(f"{tag}: '{key}' must be a number")
        return float(value)

    if not isinstance(value, dict):
        raise ProtocolError(f"{tag}: '{key}' must be an object")
    return dict(value)


# Handshake messages

@dataclass(frozen=True)
class RegisterPlugin(Message):
    """Registration request sent once to the rendezvous address."""
    MESSAGE_TYPE = "registerPlugin"

    plugin_id: str


@dataclass(frozen=True)
class RegisterPluginReply(Message):
    """Registration reply carrying the persistent channel's base address.

    Attributes:
        plugin_id: Echo of the registered plugin id
        ipc_base_addr: Channel name, appended to the base URL
    """
    MESSAGE_TYPE = "registerPluginReply"

    plugin_id: str
    ipc_base_addr: str


# Gateway -> Plugin messages

@dataclass(frozen=True)
class UnloadPlugin(Message):
    MESSAGE_TYPE = "unloadPlugin"

    plugin_id: str


@dataclass(frozen=True)
class UnloadAdapter(Message):
    MESSAGE_TYPE = "unloadAdapter"

    plugin_id: str
    adapter_id: str


@dataclass(frozen=True)
class SetProperty(Message):
    """Command to set a property on a device."""
    MESSAGE_TYPE = "setProperty"

    plugin_id: str
    adapter_id: str
    device_id: str
    property: Property


@dataclass(frozen=True)
class StartPairing(Message):
    """Command to start pairing on an adapter.

    Attributes:
        timeout: Advisory pairing window in seconds, honored by the adapter
    """
    MESSAGE_TYPE = "startPairing"

    plugin_id: str
    adapter_id: str
    timeout: float


@dataclass(frozen=True)
class CancelPairing(Message):
    MESSAGE_TYPE = "cancelPairing"

    plugin_id: str
    adapter_id: str


@dataclass(frozen=True)
class RemoveThing(Message):
    MESSAGE_TYPE = "removeThing"

    plugin_id: str
    adapter_id: str
    device_id: str


@dataclass(frozen=True)
class CancelRemoveThing(Message):
    MESSAGE_TYPE = "cancelRemoveThing"

    plugin_id: str
    adapter_id: str
    device_id: str


# Plugin -> Gateway messages

@dataclass(frozen=True)
class PluginUnloaded(Message):
    """Final event of a plugin. Writing it shuts the relay down."""
    MESSAGE_TYPE = "pluginUnloaded"

    plugin_id: str


@dataclass(frozen=True)
class AdapterUnloaded(Message):
    MESSAGE_TYPE = "adapterUnloaded"

    plugin_id: str
    adapter_id: str


@dataclass(frozen=True)
class AddAdapter(Message):
    MESSAGE_TYPE = "addAdapter"

    plugin_id: str
    adapter_id: str
    name: str


@dataclass(frozen=True)
class HandleDeviceAdded(Message):
    """Event announcing a new device on an adapter.

    Attributes:
        id: Device id
        name: Human readable device name
        device_type: Device type, sent as ``type`` on the wire
        properties: Property mapping, opaque to the bridge
        actions: Action mapping, opaque to the bridge
    """
    MESSAGE_TYPE = "handleDeviceAdded"

    plugin_id: str
    adapter_id: str
    id: str
    name: str
    device_type: str = field(metadata={"wire": "type"})
    properties: Dict[str, Any] = field(default_factory=dict)
    actions: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HandleDeviceRemoved(Message):
    MESSAGE_TYPE = "handleDeviceRemoved"

    plugin_id: str
    adapter_id: str
    id: str


@dataclass(frozen=True)
class PropertyChanged(Message):
    MESSAGE_TYPE = "propertyChanged"

    plugin_id: str
    adapter_id: str
    device_id: str
    property: Property


def _by_tag(*classes: Type[Message]) -> Dict[str, Type[Message]]:
    return {cls.MESSAGE_TYPE: cls for cls in classes}


REGISTER_REQUESTS = _by_tag(RegisterPlugin)
REGISTER_REPLIES = _by_tag(RegisterPluginReply)

GATEWAY_MESSAGES = _by_tag(
    UnloadPlugin,
    UnloadAdapter,
    SetProperty,
    StartPairing,
    CancelPairing,
    RemoveThing,
    CancelRemoveThing,
)

PLUGIN_MESSAGES = _by_tag(
    PluginUnloaded,
    AdapterUnloaded,
    AddAdapter,
    HandleDeviceAdded,
    HandleDeviceRemoved,
    PropertyChanged,
)

# Union types for each steady-state direction
GatewayMessage = Union[
    UnloadPlugin,
    UnloadAdapter,
    SetProperty,
    StartPairing,
    CancelPairing,
    RemoveThing,
    CancelRemoveThing,
]

PluginMessage = Union[
    PluginUnloaded,
    AdapterUnloaded,
    AddAdapter,
    HandleDeviceAdded,
    HandleDeviceRemoved,
    PropertyChanged,
]


# Dispatch outcomes

class OutcomeStatus(Enum):
    """Result of routing one command."""
    OK = "ok"
    IGNORED = "ignored"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """Reported result of a dispatched command or adapter operation.

    Attributes:
        status: Outcome status
        message: Human readable detail, empty on success
    """
    status: OutcomeStatus
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.OK

    @classmethod
    def success(cls, message: str = "") -> Outcome:
        return cls(OutcomeStatus.OK, message)

    @classmethod
    def ignored(cls, reason: str) -> Outcome:
        return cls(OutcomeStatus.IGNORED, reason)

    @classmethod
    def not_found(cls, message: str) -> Outcome:
        return cls(OutcomeStatus.NOT_FOUND, message)

    @classmethod
    def invalid(cls, message: str) -> Outcome:
        return cls(OutcomeStatus.INVALID, message)

    @classmethod
    def failed(cls, message: str) -> Outcome:
        return cls(OutcomeStatus.FAILED, message)
