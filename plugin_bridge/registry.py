"""In-memory registry of the plugin's adapters and devices.

Collaborators subclass Adapter (and optionally Device) to drive real
hardware. The base classes keep the registry consistent and report every
change to the gateway by sending events through the plugin's outbound
mailbox:

- Plugin.add_adapter          -> addAdapter
- Adapter.handle_device_added -> handleDeviceAdded
- Adapter.handle_device_removed -> handleDeviceRemoved
- Adapter.set_property / notify_property_changed -> propertyChanged
- Adapter.unload              -> adapterUnloaded
- Plugin.unload               -> pluginUnloaded (stops the relay)
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type

from .channels import Mailbox
from .errors import NotFoundError
from .models import (
    AddAdapter,
    AdapterUnloaded,
    HandleDeviceAdded,
    HandleDeviceRemoved,
    Message,
    Outcome,
    PluginUnloaded,
    Property,
    PropertyChanged,
)

logger = logging.getLogger(__name__)


class Device:
    """A controlled endpoint and its property values.

    Attributes:
        id: Device id, unique within its adapter
        name: Human readable name
        device_type: Device type reported to the gateway
        properties: Property name -> current value
        actions: Action descriptions, opaque to the bridge
    """

    def __init__(
        self,
        device_id: str,
        name: str = "",
        device_type: str = "",
        properties: Optional[Dict[str, Any]] = None,
        actions: Optional[Dict[str, Any]] = None,
    ):
        self.id = device_id
        self.name = name or device_id
        self.device_type = device_type
        self.properties: Dict[str, Any] = dict(properties or {})
        self.actions: Dict[str, Any] = dict(actions or {})

    def get_property(self, name: str) -> Optional[Any]:
        return self.properties.get(name)

    def set_property(self, prop: Property) -> None:
        self.properties[prop.name] = prop.value

    def __repr__(self) -> str:
        return f"Device(id={self.id!r}, name={self.name!r}, type={self.device_type!r})"


class Adapter:
    """A driver that owns a set of devices.

    The capability methods (set_property, start_pairing, cancel_pairing,
    unload, remove_thing, cancel_remove_thing) are called by the dispatcher
    and return an Outcome. Override them to reach real hardware.
    """

    def __init__(self, adapter_id: str, name: str = ""):
        self.id = adapter_id
        self.name = name or adapter_id
        self.devices: Dict[str, Device] = {}
        self._plugin: Optional[Plugin] = None

    @property
    def plugin(self) -> Optional[Plugin]:
        return self._plugin

    def attach(self, plugin: Plugin) -> None:
        """Bind this adapter to the plugin that registered it."""
        self._plugin = plugin

    # --- Registry lookups ---

    def find_device(self, device_id: str) -> Optional[Device]:
        return self.devices.get(device_id)

    def get_device(self, device_id: str) -> Device:
        """Look up a device.

        Raises:
            NotFoundError: If no device has this id
        """
        device = self.devices.get(device_id)
        if device is None:
            raise NotFoundError("Device", device_id)
        return device

    # --- Capabilities invoked by the dispatcher ---

    def set_property(self, device_id: str, prop: Property) -> Outcome:
        """Set a property value and report the change.

        Returns:
            OK, or NOT_FOUND if the device is unknown
        """
        device = self.find_device(device_id)
        if device is None:
            return Outcome.not_found(f"Device not found: {device_id}")

        device.set_property(prop)
        self.notify_property_changed(device_id, prop)
        return Outcome.success()

    def start_pairing(self, timeout: float) -> Outcome:
        """Start looking for new devices for up to timeout seconds."""
        return Outcome.success()

    def cancel_pairing(self) -> Outcome:
        return Outcome.success()

    def unload(self) -> Outcome:
        """Release the adapter and report it unloaded."""
        self._emit(AdapterUnloaded)
        return Outcome.success()

    def remove_thing(self, device_id: str) -> Outcome:
        return Outcome.success()

    def cancel_remove_thing(self, device_id: str) -> Outcome:
        return Outcome.success()

    # --- Events reported to the gateway ---

    def handle_device_added(self, device: Device) -> None:
        """Register a device and announce it."""
        self.devices[device.id] = device
        self._announce_device(device)

    def handle_device_removed(self, device_id: str) -> Outcome:
        """Unregister a device and announce its removal."""
        if self.devices.pop(device_id, None) is None:
            return Outcome.not_found(f"Device not found: {device_id}")

        self._emit(HandleDeviceRemoved, id=device_id)
        return Outcome.success()

    def notify_property_changed(self, device_id: str, prop: Property) -> None:
        self._emit(PropertyChanged, device_id=device_id, property=prop)

    def _announce_device(self, device: Device) -> None:
        self._emit(
            HandleDeviceAdded,
            id=device.id,
            name=device.name,
            device_type=device.device_type,
            properties=dict(device.properties),
            actions=dict(device.actions),
        )

    def _emit(self, message_cls: Type[Message], **fields) -> bool:
        if self._plugin is None:
            logger.debug(f"Adapter '{self.id}' not attached, dropping {message_cls.__name__}")
            return False
        return self._plugin.send(
            message_cls(plugin_id=self._plugin.id, adapter_id=self.id, **fields)
        )

    def __repr__(self) -> str:
        return f"Adapter(id={self.id!r}, devices={len(self.devices)})"


class Plugin:
    """The plugin's identity and adapter registry.

    Events are sent through the outbound mailbox once one is attached.
    Attaching announces every adapter and device registered so far.
    """

    def __init__(self, plugin_id: str, outbox: Optional[Mailbox] = None):
        self.id = plugin_id
        self.adapters: Dict[str, Adapter] = {}
        self._outbox = outbox

    @property
    def outbox(self) -> Optional[Mailbox]:
        return self._outbox

    def attach(self, outbox: Mailbox) -> None:
        """Route events to outbox and announce the current registry."""
        self._outbox = outbox
        for adapter in list(self.adapters.values()):
            self.send(AddAdapter(plugin_id=self.id, adapter_id=adapter.id, name=adapter.name))
            for device in list(adapter.devices.values()):
                adapter._announce_device(device)

    def add_adapter(self, adapter: Adapter) -> None:
        """Register an adapter and announce it.

        Raises:
            ValueError: If an adapter with the same id is already registered
        """
        if adapter.id in self.adapters:
            raise ValueError(f"Adapter already registered: {adapter.id}")

        adapter.attach(self)
        self.adapters[adapter.id] = adapter
        self.send(AddAdapter(plugin_id=self.id, adapter_id=adapter.id, name=adapter.name))

    def remove_adapter(self, adapter_id: str) -> Adapter:
        """Unregister an adapter without notifying the gateway.

        Raises:
            NotFoundError: If no adapter has this id
        """
        adapter = self.adapters.pop(adapter_id, None)
        if adapter is None:
            raise NotFoundError("Adapter", adapter_id)
        return adapter

    def find_adapter(self, adapter_id: str) -> Optional[Adapter]:
        return self.adapters.get(adapter_id)

    def get_adapter(self, adapter_id: str) -> Adapter:
        """Look up an adapter.

        Raises:
            NotFoundError: If no adapter has this id
        """
        adapter = self.adapters.get(adapter_id)
        if adapter is None:
            raise NotFoundError("Adapter", adapter_id)
        return adapter

    def send(self, message: Message) -> bool:
        """Queue an event for the gateway.

        Returns:
            True if queued, False if no mailbox is attached or it is closed
        """
        if self._outbox is None:
            logger.debug(f"Plugin '{self.id}' has no outbox, dropping {type(message).__name__}")
            return False
        return self._outbox.send(message)

    def unload(self) -> bool:
        """Send pluginUnloaded, which shuts the relay down."""
        return self.send(PluginUnloaded(plugin_id=self.id))

    def __repr__(self) -> str:
        return f"Plugin(id={self.id!r}, adapters={list(self.adapters)})"
