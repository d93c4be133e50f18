"""Tests for the adapter/device registry and its outbound events."""
import unittest

from plugin_bridge.channels import Mailbox
from plugin_bridge.errors import NotFoundError
from plugin_bridge.models import (
    AddAdapter,
    AdapterUnloaded,
    HandleDeviceAdded,
    HandleDeviceRemoved,
    OutcomeStatus,
    PluginUnloaded,
    Property,
    PropertyChanged,
)
from plugin_bridge.registry import Adapter, Device, Plugin


def drain(mailbox):
    messages = []
    while True:
        message = mailbox.try_recv()
        if message is None:
            return messages
        messages.append(message)


class TestDevice(unittest.TestCase):

    def test_defaults(self):
        device = Device("d1")
        self.assertEqual(device.name, "d1")
        self.assertEqual(device.properties, {})
        self.assertIsNone(device.get_property("on"))

    def test_set_property(self):
        device = Device("d1", properties={"on": False})
        device.set_property(Property("on", True))
        self.assertTrue(device.get_property("on"))


class TestPlugin(unittest.TestCase):

    def setUp(self):
        self.outbox = Mailbox("outbound", capacity=64)
        self.plugin = Plugin("p1", outbox=self.outbox)

    def test_add_adapter_announces(self):
        self.plugin.add_adapter(Adapter("a1", name="First"))

        self.assertEqual(drain(self.outbox), [AddAdapter(plugin_id="p1", adapter_id="a1", name="First")])
        self.assertIs(self.plugin.get_adapter("a1").plugin, self.plugin)

    def test_duplicate_adapter(self):
        self.plugin.add_adapter(Adapter("a1"))
        with self.assertRaises(ValueError):
            self.plugin.add_adapter(Adapter("a1"))

    def test_get_missing_adapter(self):
        with self.assertRaises(NotFoundError) as ctx:
            self.plugin.get_adapter("a9")
        self.assertEqual(ctx.exception.kind, "Adapter")
        self.assertEqual(ctx.exception.key, "a9")
        self.assertIsNone(self.plugin.find_adapter("a9"))

    def test_remove_adapter(self):
        adapter = Adapter("a1")
        self.plugin.add_adapter(adapter)
        self.assertIs(self.plugin.remove_adapter("a1"), adapter)
        with self.assertRaises(NotFoundError):
            self.plugin.remove_adapter("a1")

    def test_unload_sends_plugin_unloaded(self):
        self.assertTrue(self.plugin.unload())
        self.assertEqual(drain(self.outbox), [PluginUnloaded(plugin_id="p1")])

    def test_send_without_outbox(self):
        plugin = Plugin("p1")
        plugin.add_adapter(Adapter("a1"))
        self.assertFalse(plugin.unload())

    def test_send_after_outbox_closed(self):
        self.outbox.close()
        self.assertFalse(self.plugin.unload())

    def test_attach_announces_existing_registry(self):
        """Adapters and devices registered before attach are announced on attach."""
        plugin = Plugin("p1")
        adapter = Adapter("a1")
        plugin.add_adapter(adapter)
        adapter.handle_device_added(Device("d1", device_type="onOffLight"))

        plugin.attach(self.outbox)

        messages = drain(self.outbox)
        self.assertEqual(messages[0], AddAdapter(plugin_id="p1", adapter_id="a1", name="a1"))
        self.assertIsInstance(messages[1], HandleDeviceAdded)
        self.assertEqual(messages[1].id, "d1")
        self.assertEqual(len(messages), 2)


class TestAdapter(unittest.TestCase):

    def setUp(self):
        self.outbox = Mailbox("outbound", capacity=64)
        self.plugin = Plugin("p1", outbox=self.outbox)
        self.adapter = Adapter("a1")
        self.plugin.add_adapter(self.adapter)
        drain(self.outbox)

    def test_handle_device_added(self):
        device = Device("d1", name="Lamp", device_type="onOffLight",
                        properties={"on": False}, actions={"blink": {}})
        self.adapter.handle_device_added(device)

        self.assertIs(self.adapter.get_device("d1"), device)
        self.assertEqual(drain(self.outbox), [HandleDeviceAdded(
            plugin_id="p1", adapter_id="a1", id="d1", name="Lamp", device_type="onOffLight",
            properties={"on": False}, actions={"blink": {}},
        )])

    def test_handle_device_removed(self):
        self.adapter.handle_device_added(Device("d1"))
        drain(self.outbox)

        outcome = self.adapter.handle_device_removed("d1")

        self.assertTrue(outcome.ok)
        self.assertIsNone(self.adapter.find_device("d1"))
        self.assertEqual(drain(self.outbox), [HandleDeviceRemoved(plugin_id="p1", adapter_id="a1", id="d1")])

    def test_remove_unknown_device(self):
        self.assertEqual(self.adapter.handle_device_removed("d9").status, OutcomeStatus.NOT_FOUND)
        self.assertEqual(drain(self.outbox), [])

    def test_set_property_updates_and_reports(self):
        self.adapter.handle_device_added(Device("d1", properties={"on": False}))
        drain(self.outbox)

        outcome = self.adapter.set_property("d1", Property("on", True))

        self.assertTrue(outcome.ok)
        self.assertTrue(self.adapter.get_device("d1").get_property("on"))
        self.assertEqual(drain(self.outbox), [PropertyChanged(
            plugin_id="p1", adapter_id="a1", device_id="d1", property=Property("on", True))])

    def test_set_property_unknown_device(self):
        outcome = self.adapter.set_property("d9", Property("on", True))
        self.assertEqual(outcome.status, OutcomeStatus.NOT_FOUND)
        with self.assertRaises(NotFoundError):
            self.adapter.get_device("d9")

    def test_unload_reports(self):
        self.assertTrue(self.adapter.unload().ok)
        self.assertEqual(drain(self.outbox), [AdapterUnloaded(plugin_id="p1", adapter_id="a1")])

    def test_default_capabilities_succeed(self):
        self.assertTrue(self.adapter.start_pairing(60.0).ok)
        self.assertTrue(self.adapter.cancel_pairing().ok)
        self.assertTrue(self.adapter.remove_thing("d1").ok)
        self.assertTrue(self.adapter.cancel_remove_thing("d1").ok)
        self.assertEqual(drain(self.outbox), [])

    def test_detached_adapter_emits_nothing(self):
        adapter = Adapter("loose")
        adapter.handle_device_added(Device("d1"))
        self.assertIsNotNone(adapter.find_device("d1"))
        self.assertEqual(drain(self.outbox), [])


if __name__ == '__main__':
    unittest.main()
