"""Tests for the registration handshake."""
import json
import unittest
from unittest.mock import patch

from plugin_bridge.config import BridgeConfig
from plugin_bridge.errors import HandshakeError, TransportError
from plugin_bridge.handshake import HandshakeClient
from plugin_bridge.models import RegisterPluginReply

from tests.fakes import FakeRequestChannelFactory


def reply_frame(plugin_id="mqtt", ipc_base_addr="gateway.plugin.mqtt"):
    return json.dumps({
        "messageType": "registerPluginReply",
        "data": {"pluginId": plugin_id, "ipcBaseAddr": ipc_base_addr},
    }).encode("utf-8")


class TestHandshakeClient(unittest.TestCase):

    def setUp(self):
        self.config = BridgeConfig(handshake_retries=2, handshake_backoff=0.5, handshake_timeout=3.0)
        sleep_patcher = patch('plugin_bridge.handshake.time.sleep')
        self.mock_sleep = sleep_patcher.start()
        self.addCleanup(sleep_patcher.stop)

    def make_client(self, factory, plugin_id="mqtt"):
        return HandshakeClient(plugin_id, config=self.config, channel_factory=factory)

    def test_register_success(self):
        """One request, one reply, channel closed afterwards."""
        factory = FakeRequestChannelFactory([reply_frame()])
        client = self.make_client(factory)

        reply = client.register()

        self.assertEqual(reply, RegisterPluginReply(plugin_id="mqtt", ipc_base_addr="gateway.plugin.mqtt"))
        self.assertEqual(len(factory.channels), 1)
        channel = factory.channels[0]
        self.assertEqual(channel.address, "ipc:///tmp/gateway.addonManager")
        self.assertEqual(channel.timeout, 3.0)
        self.assertTrue(channel.closed)
        self.assertEqual(json.loads(channel.requests[0]), {
            "messageType": "registerPlugin",
            "data": {"pluginId": "mqtt"},
        })
        self.mock_sleep.assert_not_called()

    def test_channel_address(self):
        client = self.make_client(FakeRequestChannelFactory([reply_frame()]))
        reply = client.register()
        self.assertEqual(client.channel_address(reply), "ipc:///tmp/gateway.plugin.mqtt")

    def test_retries_with_backoff(self):
        """Transport failures are retried with doubling delays."""
        factory = FakeRequestChannelFactory([
            TransportError("refused"),
            TransportError("timed out"),
            reply_frame(),
        ])
        reply = self.make_client(factory).register()

        self.assertEqual(reply.ipc_base_addr, "gateway.plugin.mqtt")
        self.assertEqual(len(factory.channels), 3)
        self.assertTrue(all(channel.closed for channel in factory.channels))
        self.assertEqual([c.args[0] for c in self.mock_sleep.call_args_list], [0.5, 1.0])

    def test_gives_up_after_retries(self):
        factory = FakeRequestChannelFactory([TransportError("refused")] * 3)

        with self.assertRaises(HandshakeError) as ctx:
            self.make_client(factory).register()

        self.assertEqual(ctx.exception.attempts, 3)
        self.assertIsInstance(ctx.exception.__cause__, TransportError)
        self.assertEqual(self.mock_sleep.call_count, 2)

    def test_no_retries(self):
        self.config = BridgeConfig(handshake_retries=0)
        factory = FakeRequestChannelFactory([TransportError("refused"), reply_frame()])

        with self.assertRaises(HandshakeError) as ctx:
            self.make_client(factory).register()

        self.assertEqual(ctx.exception.attempts, 1)
        self.assertEqual(len(factory.channels), 1)

    def test_malformed_reply(self):
        """A bad reply is fatal and not retried."""
        factory = FakeRequestChannelFactory([b"not json", reply_frame()])

        with self.assertRaises(HandshakeError):
            self.make_client(factory).register()
        self.assertEqual(len(factory.channels), 1)

    def test_wrong_message_type_in_reply(self):
        frame = json.dumps({"messageType": "unloadPlugin", "data": {"pluginId": "mqtt"}}).encode()
        with self.assertRaises(HandshakeError):
            self.make_client(FakeRequestChannelFactory([frame])).register()

    def test_reply_for_other_plugin(self):
        factory = FakeRequestChannelFactory([reply_frame(plugin_id="zwave")])

        with self.assertRaises(HandshakeError) as ctx:
            self.make_client(factory).register()
        self.assertIn("zwave", str(ctx.exception))

    def test_default_factory_is_nng(self):
        with patch('plugin_bridge.handshake.NngRequestChannel') as MockChannel:
            MockChannel.return_value.request.return_value = reply_frame()
            client = HandshakeClient("mqtt", config=self.config)
            client.register()

        MockChannel.assert_called_once_with(timeout=3.0)
        MockChannel.return_value.connect.assert_called_once_with("ipc:///tmp/gateway.addonManager")
        MockChannel.return_value.close.assert_called_once()


if __name__ == '__main__':
    unittest.main()
