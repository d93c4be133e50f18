#!/usr/bin/env python3
"""
Demo plugin.

Registers a plugin named "demo" with a locally running gateway, announces
one adapter with a virtual light, and serves commands until the gateway
unloads the plugin (or Ctrl+C is pressed).
"""

import sys
import logging
from pathlib import Path

# Add package to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from plugin_bridge import (
    Adapter,
    BridgeConfig,
    Device,
    GatewayBridge,
    HandshakeError,
    Outcome,
    Plugin,
    Property,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("DemoPlugin")


class VirtualLightAdapter(Adapter):
    """Adapter whose only device is an in-memory light."""

    def set_property(self, device_id: str, prop: Property) -> Outcome:
        logger.info(f"set {device_id}.{prop.name} = {prop.value!r}")
        return super().set_property(device_id, prop)

    def start_pairing(self, timeout: float) -> Outcome:
        logger.info(f"Pairing for {timeout:.0f}s (nothing to discover)")
        return Outcome.success()


def main():
    plugin = Plugin("demo")
    bridge = GatewayBridge(plugin, config=BridgeConfig.from_env())

    adapter = VirtualLightAdapter("demo-adapter", name="Virtual Lights")
    plugin.add_adapter(adapter)
    adapter.handle_device_added(Device(
        "light-1",
        name="Virtual Light",
        device_type="onOffLight",
        properties={"on": False},
    ))

    try:
        print("Registering with gateway...")
        bridge.start()
        print(f"Registered, relaying on {bridge.channel_address}")
        bridge.serve()
    except HandshakeError as e:
        print(f"Failed to register! Is the gateway running? ({e})")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        bridge.shutdown()
        bridge.serve()
    finally:
        print(f"Done ({bridge.state.value}).")


if __name__ == "__main__":
    main()
