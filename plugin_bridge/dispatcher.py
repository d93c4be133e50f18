"""Command dispatcher between the inbound mailbox and the adapter registry.

The dispatcher drains gateway commands and routes them to adapters:

- Commands for another plugin id are ignored
- Commands for an unknown adapter yield a NOT_FOUND outcome
- unloadPlugin queues pluginUnloaded and ends the dispatch loop
- Exceptions raised by adapter code are contained and reported as FAILED

It never writes to the gateway channel. Events reach the gateway only through
the outbound mailbox.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from .channels import Mailbox
from .config import DEFAULT_POLL_INTERVAL
from .errors import MailboxClosed, NotFoundError
from .models import (
    CancelPairing,
    CancelRemoveThing,
    GatewayMessage,
    Outcome,
    OutcomeStatus,
    RemoveThing,
    SetProperty,
    StartPairing,
    UnloadAdapter,
    UnloadPlugin,
)
from .registry import Plugin

logger = logging.getLogger(__name__)


class Dispatcher:
    """Routes inbound gateway commands to the plugin's adapters."""

    def __init__(
        self,
        plugin: Plugin,
        inbound: Mailbox,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_unload: Optional[Callable[[], None]] = None,
    ):
        """Initialize dispatcher.

        Args:
            plugin: Registry that owns the adapters (and the outbound mailbox)
            inbound: Mailbox of parsed gateway commands
            poll_interval: Longest wait for a command before re-checking, in seconds
            on_unload: Called once when unloadPlugin for this plugin arrives
        """
        self._plugin = plugin
        self._inbound = inbound
        self._poll_interval = poll_interval
        self._on_unload = on_unload
        self._unloading = False

    @property
    def unloading(self) -> bool:
        """True once unloadPlugin for this plugin has been dispatched."""
        return self._unloading

    def run(self) -> None:
        """Dispatch commands until the plugin unloads or the mailbox closes."""
        logger.debug("Dispatcher started")

        while not self._unloading:
            try:
                message = self._inbound.recv(timeout=self._poll_interval)
            except MailboxClosed:
                logger.info("Inbound mailbox closed, dispatcher exiting")
                break

            if message is None:
                continue

            self.dispatch(message)

        logger.debug("Dispatcher exiting")

    def dispatch(self, message: GatewayMessage) -> Outcome:
        """Route a single command.

        Args:
            message: Parsed gateway command

        Returns:
            Outcome of the command; never raises for unknown ids or adapter errors
        """
        plugin_id = getattr(message, "plugin_id", None)
        if plugin_id != self._plugin.id:
            logger.debug(f"Ignoring {type(message).__name__} for plugin {plugin_id!r}")
            return Outcome.ignored(f"Addressed to plugin {plugin_id!r}")

        logger.debug(f"recv: {message}")

        try:
            outcome = self._route(message)
        except NotFoundError as e:
            outcome = Outcome.not_found(str(e))
        except Exception as e:
            logger.exception(f"Adapter error handling {type(message).__name__}")
            outcome = Outcome.failed(f"{type(e).__name__}: {e}")

        if outcome.status == OutcomeStatus.OK or outcome.status == OutcomeStatus.IGNORED:
            logger.debug(f"{type(message).__name__}: {outcome.status.value}")
        else:
            logger.warning(f"{type(message).__name__} {outcome.status.value}: {outcome.message}")
        return outcome

    def _route(self, message: GatewayMessage) -> Outcome:
        if isinstance(message, UnloadPlugin):
            return self._unload_plugin()

        if isinstance(message, SetProperty):
            adapter = self._plugin.get_adapter(message.adapter_id)
            return _as_outcome(adapter.set_property(message.device_id, message.property))
        elif isinstance(message, StartPairing):
            adapter = self._plugin.get_adapter(message.adapter_id)
            return _as_outcome(adapter.start_pairing(message.timeout))
        elif isinstance(message, CancelPairing):
            adapter = self._plugin.get_adapter(message.adapter_id)
            return _as_outcome(adapter.cancel_pairing())
        elif isinstance(message, UnloadAdapter):
            adapter = self._plugin.get_adapter(message.adapter_id)
            return _as_outcome(adapter.unload())
        elif isinstance(message, RemoveThing):
            adapter = self._plugin.get_adapter(message.adapter_id)
            return _as_outcome(adapter.remove_thing(message.device_id))
        elif isinstance(message, CancelRemoveThing):
            adapter = self._plugin.get_adapter(message.adapter_id)
            return _as_outcome(adapter.cancel_remove_thing(message.device_id))
        else:
            # Unknown commands are tolerated for forward compatibility
            return Outcome.ignored(f"Unhandled message {type(message).__name__}")

    def _unload_plugin(self) -> Outcome:
        if self._unloading:
            return Outcome.ignored("Plugin already unloading")

        self._unloading = True
        if self._on_unload is not None:
            try:
                self._on_unload()
            except Exception as e:
                logger.error(f"Error in unload callback: {e}")

        if not self._plugin.unload():
            return Outcome.failed("Outbound mailbox closed, pluginUnloaded not sent")
        return Outcome.success()


def _as_outcome(result: Optional[Outcome]) -> Outcome:
    """Adapters may return None for plain success."""
    return Outcome.success() if result is None else result
