"""Main PC controller application."""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from action_mailbox import ControllerMailbox
from config import EndpointSource, config_path
from control_client import RemoteControlClient
from models import ActionKind, ActionRequest
from shared_store import SharedStore, build_store
from status_monitor import HTTP_TIMEOUT, EndpointProvider, StatusMonitor

logger = logging.getLogger(__name__)


class PCController:
    """
    Controller process: one session, one store, one monitor, one client,
    one mailbox. Construct inside a running event loop; start() runs until
    cancelled and stop() always tears everything down.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        store: Optional[SharedStore] = None,
        endpoints: Optional[EndpointProvider] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.session = session or aiohttp.ClientSession(timeout=HTTP_TIMEOUT)
        self.store = store or build_store(config.get('store', {}))
        self.endpoints = endpoints or EndpointSource(config.get('path') or config_path())

        self.mailbox = ControllerMailbox(self.store, dispatcher=self.handle_action)
        self.monitor = StatusMonitor(self.session, self.endpoints, publisher=self.mailbox)
        self.client = RemoteControlClient(self.session, self.monitor)

        self.running = False
        self._stopped = False

    async def start(self):
        """Start the controller."""
        await self.store.connect()
        logger.info("Shared store connected")
        self.running = True

        self.monitor.start()
        self.mailbox.start()

        # Wait until tasks finish (they won't until stopped)
        await asyncio.Event().wait()

    async def stop(self):
        """Stop the controller."""
        if self._stopped:
            return
        self._stopped = True
        self.running = False

        # Cancel timers first
        await self.mailbox.stop()
        await self.monitor.stop()

        # Then close resources
        try:
            await self.store.close()
        except Exception as e:
            logger.debug(f"Error closing shared store: {e}")
        try:
            await self.session.close()
        except Exception as e:
            logger.debug(f"Error closing HTTP session: {e}")
        logger.info("Controller stopped")

    async def handle_action(self, request: ActionRequest):
        """Dispatch a request claimed from the mailbox."""
        logger.info(f"Processing action: {request.kind.value}")
        if request.kind is ActionKind.POWER_ON:
            await self.client.turn_on()
        elif request.kind is ActionKind.POWER_OFF:
            await self.client.turn_off()
        else:
            await self.monitor.refresh()
