"""
gitfiles.supervisor - Process lifetime

Attaches to acme and the plumber, starts the plumb dispatcher and then
waits until told to stop. Losing the plumber ends dispatching but not
the windows already open.
"""

import asyncio
import logging
from typing import Optional

from acme import Acme
from ninep import P9Client, P9Error, Hangup, service_address

from .config import Settings
from .dispatcher import MessageDispatcher
from .helpers import Helpers
from .workspace import Workspace

logger = logging.getLogger(__name__)


class Supervisor:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.workspace: Optional[Workspace] = None
        self._stop: Optional[asyncio.Event] = None

    async def run(self):
        """Serve until stop(). Failing to reach acme is fatal and raised."""
        self._stop = asyncio.Event()
        ns = self.settings.namespace
        acme = await Acme.mount(service_address("acme", ns))
        plumber = await self._dial_plumber(ns)

        self.workspace = Workspace(acme, Helpers(self.settings), self.settings)
        if plumber is not None:
            dispatcher = MessageDispatcher(self.workspace)
            self.workspace.spawn(dispatcher.serve(plumber), "plumb dispatcher")
        logger.info("gitfiles running")

        try:
            await self._stop.wait()
        finally:
            await self.workspace.close()
            if plumber is not None:
                await plumber.disconnect()
            await acme.close()
            logger.info("gitfiles stopped")

    async def _dial_plumber(self, ns: Optional[str]) -> Optional[P9Client]:
        address = service_address("plumb", ns)
        try:
            return await P9Client.dial(address)
        except (OSError, P9Error, Hangup) as e:
            logger.error("cannot dial plumber %s: %s", address, e)
            return None

    def stop(self):
        if self._stop is not None:
            self._stop.set()
