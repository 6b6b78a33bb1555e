"""
gitfiles.dispatcher - Plumbed open requests

Serves the plumb port (gitfileedit by default). A plumbing rule such as

    kind is text
    data matches '((/[a-zA-Z0-9_\\-./]+)@[a-zA-Z0-9_\\-./~{}@]+)('$addr')?'
    data set       $1
    attr add       addr=$3
    plumb to gitfileedit
    plumb client gitfiles

routes root@treeish/path names here; each message opens (or reuses) the
window for the name in its data, at the address in its addr attribute.
"""

import logging
from typing import AsyncIterable

from ninep import P9Client, P9Error, Hangup
from plumb import PlumbMessage, PlumbPort, PlumbFormatError

from .workspace import Workspace

logger = logging.getLogger(__name__)


class MessageDispatcher:
    def __init__(self, workspace: Workspace):
        self.workspace = workspace
        self.max_size = workspace.settings.max_message_size

    async def serve(self, plumber: P9Client):
        """Open the port and dispatch until it closes. Never raises for an
        unusable port: the failure is logged and only dispatching stops."""
        port_name = self.workspace.settings.port
        try:
            port = await PlumbPort.open(plumber, port_name)
        except (P9Error, Hangup) as e:
            logger.error("cannot open plumb/%s: %s", port_name, e)
            return
        try:
            await self.run(port)
        except (P9Error, Hangup, PlumbFormatError) as e:
            logger.error("plumb/%s: %s", port_name, e)

    async def run(self, messages: AsyncIterable[PlumbMessage]):
        """Handle each message in a task of its own."""
        async for message in messages:
            self.workspace.spawn(self.handle(message), "plumb message")

    async def handle(self, message: PlumbMessage):
        if len(message.data) >= self.max_size:
            logger.error("insanely long file name (%d bytes) in plumb message (%.32s...)",
                         len(message.data), message.text)
            return

        addr = message.lookup("addr")
        name = message.text
        try:
            window, created = await self.workspace.open(name, addr or None)
        except (P9Error, Hangup) as e:
            logger.warning("plumb %s: %s", name, e)
            return
        logger.info("plumb %s addr %r => %s window %d", name, addr,
                    "new" if created else "existing", window.id)
