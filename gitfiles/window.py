"""
gitfiles.window - One session per acme window

A WindowController runs for the whole life of its window:

    AWAITING_FIRST_LOAD --Get--> IDLE --events--> IDLE ... --> CLOSED

It loads the window's content on start, then serves the window's events
strictly in order until acme deletes the window:

    Get      reload the content named by the window
    Del      close the window (acme refuses if it is dirty)
    Delete   close the window regardless
    Debug    cycle the debug level
    B3 click resolve the clicked text to a window (gitfiles.click)

Anything else goes back to acme.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from acme import Event, EventFormatError, Win
from ninep import P9Error, Hangup

from . import debug, names
from .registry import Window
from .typecache import DIRECTORY, FILE, exists

if TYPE_CHECKING:
    from .workspace import Workspace

logger = logging.getLogger(__name__)

PLACEHOLDER = b"[reading...]"

# From the click outward to the nearest blank on either side
EXPAND_ADDR = "#{q0}+#1-/[^ \t\\n]*/,#{q1}-#1+/[^ \t\\n]*/"


class State(Enum):
    AWAITING_FIRST_LOAD = "awaiting-first-load"
    IDLE = "idle"
    CLOSED = "closed"


async def position(win: Win, addr: str):
    """Select addr in win; a bad address is logged and ignored."""
    try:
        await win.set_addr(addr)
        await win.ctl("dot=addr")
    except P9Error as e:
        logger.warning("window %d: address %s: %s", win.id, addr, e)


class WindowController:
    """The session for one window."""

    def __init__(self, workspace: 'Workspace', window: Window):
        self.workspace = workspace
        self.window = window
        self.win = window.win
        self.state = State.AWAITING_FIRST_LOAD
        self._registered = False

    async def run(self):
        ws = self.workspace
        try:
            await self.win.set_name(self.window.name)
            await self.win.write_tag(ws.settings.tag)
            await self.get()
            self.state = State.IDLE
            async for event in self.win.events():
                await self.handle(event)
        except (P9Error, Hangup, EventFormatError) as e:
            logger.warning("window %d (%s): %s", self.window.id, self.window.name, e)
        finally:
            self.state = State.CLOSED
            self._reply()
            ws.registry.remove(self.window)
            await self.win.close()
            logger.info("window %d (%s) closed", self.window.id, self.window.name)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def get(self):
        """Load the content the window's name refers to."""
        try:
            await self._load()
        finally:
            self._reply()

    async def _load(self):
        ws = self.workspace
        win = self.win
        name = await win.get_name()
        self.window.name = name
        try:
            parsed = names.parse(name)
        except names.NameParseError:
            logger.info("Gitfiles: bad name %s", name)
            return

        kind = await ws.types.lookup(parsed.root, parsed.treeish, parsed.path)
        if not exists(kind):
            logger.info("%s: nothing to load (type %r)", name, kind)
            return

        await win.set_addr(",")
        await win.write_data(PLACEHOLDER)
        await win.set_addr(",")
        if kind == FILE:
            await ws.helpers.read_file(parsed, win.write_data)
        else:
            await ws.helpers.read_directory(parsed, win.write_data, win.id)

        name = names.cleanname(name)
        if kind == DIRECTORY and not name.endswith("/"):
            name += "/"
        await win.set_name(name)
        self.window.name = name
        await self._top()
        await win.ctl("clean")

        request = self.window.pending
        if request is not None and request.address:
            await position(win, request.address)
            await win.ctl("show")

    async def _top(self):
        await self.win.set_addr("#0")
        await self.win.ctl("dot=addr")
        await self.win.ctl("show")

    def _reply(self):
        """
        Publish the window once its first load is over and answer the
        request that created it. Later calls do nothing.
        """
        if not self._registered:
            self._registered = True
            self.workspace.registry.add(self.window)
        request = self.window.pending
        if request is None:
            return
        self.window.pending = None
        if request.reply is not None and not request.reply.done():
            request.reply.set_result(self.window)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def handle(self, event: Event):
        if event.c1 != "K":
            logger.debug("acme %s", event)
        if event.c1 != "M":
            return
        if event.c2 in "xX":
            await self.execute(event)
        elif event.c2 in "lL":
            await self.look(event)

    async def execute(self, event: Event):
        command = event.text
        if command == "Get":
            await self.get()
        elif command == "Del":
            try:
                await self.win.ctl("del")
            except P9Error as e:
                logger.warning("window %d: del: %s", self.window.id, e)
        elif command == "Delete":
            await self.win.ctl("delete")
        elif command == "Debug":
            level = debug.cycle()
            print(f"Gitfiles debug {level.label}", flush=True)
        else:
            await self.win.write_event(event)

    async def look(self, event: Event):
        try:
            text = await self.expand(event)
        except P9Error as e:
            logger.info("window %d: expand: %s", self.window.id, e)
            text = None
        if not text or await self.workspace.clicks.resolve(self.window, text) is None:
            await self.win.write_event(event)

    async def expand(self, event: Event) -> Optional[str]:
        """
        Text a button-3 click refers to. In the tag, acme's expansion is
        used as is. In the body, a plain click that acme expanded to
        something other than the selection is widened to the whole run
        of non-blank characters around it.
        """
        if event.c2 == "l":
            return event.text
        win = self.win
        await win.ctl("addr=dot")
        q0, q1 = await win.read_addr()
        logger.info("acme expanded %d-%d into %d-%d (dot %d-%d)",
                    event.oq0, event.oq1, event.q0, event.q1, q0, q1)

        if (event.oq0 == event.oq1 and event.q0 != event.q1
                and (event.q0, event.q1) != (q0, q1)):
            await win.set_addr(EXPAND_ADDR.format(q0=event.q0, q1=event.q1))
            q0, q1 = await win.read_addr()
            logger.info("\tre-expand to %d-%d", q0, q1)
        else:
            await win.set_addr(f"#{event.q0},#{event.q1}")
        return await win.read_xdata()
