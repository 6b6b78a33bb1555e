"""
gitfiles.workspace - State shared by every window session

One Workspace per process. It owns the acme connection, the helper
commands, both caches and the window registry, and it is where new
window sessions are started.
"""

import asyncio
import logging
from typing import Awaitable, Optional, Set, Tuple

from acme import Acme

from . import names
from .click import ClickResolver
from .config import Settings
from .helpers import Helpers
from .registry import OpenRequest, Window, WindowRegistry
from .typecache import NegativeCache, TypeCache
from .window import WindowController, position

logger = logging.getLogger(__name__)


class Workspace:
    def __init__(self, acme: Acme, helpers: Helpers, settings: Settings):
        self.acme = acme
        self.helpers = helpers
        self.settings = settings
        self.registry = WindowRegistry()
        self.types = TypeCache(helpers.stat, settings.type_cache_size)
        self.failures = NegativeCache()
        self.clicks = ClickResolver(self)
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        """Run coro as a task that lives until it finishes or close()."""
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("task %s failed", task.get_name(), exc_info=task.exception())

    async def open(self, name: str, addr: Optional[str] = None) -> Tuple[Window, bool]:
        """
        Show the window for name, creating and loading it if there is
        none, with addr selected. Returns (window, created).
        """
        name = names.cleanname(name)
        window, created = await self.registry.find_or_create(
            name, lambda: self._create(name, addr))
        if not created and addr:
            await position(window.win, addr)
        await window.win.ctl("show")
        return window, created

    async def _create(self, name: str, addr: Optional[str]) -> Window:
        """Start a session for a new window; return once its first load is done."""
        win = await self.acme.new_window()
        request = OpenRequest(
            file=name,
            address=addr,
            reply=asyncio.get_running_loop().create_future(),
        )
        window = Window(id=win.id, name=name, win=win, pending=request)
        controller = WindowController(self, window)
        self.spawn(controller.run(), f"window {win.id}")
        logger.info("creating window %d for %s", win.id, name)
        return await request.reply

    async def close(self):
        """Stop every session and message task."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
